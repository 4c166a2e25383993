"""
Event payload construction for the calendar provider.

Works on anything shaped like a job (see Schedulable): a JobInstance, or a
one-off job record from elsewhere in the application.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any, Protocol
from zoneinfo import ZoneInfo

from cadence.core.types import JobType

DEFAULT_START = "09:00"
DEFAULT_END = "11:00"
DEFAULT_REMINDERS = (60, 1440)
DEFAULT_DESCRIPTION = "Cleaning job"

_GLYPHS = {JobType.RESIDENTIAL: "🏠", JobType.COMMERCIAL: "🏢"}
_COLORS = {JobType.RESIDENTIAL: "7", JobType.COMMERCIAL: "10"}


class Schedulable(Protocol):
    """Fields the payload builder reads from a job."""

    date: date
    start_time: str | None
    end_time: str | None
    client_name: str
    job_type: JobType
    location: str
    description: str
    notes: str
    amount: float


def parse_time_of_day(value: str) -> time:
    """Parse "14:30", "9:05" or "2:30 PM"."""
    text = value.strip()
    for fmt in ("%H:%M", "%I:%M %p", "%I:%M%p"):
        try:
            return datetime.strptime(text.upper(), fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Unrecognized time of day: {value!r}")


def event_window(
    job: Schedulable,
    time_zone: str,
    default_start: str = DEFAULT_START,
    default_end: str = DEFAULT_END,
) -> tuple[datetime, datetime]:
    """Zoned start/end datetimes for a job, using defaults for missing times."""
    tz = ZoneInfo(time_zone)
    start = datetime.combine(job.date, parse_time_of_day(job.start_time or default_start), tzinfo=tz)
    end = datetime.combine(job.date, parse_time_of_day(job.end_time or default_end), tzinfo=tz)
    if end <= start:
        default_length = datetime.combine(job.date, parse_time_of_day(default_end)) - datetime.combine(
            job.date, parse_time_of_day(default_start)
        )
        end = start + (default_length if default_length > timedelta(0) else timedelta(hours=2))
    return start, end


def build_description(job: Schedulable) -> str:
    description = job.description or DEFAULT_DESCRIPTION
    if job.notes:
        description += f"\n\nNotes: {job.notes}"
    if job.amount:
        description += f"\n\nAmount: ${job.amount:.2f}"
    return description


def build_event_payload(
    job: Schedulable,
    time_zone: str,
    reminder_minutes: list[int] | tuple[int, ...] = DEFAULT_REMINDERS,
    default_start: str = DEFAULT_START,
    default_end: str = DEFAULT_END,
) -> dict[str, Any]:
    """Provider event resource for create and update calls."""
    job_type = JobType(job.job_type)
    start, end = event_window(job, time_zone, default_start, default_end)
    return {
        "summary": f"{_GLYPHS[job_type]} {job.client_name}",
        "description": build_description(job),
        "location": job.location or "",
        "start": {"dateTime": start.isoformat(), "timeZone": time_zone},
        "end": {"dateTime": end.isoformat(), "timeZone": time_zone},
        "reminders": {
            "useDefault": False,
            "overrides": [{"method": "popup", "minutes": int(m)} for m in reminder_minutes],
        },
        "colorId": _COLORS[job_type],
    }
