"""
Cadence shared types — every data object in the system.

Templates and instances are separate dataclasses. In the document store both
live in the "jobs" collection and are told apart by the "type" field, which
job_from_document() uses to pick the right class.

Document shapes use camelCase keys; attributes use snake_case.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Union

from cadence.core.errors import InvalidRuleError, StorageError


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string (millisecond precision)."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_id() -> str:
    return uuid.uuid4().hex


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Enums
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class Frequency(str, Enum):
    """How often a recurring job repeats."""

    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, value: str | Frequency) -> Frequency:
        try:
            return cls(value)
        except ValueError:
            raise InvalidRuleError(
                f"Unknown frequency: {value!r}",
                details={"frequency": value},
            ) from None


class JobStatus(str, Enum):
    """Lifecycle state of a single job instance."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class JobType(str, Enum):
    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Recurrence
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(slots=True)
class RecurrenceRule:
    """Frequency plus a start date and an optional inclusive end date."""

    frequency: Frequency
    start_date: date
    end_date: date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "frequency": self.frequency.value if isinstance(self.frequency, Frequency) else self.frequency,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat() if self.end_date else None,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> RecurrenceRule:
        end = d.get("endDate")
        return cls(
            frequency=Frequency.parse(d["frequency"]),
            start_date=_parse_date(d["startDate"]),
            end_date=_parse_date(end) if end else None,
        )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Jobs
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(slots=True)
class JobTemplate:
    """A recurring commitment to a client. Not itself schedulable."""

    id: str
    client_id: str
    client_name: str
    job_type: JobType
    amount: float
    recurrence_rule: RecurrenceRule
    location: str = ""
    description: str = ""
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "template",
            "clientId": self.client_id,
            "clientName": self.client_name,
            "jobType": self.job_type.value,
            "amount": self.amount,
            "location": self.location,
            "description": self.description,
            "recurrenceRule": self.recurrence_rule.to_dict(),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> JobTemplate:
        return cls(
            id=d["id"],
            client_id=d.get("clientId", ""),
            client_name=d.get("clientName", ""),
            job_type=JobType(d.get("jobType", JobType.RESIDENTIAL.value)),
            amount=float(d.get("amount") or 0.0),
            location=d.get("location") or "",
            description=d.get("description") or "",
            recurrence_rule=RecurrenceRule.from_dict(d["recurrenceRule"]),
            created_at=d.get("createdAt") or utc_now_iso(),
            updated_at=d.get("updatedAt") or utc_now_iso(),
        )


@dataclass(slots=True)
class JobInstance:
    """One concrete dated occurrence derived from a template."""

    template_id: str
    client_id: str
    client_name: str
    job_type: JobType
    date: date
    instance_number: int
    amount: float = 0.0
    location: str = ""
    description: str = ""
    status: JobStatus = JobStatus.SCHEDULED
    notes: str = ""
    photos: list[str] = field(default_factory=list)
    start_time: str | None = None  # "HH:MM", None = provider default
    end_time: str | None = None
    external_event_id: str | None = None
    id: str = field(default_factory=new_id)
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    @property
    def date_key(self) -> str:
        return self.date.isoformat()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "instance",
            "templateId": self.template_id,
            "clientId": self.client_id,
            "clientName": self.client_name,
            "jobType": self.job_type.value,
            "date": self.date_key,
            "status": self.status.value,
            "amount": self.amount,
            "location": self.location,
            "description": self.description,
            "notes": self.notes,
            "photos": list(self.photos),
            "time": self.start_time,
            "endTime": self.end_time,
            "instanceNumber": self.instance_number,
            "externalEventId": self.external_event_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> JobInstance:
        return cls(
            id=d["id"],
            template_id=d.get("templateId", ""),
            client_id=d.get("clientId", ""),
            client_name=d.get("clientName", ""),
            job_type=JobType(d.get("jobType", JobType.RESIDENTIAL.value)),
            date=_parse_date(d["date"]),
            status=JobStatus(d.get("status", JobStatus.SCHEDULED.value)),
            amount=float(d.get("amount") or 0.0),
            location=d.get("location") or "",
            description=d.get("description") or "",
            notes=d.get("notes") or "",
            photos=list(d.get("photos") or []),
            start_time=d.get("time"),
            end_time=d.get("endTime"),
            instance_number=int(d.get("instanceNumber", 0)),
            external_event_id=d.get("externalEventId"),
            created_at=d.get("createdAt") or utc_now_iso(),
            updated_at=d.get("updatedAt") or utc_now_iso(),
        )


Job = Union[JobTemplate, JobInstance]


def job_from_document(d: dict[str, Any]) -> Job:
    """Build a JobTemplate or JobInstance from a stored document."""
    kind = d.get("type")
    try:
        if kind == "template":
            return JobTemplate.from_dict(d)
        if kind == "instance":
            return JobInstance.from_dict(d)
    except (KeyError, ValueError, TypeError) as e:
        raise StorageError(f"Malformed {kind} document {d.get('id')!r}: {e}") from e
    raise StorageError(f"Unknown job document type: {kind!r}", details={"id": d.get("id")})


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Calendar Types
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(slots=True)
class CalendarCredential:
    """Process-wide calendar provider credential (one per deployment)."""

    access_token: str | None = None
    expiry_date: int | None = None  # epoch millis
    calendar_id: str = "primary"
    enabled: bool = False
    sync_enabled: bool = True
    reminder_minutes: list[int] = field(default_factory=lambda: [60, 1440])

    @property
    def usable(self) -> bool:
        return bool(self.enabled and self.sync_enabled and self.access_token)

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "accessToken": self.access_token,
            "expiryDate": self.expiry_date,
            "calendarId": self.calendar_id,
            "syncEnabled": self.sync_enabled,
            "reminderMinutes": list(self.reminder_minutes),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> CalendarCredential:
        expiry = d.get("expiryDate")
        return cls(
            access_token=d.get("accessToken"),
            expiry_date=int(expiry) if expiry is not None else None,
            calendar_id=d.get("calendarId") or "primary",
            enabled=bool(d.get("enabled", False)),
            sync_enabled=bool(d.get("syncEnabled", True)),
            reminder_minutes=[int(m) for m in d.get("reminderMinutes") or [60, 1440]],
        )


@dataclass(frozen=True, slots=True)
class EventRef:
    """Provider-side identity of a created or updated event."""

    external_id: str
    link: str = ""


@dataclass(frozen=True, slots=True)
class ConnectionStatus:
    """Result of a round-trip connection diagnostic."""

    reachable: bool
    calendar_name: str = ""
    time_zone: str = ""
    reason: str = ""


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Bulk Operation Results
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(slots=True)
class SyncResult:
    """Counts from a bulk sync. errors maps instance id to failure message."""

    synced: int = 0
    skipped: int = 0
    failed: int = 0
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def attempted(self) -> int:
        return self.synced + self.failed

    def summary(self) -> str:
        total = self.synced + self.skipped + self.failed
        return f"{self.synced} of {total} synced, {self.failed} failed, {self.skipped} skipped"


@dataclass(slots=True)
class BulkResult:
    """Counts from a bulk instance operation (status change, delete)."""

    succeeded: int = 0
    failed: int = 0
    errors: dict[str, str] = field(default_factory=dict)


def _parse_date(value: str | date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    # Tolerate full timestamps, keep only the calendar date
    return date.fromisoformat(str(value)[:10])
