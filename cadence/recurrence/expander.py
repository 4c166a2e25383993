"""
Recurrence expansion — turns a template's rule into dated job instances.

Pure functions, no I/O. The caller queries the store for the dates that
already have an instance and passes them in as existing_dates.

Occurrences are anchored on the start date: occurrence k is start + k steps.
For monthly rules the day is clamped to the end of shorter months
(Jan 31 → Feb 29 → Mar 31), so a late start day never drifts.

Usage:
    instances = generate_instances(template, window_days=90, existing_dates={"2024-01-01"})
    nxt = get_next_occurrence(template)
    get_recurrence_description(template.recurrence_rule)  # "Weekly until 3/31/2024"
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from cadence.core.errors import InvalidRuleError
from cadence.core.types import Frequency, JobInstance, JobStatus, JobTemplate, RecurrenceRule

DEFAULT_WINDOW_DAYS = 90

_DAY_STEPS = {
    Frequency.DAILY: 1,
    Frequency.WEEKLY: 7,
    Frequency.BIWEEKLY: 14,
}

_LABELS = {
    Frequency.DAILY: "Daily",
    Frequency.WEEKLY: "Weekly",
    Frequency.BIWEEKLY: "Every 2 weeks",
    Frequency.MONTHLY: "Monthly",
}


def occurrence(rule: RecurrenceRule, index: int) -> date:
    """Return the date of the index-th occurrence (0-based) of a rule."""
    frequency = _checked_frequency(rule)
    if frequency is Frequency.MONTHLY:
        return rule.start_date + relativedelta(months=index)
    return rule.start_date + timedelta(days=_DAY_STEPS[frequency] * index)


def iter_occurrences(rule: RecurrenceRule, until: date) -> Iterator[tuple[int, date]]:
    """
    Yield (instance_number, date) for every slot between start and until.

    instance_number is 1-based and counts every slot, so it is stable no
    matter which slots already have an instance. Stops at the rule's own
    end_date when that comes first.
    """
    _checked_frequency(rule)
    limit = min(until, rule.end_date) if rule.end_date else until
    index = 0
    current = rule.start_date
    while current <= limit:
        yield index + 1, current
        index += 1
        current = occurrence(rule, index)


def generate_instances(
    template: JobTemplate,
    window_days: int = DEFAULT_WINDOW_DAYS,
    existing_dates: Iterable[str] = (),
    today: date | None = None,
) -> list[JobInstance]:
    """
    Expand a template into instances up to today + window_days.

    Dates whose ISO string is in existing_dates are skipped but still
    consume an instance number.

    Raises:
        InvalidRuleError: the rule's frequency is not recognized.
    """
    rule = template.recurrence_rule
    _checked_frequency(rule)
    if window_days <= 0:
        return []

    today = today or date.today()
    existing = set(existing_dates)
    instances: list[JobInstance] = []

    for number, when in iter_occurrences(rule, today + timedelta(days=window_days)):
        if when.isoformat() in existing:
            continue
        instances.append(
            JobInstance(
                template_id=template.id,
                client_id=template.client_id,
                client_name=template.client_name,
                job_type=template.job_type,
                date=when,
                instance_number=number,
                amount=template.amount,
                location=template.location,
                description=template.description,
                status=JobStatus.SCHEDULED,
                notes="",
                photos=[],
            )
        )

    return instances


def get_next_occurrence(template: JobTemplate, today: date | None = None) -> date:
    """First occurrence strictly after today. Display only, ignores end_date."""
    rule = template.recurrence_rule
    today = today or date.today()
    if rule.start_date > today:
        return rule.start_date

    index = 0
    current = rule.start_date
    while current <= today:
        index += 1
        current = occurrence(rule, index)
    return current


def get_recurrence_description(rule: RecurrenceRule) -> str:
    label = _LABELS.get(rule.frequency, str(rule.frequency))
    if rule.end_date:
        end = rule.end_date
        label += f" until {end.month}/{end.day}/{end.year}"
    return label


def _checked_frequency(rule: RecurrenceRule) -> Frequency:
    if rule.frequency in _DAY_STEPS or rule.frequency == Frequency.MONTHLY:
        return Frequency(rule.frequency)
    raise InvalidRuleError(
        f"Unknown frequency: {rule.frequency!r}",
        details={"frequency": str(rule.frequency)},
    )
