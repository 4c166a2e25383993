"""Tests for calendar event payload construction."""

from datetime import date, time

import pytest

from cadence.calendar.payload import (
    build_description,
    build_event_payload,
    event_window,
    parse_time_of_day,
)
from cadence.core.types import JobType

TZ = "America/Los_Angeles"


@pytest.mark.parametrize(
    "text,expected",
    [
        ("14:30", time(14, 30)),
        ("9:05", time(9, 5)),
        ("2:30 PM", time(14, 30)),
        ("12:15 am", time(0, 15)),
        ("11:00AM", time(11, 0)),
    ],
)
def test_parse_time_of_day(text, expected):
    assert parse_time_of_day(text) == expected


def test_parse_time_of_day_rejects_garbage():
    with pytest.raises(ValueError):
        parse_time_of_day("noonish")


def test_residential_payload(make_instance):
    instance = make_instance(
        day=date(2024, 7, 1),
        location="12 Maple St",
        description="Deep clean",
        notes="Key under mat",
        amount=120.0,
        start_time="10:00",
        end_time="12:30",
    )

    payload = build_event_payload(instance, time_zone=TZ, reminder_minutes=[60, 1440])

    assert payload["summary"] == "🏠 Maple Street"
    assert payload["location"] == "12 Maple St"
    assert payload["description"] == "Deep clean\n\nNotes: Key under mat\n\nAmount: $120.00"
    assert payload["start"] == {"dateTime": "2024-07-01T10:00:00-07:00", "timeZone": TZ}
    assert payload["end"] == {"dateTime": "2024-07-01T12:30:00-07:00", "timeZone": TZ}
    assert payload["reminders"] == {
        "useDefault": False,
        "overrides": [
            {"method": "popup", "minutes": 60},
            {"method": "popup", "minutes": 1440},
        ],
    }
    assert payload["colorId"] == "7"


def test_commercial_payload_uses_defaults(make_instance):
    instance = make_instance(
        day=date(2024, 1, 15),
        client_name="Oak Office Park",
        job_type=JobType.COMMERCIAL,
        amount=0.0,
    )

    payload = build_event_payload(instance, time_zone=TZ)

    assert payload["summary"] == "🏢 Oak Office Park"
    assert payload["colorId"] == "10"
    assert payload["description"] == "Cleaning job"
    assert payload["location"] == ""
    # Winter offset, default 09:00 to 11:00
    assert payload["start"]["dateTime"] == "2024-01-15T09:00:00-08:00"
    assert payload["end"]["dateTime"] == "2024-01-15T11:00:00-08:00"


def test_end_before_start_falls_back_to_default_length(make_instance):
    instance = make_instance(day=date(2024, 1, 15), start_time="15:00", end_time="14:00")

    start, end = event_window(instance, TZ)

    assert (end - start).total_seconds() == 2 * 3600


def test_start_only_after_default_end(make_instance):
    instance = make_instance(day=date(2024, 1, 15), start_time="1:00 PM")

    start, end = event_window(instance, TZ)

    assert start.hour == 13
    assert end.hour == 15


def test_description_without_notes(make_instance):
    instance = make_instance(description="Move-out clean", amount=89.5)
    assert build_description(instance) == "Move-out clean\n\nAmount: $89.50"
