"""Tests for core types and their document shapes."""

from datetime import date

import pytest

from cadence.core.errors import InvalidRuleError, StorageError
from cadence.core.types import (
    CalendarCredential,
    Frequency,
    JobInstance,
    JobStatus,
    JobTemplate,
    JobType,
    RecurrenceRule,
    SyncResult,
    job_from_document,
    utc_now_iso,
)


def test_frequency_parse_rejects_unknown():
    assert Frequency.parse("biweekly") is Frequency.BIWEEKLY
    with pytest.raises(InvalidRuleError) as exc_info:
        Frequency.parse("fortnightly")
    assert exc_info.value.details == {"frequency": "fortnightly"}


def test_job_status_values_match_stored_strings():
    assert JobStatus("in-progress") is JobStatus.IN_PROGRESS
    assert JobStatus.CANCELLED.value == "cancelled"


def test_utc_now_iso_has_z_suffix():
    stamp = utc_now_iso()
    assert stamp.endswith("Z")
    assert "T" in stamp


def test_template_document_shape(make_template):
    template = make_template(end=date(2024, 3, 31), location="12 Maple St")
    doc = template.to_dict()

    assert doc["type"] == "template"
    assert doc["clientName"] == "Maple Street"
    assert doc["jobType"] == "residential"
    assert doc["recurrenceRule"] == {
        "frequency": "weekly",
        "startDate": "2024-01-01",
        "endDate": "2024-03-31",
    }

    restored = JobTemplate.from_dict(doc)
    assert restored.recurrence_rule.end_date == date(2024, 3, 31)
    assert restored.location == "12 Maple St"


def test_instance_document_uses_camel_case_keys(make_instance):
    instance = make_instance(
        day=date(2024, 2, 5),
        number=6,
        start_time="10:30",
        external_event_id="evt-9",
    )
    doc = instance.to_dict()

    assert doc["type"] == "instance"
    assert doc["templateId"] == "tpl-1"
    assert doc["date"] == "2024-02-05"
    assert doc["time"] == "10:30"
    assert doc["instanceNumber"] == 6
    assert doc["externalEventId"] == "evt-9"
    assert doc["status"] == "scheduled"


def test_instance_from_document_tolerates_timestamps():
    doc = {
        "id": "i1",
        "type": "instance",
        "templateId": "tpl-1",
        "clientName": "Oak Office",
        "jobType": "commercial",
        "date": "2024-04-01T00:00:00.000Z",
        "status": "completed",
        "instanceNumber": 3,
    }

    instance = job_from_document(doc)

    assert isinstance(instance, JobInstance)
    assert instance.date == date(2024, 4, 1)
    assert instance.job_type is JobType.COMMERCIAL
    assert instance.status is JobStatus.COMPLETED
    assert instance.photos == []
    assert instance.external_event_id is None


def test_job_from_document_dispatches_on_type(make_template):
    doc = make_template().to_dict()
    assert isinstance(job_from_document(doc), JobTemplate)


def test_job_from_document_unknown_type():
    with pytest.raises(StorageError):
        job_from_document({"id": "x", "type": "invoice"})


def test_job_from_document_malformed():
    with pytest.raises(StorageError):
        job_from_document({"id": "x", "type": "instance", "date": "not-a-date"})


def test_rule_from_dict_with_unknown_frequency():
    with pytest.raises(InvalidRuleError):
        RecurrenceRule.from_dict({"frequency": "hourly", "startDate": "2024-01-01"})


class TestCalendarCredential:
    def test_usable_requires_enabled_sync_and_token(self):
        assert CalendarCredential(access_token="t", enabled=True).usable
        assert not CalendarCredential(access_token="t", enabled=False).usable
        assert not CalendarCredential(access_token="t", enabled=True, sync_enabled=False).usable
        assert not CalendarCredential(access_token=None, enabled=True).usable

    def test_document_round_trip_keeps_expiry(self):
        credential = CalendarCredential(
            access_token="tok",
            expiry_date=1_700_000_000_000,
            calendar_id="team",
            enabled=True,
            reminder_minutes=[30],
        )

        restored = CalendarCredential.from_dict(credential.to_dict())

        assert restored == credential

    def test_defaults_from_sparse_document(self):
        restored = CalendarCredential.from_dict({"enabled": True})
        assert restored.calendar_id == "primary"
        assert restored.reminder_minutes == [60, 1440]
        assert restored.expiry_date is None


def test_sync_result_summary():
    result = SyncResult(synced=4, failed=1, skipped=2, errors={"i3": "boom"})
    assert result.attempted == 5
    assert result.summary() == "4 of 7 synced, 1 failed, 2 skipped"
