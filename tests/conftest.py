"""Shared test fixtures for Cadence."""

from datetime import date

import pytest

from cadence.core.config import CadenceConfig
from cadence.core.types import (
    Frequency,
    JobInstance,
    JobStatus,
    JobTemplate,
    JobType,
    RecurrenceRule,
)
from cadence.store.jobs import JobRepository
from cadence.store.memory import InMemoryDocumentStore


@pytest.fixture
def config():
    """Create a default config without loading from disk."""
    return CadenceConfig()


@pytest.fixture
def store():
    """Create a fresh in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def repo(store):
    return JobRepository(store)


@pytest.fixture
def make_template():
    """Factory for templates with sensible defaults."""

    def _make(
        frequency=Frequency.WEEKLY,
        start=date(2024, 1, 1),
        end=None,
        template_id="tpl-1",
        **fields,
    ):
        return JobTemplate(
            id=template_id,
            client_id=fields.pop("client_id", "client-1"),
            client_name=fields.pop("client_name", "Maple Street"),
            job_type=fields.pop("job_type", JobType.RESIDENTIAL),
            amount=fields.pop("amount", 120.0),
            recurrence_rule=RecurrenceRule(frequency=frequency, start_date=start, end_date=end),
            **fields,
        )

    return _make


@pytest.fixture
def make_instance():
    """Factory for standalone instances."""

    def _make(day=date(2024, 1, 1), number=1, status=JobStatus.SCHEDULED, **fields):
        return JobInstance(
            template_id=fields.pop("template_id", "tpl-1"),
            client_id=fields.pop("client_id", "client-1"),
            client_name=fields.pop("client_name", "Maple Street"),
            job_type=fields.pop("job_type", JobType.RESIDENTIAL),
            date=day,
            instance_number=number,
            status=status,
            amount=fields.pop("amount", 120.0),
            **fields,
        )

    return _make
