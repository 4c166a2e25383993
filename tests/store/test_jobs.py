"""Tests for the job repository."""

from datetime import date

import pytest

from cadence.core.types import JobStatus
from cadence.store.jobs import JOBS_COLLECTION


@pytest.mark.asyncio
class TestJobRepository:
    async def test_template_round_trip(self, repo, make_template):
        template = make_template()
        await repo.save_template(template)

        loaded = await repo.get_template(template.id)

        assert loaded.client_name == template.client_name
        assert loaded.recurrence_rule == template.recurrence_rule
        assert await repo.list_templates() == [loaded]

    async def test_get_template_ignores_instances(self, repo, make_instance):
        instance = make_instance()
        await repo.save_instance(instance)

        assert await repo.get_template(instance.id) is None
        assert (await repo.get_instance(instance.id)).id == instance.id

    async def test_instances_sorted_and_filtered(self, repo, make_instance):
        await repo.save_instances(
            [
                make_instance(day=date(2024, 1, 15), number=3),
                make_instance(day=date(2024, 1, 1), number=1, status=JobStatus.COMPLETED),
                make_instance(day=date(2024, 1, 8), number=2),
                make_instance(day=date(2024, 1, 8), number=2, template_id="other"),
            ]
        )

        all_for_template = await repo.instances_for_template("tpl-1")
        assert [i.instance_number for i in all_for_template] == [1, 2, 3]

        future = await repo.instances_for_template(
            "tpl-1", date_from=date(2024, 1, 8), status=JobStatus.SCHEDULED
        )
        assert [i.date for i in future] == [date(2024, 1, 8), date(2024, 1, 15)]

        bounded = await repo.instances_for_template("tpl-1", date_to=date(2024, 1, 8))
        assert [i.instance_number for i in bounded] == [1, 2]

    async def test_existing_dates_and_horizon(self, repo, make_instance):
        await repo.save_instances(
            [make_instance(day=date(2024, 1, 1)), make_instance(day=date(2024, 1, 8), number=2)]
        )

        assert await repo.existing_dates("tpl-1") == {"2024-01-01", "2024-01-08"}
        assert await repo.has_instance_on_or_after("tpl-1", date(2024, 1, 8))
        assert not await repo.has_instance_on_or_after("tpl-1", date(2024, 1, 9))

    async def test_syncable_instances(self, repo, make_instance):
        await repo.save_instances(
            [
                make_instance(day=date(2024, 1, 1), status=JobStatus.COMPLETED),
                make_instance(day=date(2024, 1, 3), status=JobStatus.IN_PROGRESS),
                make_instance(day=date(2024, 1, 2), status=JobStatus.SCHEDULED),
                make_instance(day=date(2024, 1, 4), status=JobStatus.CANCELLED),
            ]
        )

        syncable = await repo.syncable_instances()

        assert [i.date for i in syncable] == [date(2024, 1, 2), date(2024, 1, 3)]

    async def test_set_external_event_id(self, repo, make_instance, store):
        instance = make_instance(notes="side door")
        await repo.save_instance(instance)

        assert await repo.set_external_event_id(instance.id, "evt-1")
        doc = await store.get(JOBS_COLLECTION, instance.id)
        assert doc["externalEventId"] == "evt-1"
        assert doc["notes"] == "side door"

        assert await repo.set_external_event_id(instance.id, None)
        assert (await repo.get_instance(instance.id)).external_event_id is None

        assert not await repo.set_external_event_id("missing", "evt-2")

    async def test_delete_instance(self, repo, make_instance):
        instance = make_instance()
        await repo.save_instance(instance)

        assert await repo.delete_instance(instance.id)
        assert await repo.get_instance(instance.id) is None
        assert not await repo.delete_instance(instance.id)
