"""Tests for template lifecycle operations."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from cadence.core.errors import CalendarError
from cadence.core.types import Frequency, JobStatus, JobType
from cadence.lifecycle.manager import TemplateLifecycleManager
from cadence.sync.orchestrator import SyncOrchestrator

TODAY = date(2024, 3, 1)


def _orchestrator():
    orchestrator = MagicMock()
    orchestrator.unsync_one = AsyncMock(return_value=None)
    return orchestrator


@pytest.mark.asyncio
class TestEnsureGenerated:
    async def test_generates_when_nothing_exists(self, repo, make_template):
        template = make_template(Frequency.WEEKLY, start=date(2024, 3, 4))
        lifecycle = TemplateLifecycleManager(repo, window_days=28)

        assert await lifecycle.ensure_generated(template, today=TODAY)

        instances = await repo.instances_for_template(template.id)
        assert [i.date for i in instances] == [
            date(2024, 3, 4),
            date(2024, 3, 11),
            date(2024, 3, 18),
            date(2024, 3, 25),
        ]

    async def test_skips_when_window_already_covered(self, repo, make_template):
        template = make_template(Frequency.DAILY, start=TODAY)
        lifecycle = TemplateLifecycleManager(repo, window_days=90, min_days_ahead=30)
        await lifecycle.ensure_generated(template, today=TODAY)

        assert not await lifecycle.needs_generation(template, today=TODAY)
        assert not await lifecycle.ensure_generated(template, today=TODAY)

    async def test_tops_up_without_duplicates(self, repo, make_template):
        template = make_template(Frequency.WEEKLY, start=date(2024, 3, 4))
        lifecycle = TemplateLifecycleManager(repo, window_days=28, min_days_ahead=30)
        await lifecycle.ensure_generated(template, today=TODAY)

        later = date(2024, 3, 20)
        assert await lifecycle.ensure_generated(template, today=later)

        instances = await repo.instances_for_template(template.id)
        dates = [i.date for i in instances]
        assert len(dates) == len(set(dates))
        assert [i.instance_number for i in instances] == list(range(1, len(instances) + 1))
        assert dates[-1] == date(2024, 4, 15)

    async def test_finished_rule_reports_run_with_nothing_new(self, repo, make_template):
        template = make_template(Frequency.WEEKLY, start=date(2024, 1, 1), end=date(2024, 1, 31))
        lifecycle = TemplateLifecycleManager(repo)

        assert await lifecycle.ensure_generated(template, today=TODAY)
        assert len(await repo.instances_for_template(template.id)) == 5


@pytest.mark.asyncio
class TestUpdateFuture:
    async def _seed(self, repo, make_instance):
        past = [
            make_instance(day=date(2024, 2, 16), number=1, status=JobStatus.COMPLETED),
            make_instance(day=date(2024, 2, 23), number=2, status=JobStatus.COMPLETED),
        ]
        future = [
            make_instance(day=date(2024, 3, 1), number=3),
            make_instance(day=date(2024, 3, 8), number=4),
            make_instance(day=date(2024, 3, 15), number=5),
        ]
        await repo.save_instances(past + future)
        return past, future

    async def test_only_future_scheduled_instances_change(self, repo, make_instance):
        past, _ = await self._seed(repo, make_instance)
        lifecycle = TemplateLifecycleManager(repo)

        changed = await lifecycle.update_future_instances(
            "tpl-1", {"amount": 150, "location": "New address"}, today=TODAY
        )

        assert changed == 3
        instances = {i.instance_number: i for i in await repo.instances_for_template("tpl-1")}
        for n in (3, 4, 5):
            assert instances[n].amount == 150.0
            assert instances[n].location == "New address"
        for n in (1, 2):
            assert instances[n].amount == 120.0
            assert instances[n].updated_at == past[n - 1].updated_at

    async def test_in_progress_future_instance_untouched(self, repo, make_instance):
        await repo.save_instance(make_instance(day=date(2024, 3, 2), status=JobStatus.IN_PROGRESS))
        lifecycle = TemplateLifecycleManager(repo)

        assert await lifecycle.update_future_instances("tpl-1", {"notes": "x"}, today=TODAY) == 0

    async def test_job_type_coerced(self, repo, make_instance):
        await self._seed(repo, make_instance)
        lifecycle = TemplateLifecycleManager(repo)

        await lifecycle.update_future_instances("tpl-1", {"job_type": "commercial"}, today=TODAY)

        future = await repo.instances_for_template("tpl-1", date_from=TODAY)
        assert {i.job_type for i in future} == {JobType.COMMERCIAL}

    async def test_rejects_structural_fields(self, repo):
        lifecycle = TemplateLifecycleManager(repo)
        with pytest.raises(ValueError):
            await lifecycle.update_future_instances("tpl-1", {"date": "2024-05-01"}, today=TODAY)

    async def test_cancel_future(self, repo, make_instance):
        await self._seed(repo, make_instance)
        lifecycle = TemplateLifecycleManager(repo)

        assert await lifecycle.cancel_future_instances("tpl-1", today=TODAY) == 3

        stats = await lifecycle.instance_stats("tpl-1")
        assert stats == {
            "total": 5,
            "scheduled": 0,
            "in-progress": 0,
            "completed": 2,
            "cancelled": 3,
        }


@pytest.mark.asyncio
class TestInstanceOperations:
    async def test_set_status(self, repo, make_instance):
        instance = make_instance()
        await repo.save_instance(instance)
        lifecycle = TemplateLifecycleManager(repo)

        updated = await lifecycle.set_status(instance.id, "completed")

        assert updated.status is JobStatus.COMPLETED
        assert (await repo.get_instance(instance.id)).status is JobStatus.COMPLETED
        assert await lifecycle.set_status("missing", JobStatus.COMPLETED) is None

    async def test_set_status_rejects_unknown_value(self, repo):
        with pytest.raises(ValueError):
            await TemplateLifecycleManager(repo).set_status("any", "paused")

    async def test_bulk_set_status(self, repo, make_instance):
        instances = [make_instance(number=n) for n in (1, 2)]
        await repo.save_instances(instances)

        result = await TemplateLifecycleManager(repo).bulk_set_status(
            [instances[0].id, "missing", instances[1].id], JobStatus.IN_PROGRESS
        )

        assert result.succeeded == 2
        assert result.failed == 1
        assert "missing" in result.errors

    async def test_delete_removes_calendar_event_first(self, repo, make_instance):
        orchestrator = _orchestrator()
        instance = make_instance(external_event_id="evt-1")
        await repo.save_instance(instance)

        assert await TemplateLifecycleManager(repo, orchestrator).delete_instance(instance)

        orchestrator.unsync_one.assert_awaited_once_with(instance)
        assert await repo.get_instance(instance.id) is None

    async def test_delete_without_calendar_connection(self, repo, make_instance):
        gateway = MagicMock()
        gateway.credentials.is_configured = AsyncMock(return_value=False)
        gateway.delete_event = AsyncMock()
        instance = make_instance(external_event_id="evt-1")
        await repo.save_instance(instance)
        lifecycle = TemplateLifecycleManager(repo, SyncOrchestrator(gateway, repo))

        assert await lifecycle.delete_instance(instance)
        assert await repo.get_instance(instance.id) is None
        gateway.delete_event.assert_not_awaited()

    async def test_bulk_delete_isolates_failures(self, repo, make_instance):
        orchestrator = _orchestrator()
        ok = make_instance(number=1)
        broken = make_instance(number=2, external_event_id="evt-2")
        await repo.save_instances([ok, broken])

        async def unsync(instance):
            raise CalendarError("provider down", status_code=503)

        orchestrator.unsync_one.side_effect = unsync
        lifecycle = TemplateLifecycleManager(repo, orchestrator)

        result = await lifecycle.bulk_delete([broken.id, ok.id, "missing"])

        assert result.succeeded == 1
        assert result.failed == 2
        assert set(result.errors) == {broken.id, "missing"}
        assert await repo.get_instance(ok.id) is None
        # Calendar failure keeps the row so the event is not orphaned
        assert await repo.get_instance(broken.id) is not None
