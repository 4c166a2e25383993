"""
TemplateLifecycleManager — bulk operations over a template's instances.

Keeps a rolling window of future instances materialized without a
background scheduler: ensure_generated() is cheap to call whenever a
template is viewed and only generates when the window runs short.

Template-level edits only ever touch instances dated today or later that
are still scheduled. Completed, cancelled and past instances are history
and are never rewritten.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any

from cadence.core.types import BulkResult, JobInstance, JobStatus, JobTemplate, JobType, utc_now_iso
from cadence.recurrence.expander import DEFAULT_WINDOW_DAYS, generate_instances
from cadence.store.jobs import JobRepository

if TYPE_CHECKING:
    from cadence.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_MIN_DAYS_AHEAD = 30

# Instance attributes a template-level edit may change
UPDATABLE_FIELDS = frozenset(
    {
        "client_name",
        "job_type",
        "amount",
        "location",
        "description",
        "notes",
        "status",
        "start_time",
        "end_time",
    }
)


class TemplateLifecycleManager:
    """
    Usage:
        lifecycle = TemplateLifecycleManager(repo, orchestrator)
        if await lifecycle.ensure_generated(template):
            ...
        await lifecycle.update_future_instances(template.id, {"amount": 150.0})
        await lifecycle.cancel_future_instances(template.id)
    """

    def __init__(
        self,
        repo: JobRepository,
        orchestrator: SyncOrchestrator | None = None,
        window_days: int = DEFAULT_WINDOW_DAYS,
        min_days_ahead: int = DEFAULT_MIN_DAYS_AHEAD,
    ) -> None:
        self._repo = repo
        self._orchestrator = orchestrator
        self._window_days = window_days
        self._min_days_ahead = min_days_ahead

    # ── Generation ───────────────────────────────────────────────────────────

    async def needs_generation(
        self,
        template: JobTemplate,
        min_days_ahead: int | None = None,
        today: date | None = None,
    ) -> bool:
        """True when no instance exists on or after today + min_days_ahead."""
        days = self._min_days_ahead if min_days_ahead is None else min_days_ahead
        horizon = (today or date.today()) + timedelta(days=days)
        return not await self._repo.has_instance_on_or_after(template.id, horizon)

    async def ensure_generated(
        self,
        template: JobTemplate,
        min_days_ahead: int | None = None,
        today: date | None = None,
    ) -> bool:
        """
        Generate and persist instances when the future window runs short.

        Returns True if generation ran, False if the window was already covered.
        """
        today = today or date.today()
        if not await self.needs_generation(template, min_days_ahead, today):
            return False

        existing = await self._repo.existing_dates(template.id)
        instances = generate_instances(
            template,
            window_days=self._window_days,
            existing_dates=existing,
            today=today,
        )
        saved = await self._repo.save_instances(instances)
        logger.info(f"Generated {saved} instance(s) for template {template.id}")
        return True

    # ── Template-level edits ─────────────────────────────────────────────────

    async def update_future_instances(
        self,
        template_id: str,
        updates: dict[str, Any],
        today: date | None = None,
    ) -> int:
        """
        Apply field updates to every future, still-scheduled instance.

        Returns the number of instances changed.

        Raises:
            ValueError: an update names a field that is not updatable.
        """
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated from a template: {sorted(unknown)}")
        changes = _coerce_updates(updates)

        future = await self._repo.instances_for_template(
            template_id,
            date_from=today or date.today(),
            status=JobStatus.SCHEDULED,
        )
        stamp = utc_now_iso()
        for instance in future:
            await self._repo.save_instance(dataclasses.replace(instance, **changes, updated_at=stamp))

        logger.info(f"Updated {len(future)} future instance(s) of template {template_id}")
        return len(future)

    async def cancel_future_instances(self, template_id: str, today: date | None = None) -> int:
        """Mark every future, still-scheduled instance cancelled. Calendar is untouched."""
        return await self.update_future_instances(
            template_id, {"status": JobStatus.CANCELLED}, today=today
        )

    # ── Individual and selected instances ────────────────────────────────────

    async def set_status(self, instance_id: str, status: JobStatus | str) -> JobInstance | None:
        """Change one instance's status. Returns the updated instance, None if missing."""
        new_status = JobStatus(status)
        instance = await self._repo.get_instance(instance_id)
        if instance is None:
            return None
        instance.status = new_status
        instance.updated_at = utc_now_iso()
        await self._repo.save_instance(instance)
        return instance

    async def bulk_set_status(
        self, instance_ids: Iterable[str], status: JobStatus | str
    ) -> BulkResult:
        new_status = JobStatus(status)
        result = BulkResult()
        for instance_id in instance_ids:
            try:
                updated = await self.set_status(instance_id, new_status)
            except Exception as e:
                logger.warning(f"Failed to update status of {instance_id}: {e}")
                result.failed += 1
                result.errors[instance_id] = str(e)
                continue
            if updated is None:
                result.failed += 1
                result.errors[instance_id] = "not found"
            else:
                result.succeeded += 1
        return result

    async def delete_instance(self, instance: JobInstance) -> bool:
        """
        Delete one instance, removing its calendar event first.

        A disconnected calendar skips the event removal. Any other calendar
        failure propagates and leaves the row in place.
        """
        if instance.external_event_id and self._orchestrator is not None:
            await self._orchestrator.unsync_one(instance)
        return await self._repo.delete_instance(instance.id)

    async def bulk_delete(self, instance_ids: Iterable[str]) -> BulkResult:
        """Delete selected instances. One failure never blocks the others."""
        result = BulkResult()
        for instance_id in instance_ids:
            try:
                instance = await self._repo.get_instance(instance_id)
                if instance is None:
                    result.failed += 1
                    result.errors[instance_id] = "not found"
                    continue
                await self.delete_instance(instance)
            except Exception as e:
                logger.warning(f"Failed to delete instance {instance_id}: {e}")
                result.failed += 1
                result.errors[instance_id] = str(e)
                continue
            result.succeeded += 1
        logger.info(f"Bulk delete: {result.succeeded} deleted, {result.failed} failed")
        return result

    async def instance_stats(self, template_id: str) -> dict[str, int]:
        """Total instance count plus one count per status."""
        instances = await self._repo.instances_for_template(template_id)
        stats = {"total": len(instances)}
        for status in JobStatus:
            stats[status.value] = sum(1 for i in instances if i.status is status)
        return stats


def _coerce_updates(updates: dict[str, Any]) -> dict[str, Any]:
    changes = dict(updates)
    if "status" in changes:
        changes["status"] = JobStatus(changes["status"])
    if "job_type" in changes:
        changes["job_type"] = JobType(changes["job_type"])
    if "amount" in changes:
        changes["amount"] = float(changes["amount"])
    return changes
