"""
SyncOrchestrator — pushes job instances out to the calendar provider.

Sync is one-way (local → provider) and opportunistic: when the calendar is
not connected, single-item operations quietly do nothing.

sync_many is the one place that swallows errors. Each instance is attempted
independently; a failure is counted and logged, never allowed to stop the
rest of the batch.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from cadence.calendar.gateway import CalendarGateway
from cadence.core.errors import NotConfiguredError, NotFoundError
from cadence.core.types import Job, JobInstance, JobStatus, SyncResult
from cadence.store.jobs import JobRepository

logger = logging.getLogger(__name__)

_INACTIVE = (JobStatus.COMPLETED, JobStatus.CANCELLED)
DEFAULT_MAX_CONCURRENCY = 4


class SyncOrchestrator:
    """
    Usage:
        orchestrator = SyncOrchestrator(gateway, repo)
        event_id = await orchestrator.sync_one(instance)
        result = await orchestrator.sync_many(instances)
        print(result.summary())   # "4 of 5 synced, 1 failed, 0 skipped"
    """

    def __init__(
        self,
        gateway: CalendarGateway,
        repo: JobRepository,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._gateway = gateway
        self._repo = repo
        self._max_concurrency = max_concurrency

    async def is_configured(self) -> bool:
        return await self._gateway.credentials.is_configured()

    async def sync_one(self, instance: JobInstance) -> str | None:
        """
        Create or update the calendar event for one instance.

        Returns the external event id, or None when the calendar is not
        connected, including when the token backend reports the credential
        gone mid-refresh. Provider errors propagate; the stored instance is
        only written after the provider call succeeds.
        """
        if not await self.is_configured():
            logger.debug(f"Calendar not connected, skipping sync of {instance.id}")
            return None

        try:
            return await self._push(instance)
        except NotConfiguredError as e:
            logger.debug(f"Calendar not connected, skipping sync of {instance.id}: {e.message}")
            return None

    async def _push(self, instance: JobInstance) -> str:
        if instance.external_event_id:
            try:
                await self._gateway.update_event(instance.external_event_id, instance)
                return instance.external_event_id
            except NotFoundError:
                logger.info(
                    f"Event {instance.external_event_id!r} for {instance.id} is gone, re-creating"
                )

        ref = await self._gateway.create_event(instance)
        await self._repo.set_external_event_id(instance.id, ref.external_id)
        instance.external_event_id = ref.external_id
        return ref.external_id

    async def unsync_one(self, instance: JobInstance) -> None:
        """
        Remove an instance's calendar event and clear its external id.

        No-op when there is no external id or the calendar is not connected.
        An event already deleted on the provider side still clears the field.
        """
        if not instance.external_event_id:
            return
        if not await self.is_configured():
            logger.debug(f"Calendar not connected, leaving {instance.id} linked")
            return

        try:
            await self._gateway.delete_event(instance.external_event_id)
        except NotConfiguredError as e:
            logger.debug(f"Calendar not connected, leaving {instance.id} linked: {e.message}")
            return
        await self._repo.set_external_event_id(instance.id, None)
        instance.external_event_id = None

    async def sync_many(self, jobs: Iterable[Job]) -> SyncResult:
        """
        Sync a batch of instances with per-item failure isolation.

        Skipped without a provider call: templates, completed or cancelled
        instances, and instances already linked to an event. No ordering is
        guaranteed between instances.
        """
        result = SyncResult()
        pending: list[JobInstance] = []
        for job in jobs:
            if (
                not isinstance(job, JobInstance)
                or job.status in _INACTIVE
                or job.external_event_id
            ):
                result.skipped += 1
                continue
            pending.append(job)

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _attempt(instance: JobInstance) -> None:
            async with semaphore:
                try:
                    event_id = await self.sync_one(instance)
                except Exception as e:
                    logger.warning(f"Failed to sync job {instance.id}: {e}")
                    result.failed += 1
                    result.errors[instance.id] = str(e)
                    return
            if event_id is None:
                result.skipped += 1
            else:
                result.synced += 1

        await asyncio.gather(*(_attempt(i) for i in pending))
        logger.info(f"Bulk sync finished: {result.summary()}")
        return result

    async def auto_sync(self) -> SyncResult:
        """Sync every scheduled or in-progress instance in the store."""
        if not await self.is_configured():
            logger.debug("Calendar not connected, auto-sync skipped")
            return SyncResult()
        return await self.sync_many(await self._repo.syncable_instances())
