"""
JobRepository — typed access to templates and instances.

Both live in the "jobs" collection, told apart by their "type" field.
"""

from __future__ import annotations

import logging
from datetime import date

from cadence.core.types import JobInstance, JobStatus, JobTemplate, job_from_document
from cadence.store.base import DocumentStore, Filter, where

logger = logging.getLogger(__name__)

JOBS_COLLECTION = "jobs"


class JobRepository:
    """
    Usage:
        repo = JobRepository(store)
        await repo.save_template(template)
        future = await repo.instances_for_template(template.id, date_from=date.today())
    """

    def __init__(self, store: DocumentStore, collection: str = JOBS_COLLECTION) -> None:
        self._store = store
        self._collection = collection

    @property
    def store(self) -> DocumentStore:
        return self._store

    # ── Templates ────────────────────────────────────────────────────────────

    async def get_template(self, template_id: str) -> JobTemplate | None:
        doc = await self._store.get(self._collection, template_id)
        if doc is None or doc.get("type") != "template":
            return None
        return job_from_document(doc)  # type: ignore[return-value]

    async def save_template(self, template: JobTemplate) -> None:
        await self._store.put(self._collection, template.id, template.to_dict())

    async def list_templates(self) -> list[JobTemplate]:
        docs = await self._store.query(self._collection, [where("type", "==", "template")])
        return [job_from_document(d) for d in docs]  # type: ignore[misc]

    # ── Instances ────────────────────────────────────────────────────────────

    async def get_instance(self, instance_id: str) -> JobInstance | None:
        doc = await self._store.get(self._collection, instance_id)
        if doc is None or doc.get("type") != "instance":
            return None
        return job_from_document(doc)  # type: ignore[return-value]

    async def save_instance(self, instance: JobInstance) -> None:
        await self._store.put(self._collection, instance.id, instance.to_dict())

    async def save_instances(self, instances: list[JobInstance]) -> int:
        """Persist a batch of generated instances. Returns how many were written."""
        for instance in instances:
            await self.save_instance(instance)
        return len(instances)

    async def instances_for_template(
        self,
        template_id: str,
        *,
        date_from: date | None = None,
        date_to: date | None = None,
        status: JobStatus | None = None,
    ) -> list[JobInstance]:
        """Instances of a template, optionally bounded by date (inclusive) and status, sorted by date."""
        filters: list[Filter] = [
            where("templateId", "==", template_id),
            where("type", "==", "instance"),
        ]
        if date_from is not None:
            filters.append(where("date", ">=", date_from.isoformat()))
        if date_to is not None:
            filters.append(where("date", "<=", date_to.isoformat()))
        if status is not None:
            filters.append(where("status", "==", status.value))

        docs = await self._store.query(self._collection, filters)
        instances: list[JobInstance] = [job_from_document(d) for d in docs]  # type: ignore[misc]
        return sorted(instances, key=lambda i: (i.date, i.instance_number))

    async def existing_dates(self, template_id: str) -> set[str]:
        """ISO date strings that already have an instance for this template."""
        return {i.date_key for i in await self.instances_for_template(template_id)}

    async def has_instance_on_or_after(self, template_id: str, day: date) -> bool:
        return bool(await self.instances_for_template(template_id, date_from=day))

    async def syncable_instances(self) -> list[JobInstance]:
        """Every instance that is still scheduled or in progress."""
        result: list[JobInstance] = []
        for status in (JobStatus.SCHEDULED, JobStatus.IN_PROGRESS):
            docs = await self._store.query(
                self._collection,
                [where("type", "==", "instance"), where("status", "==", status.value)],
            )
            result.extend(job_from_document(d) for d in docs)  # type: ignore[misc]
        return sorted(result, key=lambda i: i.date)

    async def set_external_event_id(self, instance_id: str, event_id: str | None) -> bool:
        """Record (or clear, with None) the calendar event id on a stored instance."""
        return await self._store.update(
            self._collection, instance_id, {"externalEventId": event_id}
        )

    async def delete_instance(self, instance_id: str) -> bool:
        return await self._store.delete(self._collection, instance_id)
