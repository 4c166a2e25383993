"""
CadenceApp — composition root.

Builds the store, repository, credential manager, gateway, orchestrator and
lifecycle manager from a CadenceConfig and owns their shutdown.

Usage:
    app = await CadenceApp.from_config(CadenceConfig.load())
    try:
        await app.lifecycle.ensure_generated(template)
        result = await app.orchestrator.auto_sync()
    finally:
        await app.close()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from cadence.calendar.credentials import CredentialManager
from cadence.calendar.gateway import CalendarGateway
from cadence.calendar.tokens import TokenService
from cadence.core.config import CadenceConfig
from cadence.core.errors import ConfigError
from cadence.lifecycle.manager import TemplateLifecycleManager
from cadence.store.base import DocumentStore
from cadence.store.jobs import JobRepository
from cadence.store.memory import InMemoryDocumentStore
from cadence.store.sqlite import SQLiteDocumentStore
from cadence.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class CadenceApp:
    config: CadenceConfig
    store: DocumentStore
    repo: JobRepository
    tokens: TokenService
    credentials: CredentialManager
    gateway: CalendarGateway
    orchestrator: SyncOrchestrator
    lifecycle: TemplateLifecycleManager

    @classmethod
    async def from_config(
        cls,
        config: CadenceConfig,
        store: DocumentStore | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> CadenceApp:
        """Wire every component. store/http_client can be injected for tests."""
        if store is None:
            store = await _open_store(config)

        tokens = TokenService(
            config.token_service.base_url,
            exchange_path=config.token_service.exchange_path,
            refresh_path=config.token_service.refresh_path,
            timeout=config.token_service.timeout,
            http_client=http_client,
        )
        credentials = CredentialManager(
            store,
            tokens,
            provider=config.calendar.provider,
            refresh_margin_seconds=config.calendar.refresh_margin_seconds,
            calendar_id=config.calendar.calendar_id,
            reminder_minutes=config.calendar.reminder_minutes,
        )
        gateway = CalendarGateway(credentials, config.calendar, http_client=http_client)
        repo = JobRepository(store)
        orchestrator = SyncOrchestrator(gateway, repo, max_concurrency=config.sync.max_concurrency)
        lifecycle = TemplateLifecycleManager(
            repo,
            orchestrator,
            window_days=config.generation.window_days,
            min_days_ahead=config.generation.min_days_ahead,
        )
        logger.debug(f"Cadence wired with {config.store.backend} store")
        return cls(
            config=config,
            store=store,
            repo=repo,
            tokens=tokens,
            credentials=credentials,
            gateway=gateway,
            orchestrator=orchestrator,
            lifecycle=lifecycle,
        )

    async def close(self) -> None:
        await self.gateway.close()
        await self.tokens.close()
        await self.store.close()


async def _open_store(config: CadenceConfig) -> DocumentStore:
    backend = config.store.backend
    if backend == "memory":
        return InMemoryDocumentStore()
    if backend == "sqlite":
        store = SQLiteDocumentStore(config.get_store_path())
        await store.initialize()
        return store
    raise ConfigError(f"Unknown store backend: {backend!r}")
