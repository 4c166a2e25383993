"""
CredentialManager — lifecycle of the process-wide calendar credential.

States:
    Disconnected ──connect──▶ Connected(valid) ──time──▶ Connected(expiring)
    Connected(expiring) ──refresh──▶ Connected(valid)
    Connected ──disconnect──▶ Disconnected

The credential lives in the settings/calendar document under
providers.<name>, next to fields the backend writes itself (refreshToken),
which are preserved on save.

One credential per deployment. Concurrent refreshes inside a process are
serialized; across processes the last write wins, which is safe because a
refresh only ever replaces a token with a newer valid one.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from cadence.calendar.tokens import TokenService
from cadence.core.errors import NotConfiguredError
from cadence.core.types import CalendarCredential, utc_now_iso
from cadence.store.base import DocumentStore

logger = logging.getLogger(__name__)

SETTINGS_COLLECTION = "settings"
CALENDAR_SETTINGS_ID = "calendar"
DEFAULT_REFRESH_MARGIN_SECONDS = 300


class CredentialManager:
    """
    Usage:
        credentials = CredentialManager(store, TokenService(url))
        await credentials.connect(auth_code)
        cred = await credentials.ensure_valid_token()   # refreshes when near expiry
        await credentials.disconnect()
    """

    def __init__(
        self,
        store: DocumentStore,
        token_service: TokenService | None = None,
        provider: str = "google",
        refresh_margin_seconds: int = DEFAULT_REFRESH_MARGIN_SECONDS,
        calendar_id: str = "primary",
        reminder_minutes: list[int] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._tokens = token_service
        self._provider = provider
        self._margin_ms = refresh_margin_seconds * 1000
        self._calendar_id = calendar_id
        self._reminder_minutes = list(reminder_minutes or [60, 1440])
        self._clock = clock
        self._refresh_lock = asyncio.Lock()

    @property
    def provider(self) -> str:
        return self._provider

    # ── Persistence ──────────────────────────────────────────────────────────

    async def load(self) -> CalendarCredential | None:
        """Read the stored credential. None if the provider was never connected."""
        settings = await self._store.get(SETTINGS_COLLECTION, CALENDAR_SETTINGS_ID)
        if not settings:
            return None
        data = (settings.get("providers") or {}).get(self._provider)
        if not data:
            return None
        return CalendarCredential.from_dict(data)

    async def save(self, credential: CalendarCredential) -> None:
        settings = await self._store.get(SETTINGS_COLLECTION, CALENDAR_SETTINGS_ID) or {}
        providers = settings.setdefault("providers", {})
        entry = providers.setdefault(self._provider, {})
        entry.update(credential.to_dict())
        settings["updatedAt"] = utc_now_iso()
        await self._store.put(SETTINGS_COLLECTION, CALENDAR_SETTINGS_ID, settings)

    # ── State ────────────────────────────────────────────────────────────────

    async def is_configured(self) -> bool:
        credential = await self.load()
        return credential is not None and credential.usable

    def is_expiring(self, credential: CalendarCredential) -> bool:
        """
        True once now is within the refresh margin of expiry.

        A credential without an expiry date is treated as valid; an expired
        token then surfaces as a provider 401 and triggers the retry path.
        """
        if credential.expiry_date is None:
            return False
        now_ms = int(self._clock() * 1000)
        return now_ms >= credential.expiry_date - self._margin_ms

    async def ensure_valid_token(self) -> CalendarCredential:
        """
        Return a usable credential, refreshing it first when near expiry.

        Raises:
            NotConfiguredError: integration absent or disabled.
        """
        credential = await self.load()
        if credential is None or not credential.usable:
            raise NotConfiguredError(f"{self._provider} calendar is not connected")
        if self.is_expiring(credential):
            logger.info(f"{self._provider} calendar token expiring, refreshing")
            credential = await self.refresh(stale_token=credential.access_token)
        return credential

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def refresh(self, stale_token: str | None = None) -> CalendarCredential:
        """
        Fetch a fresh access token from the token service and persist it.

        If stale_token is given and the stored token has already moved on
        (another caller refreshed first), the stored credential is returned
        without another round trip.
        """
        async with self._refresh_lock:
            credential = await self.load()
            if credential is None or not credential.enabled:
                raise NotConfiguredError(f"{self._provider} calendar is not connected")

            if (
                stale_token is not None
                and credential.access_token
                and credential.access_token != stale_token
                and not self.is_expiring(credential)
            ):
                logger.debug("Token already refreshed by a concurrent caller")
                return credential

            if self._tokens is None or not self._tokens.configured:
                raise NotConfiguredError("No token service configured to refresh the calendar token")

            fresh = await self._tokens.refresh_access_token()
            credential.access_token = fresh.token
            credential.expiry_date = fresh.expiry_date
            await self.save(credential)
            logger.info(f"{self._provider} calendar token refreshed")
            return credential

    async def connect(self, code: str) -> CalendarCredential:
        """Complete the authorization-code flow and store a usable credential."""
        if self._tokens is None or not self._tokens.configured:
            raise NotConfiguredError("No token service configured to exchange the authorization code")

        await self._tokens.exchange_code(code)
        fresh = await self._tokens.refresh_access_token()

        existing = await self.load()
        credential = CalendarCredential(
            access_token=fresh.token,
            expiry_date=fresh.expiry_date,
            calendar_id=existing.calendar_id if existing else self._calendar_id,
            enabled=True,
            sync_enabled=True,
            reminder_minutes=existing.reminder_minutes if existing else list(self._reminder_minutes),
        )
        await self.save(credential)
        logger.info(f"{self._provider} calendar connected")
        return credential

    async def disconnect(self) -> None:
        """Clear the access token and mark the provider disabled."""
        credential = await self.load() or CalendarCredential(calendar_id=self._calendar_id)
        credential.access_token = None
        credential.expiry_date = None
        credential.enabled = False
        await self.save(credential)
        logger.info(f"{self._provider} calendar disconnected")
