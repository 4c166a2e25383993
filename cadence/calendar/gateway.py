"""
CalendarGateway — all interaction with the external calendar provider.

Every outbound call:
1. Ensures the access token is valid (refreshing within 5 minutes of expiry)
2. Sends the request with a bearer token
3. On 401, refreshes once and retries once; a second 401, or a token
   backend failure during that refresh, is a CalendarError

Status mapping:
    2xx → success
    404 on update → NotFoundError; on delete → success
    else → CalendarError

The gateway never writes job state; callers store the returned external id.
"""

from __future__ import annotations

import logging
from typing import Any, Callable
from urllib.parse import quote

import httpx

from cadence.calendar.credentials import CredentialManager
from cadence.calendar.payload import Schedulable, build_event_payload
from cadence.core.config import CalendarConfig
from cadence.core.errors import (
    AuthExpiredError,
    CadenceError,
    CalendarError,
    NotFoundError,
    TokenServiceError,
)
from cadence.core.types import CalendarCredential, ConnectionStatus, EventRef

logger = logging.getLogger(__name__)

MAX_AUTH_RETRIES = 1


class CalendarGateway:
    """
    Usage:
        gateway = CalendarGateway(credentials, config.calendar)
        ref = await gateway.create_event(instance)
        await gateway.update_event(ref.external_id, instance)
        await gateway.delete_event(ref.external_id)
    """

    def __init__(
        self,
        credentials: CredentialManager,
        config: CalendarConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._credentials = credentials
        self._config = config or CalendarConfig()
        self._base_url = self._config.api_base_url.rstrip("/")
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def credentials(self) -> CredentialManager:
        return self._credentials

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.timeout, connect=10.0),
            )
            self._owns_client = True
        return self._client

    # ━━━ Event CRUD ━━━

    async def create_event(self, job: Schedulable) -> EventRef:
        credential = await self._credentials.ensure_valid_token()
        response = await self._call(
            "POST",
            _events_path,
            credential,
            json_body=self._payload(job, credential),
        )
        _raise_for_status(response, "create event")
        ref = _event_ref(response)
        logger.info(f"Calendar event created: {ref.external_id}")
        return ref

    async def update_event(self, external_id: str, job: Schedulable) -> EventRef:
        event_id = _require_event_id(external_id)
        credential = await self._credentials.ensure_valid_token()
        response = await self._call(
            "PUT",
            lambda c: f"{_events_path(c)}/{quote(event_id, safe='')}",
            credential,
            json_body=self._payload(job, credential),
        )
        if response.status_code == 404:
            raise NotFoundError(f"Calendar event {event_id!r} not found", event_id=event_id)
        _raise_for_status(response, "update event")
        ref = _event_ref(response, fallback_id=event_id)
        logger.info(f"Calendar event updated: {ref.external_id}")
        return ref

    async def delete_event(self, external_id: str) -> None:
        """Delete an event. Already gone (404) counts as success."""
        event_id = _require_event_id(external_id)
        credential = await self._credentials.ensure_valid_token()
        response = await self._call(
            "DELETE",
            lambda c: f"{_events_path(c)}/{quote(event_id, safe='')}",
            credential,
        )
        if response.status_code in (404, 410):
            logger.debug(f"Calendar event {event_id!r} already deleted")
            return
        _raise_for_status(response, "delete event")
        logger.info(f"Calendar event deleted: {event_id}")

    async def test_connection(self) -> ConnectionStatus:
        """Round-trip diagnostic. Never raises."""
        try:
            credential = await self._credentials.ensure_valid_token()
            response = await self._call(
                "GET",
                lambda c: f"/calendars/{quote(c.calendar_id, safe='')}",
                credential,
            )
            _raise_for_status(response, "get calendar")
            data = response.json()
        except CadenceError as e:
            return ConnectionStatus(reachable=False, reason=e.message)
        except ValueError:
            return ConnectionStatus(reachable=False, reason="Provider returned invalid JSON")

        return ConnectionStatus(
            reachable=True,
            calendar_name=str(data.get("summary", "")),
            time_zone=str(data.get("timeZone", "")),
        )

    async def close(self) -> None:
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()

    # ━━━ Internal ━━━

    def _payload(self, job: Schedulable, credential: CalendarCredential) -> dict[str, Any]:
        return build_event_payload(
            job,
            time_zone=self._config.time_zone,
            reminder_minutes=credential.reminder_minutes or self._config.reminder_minutes,
            default_start=self._config.default_start,
            default_end=self._config.default_end,
        )

    async def _call(
        self,
        method: str,
        path_for: Callable[[CalendarCredential], str],
        credential: CalendarCredential,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send a request, refreshing the token and retrying at most once on 401."""
        attempt = 0
        while True:
            try:
                response = await self._send(method, path_for(credential), credential, json_body)
                return response
            except AuthExpiredError:
                if attempt >= MAX_AUTH_RETRIES:
                    raise CalendarError(
                        f"Calendar {method} rejected the token again after refresh",
                        status_code=401,
                    ) from None
                attempt += 1
                logger.info("Calendar token rejected, refreshing and retrying once")
                try:
                    credential = await self._credentials.refresh(stale_token=credential.access_token)
                except TokenServiceError as e:
                    raise CalendarError(
                        f"Calendar {method} retry failed, token refresh error: {e.message}",
                        status_code=e.status_code,
                    ) from e

    async def _send(
        self,
        method: str,
        path: str,
        credential: CalendarCredential,
        json_body: dict[str, Any] | None,
    ) -> httpx.Response:
        client = await self._get_client()
        try:
            response = await client.request(
                method,
                f"{self._base_url}{path}",
                json=json_body,
                headers={"Authorization": f"Bearer {credential.access_token}"},
            )
        except httpx.HTTPError as e:
            raise CalendarError(f"Calendar request failed: {e}") from e

        if response.status_code == 401:
            raise AuthExpiredError("Calendar access token rejected (401)")
        return response


def _events_path(credential: CalendarCredential) -> str:
    return f"/calendars/{quote(credential.calendar_id, safe='')}/events"


def _require_event_id(external_id: str) -> str:
    event_id = (external_id or "").strip()
    if not event_id:
        raise ValueError("external_id must be a non-empty string")
    return event_id


def _raise_for_status(response: httpx.Response, action: str) -> None:
    if 200 <= response.status_code < 300:
        return
    raise CalendarError(
        f"Calendar {action} failed ({response.status_code}): {_safe_error_message(response)}",
        status_code=response.status_code,
    )


def _event_ref(response: httpx.Response, fallback_id: str = "") -> EventRef:
    try:
        data = response.json()
    except ValueError as e:
        raise CalendarError("Calendar provider returned invalid JSON for an event") from e
    event_id = data.get("id") if isinstance(data, dict) else None
    if not event_id and not fallback_id:
        raise CalendarError("Calendar provider response is missing the event id")
    return EventRef(external_id=str(event_id or fallback_id), link=str(data.get("htmlLink") or ""))


def _safe_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return response.text[:200]
