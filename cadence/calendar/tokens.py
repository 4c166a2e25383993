"""
TokenService — talks to the backend that owns the OAuth client secret.

The calendar provider's token endpoints are never called directly; the
backend exposes two operations:

    POST {base_url}/exchangeGoogleCode  {"code": "..."}   → {"success": true}
    POST {base_url}/getAccessToken                       → {"accessToken", "expiryDate"}

expiryDate is epoch milliseconds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from cadence.core.errors import NotConfiguredError, TokenServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AccessToken:
    token: str
    expiry_date: int | None  # epoch millis


class TokenService:
    """
    Client for the backend token endpoints.

    Usage:
        tokens = TokenService("https://us-central1-myapp.cloudfunctions.net")
        await tokens.exchange_code(code)
        fresh = await tokens.refresh_access_token()
    """

    def __init__(
        self,
        base_url: str,
        exchange_path: str = "/exchangeGoogleCode",
        refresh_path: str = "/getAccessToken",
        timeout: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._exchange_path = exchange_path
        self._refresh_path = refresh_path
        self._timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def configured(self) -> bool:
        return bool(self._base_url)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._client

    async def exchange_code(self, code: str) -> None:
        """Trade an OAuth authorization code for tokens (stored by the backend)."""
        if not code.strip():
            raise ValueError("Authorization code must be a non-empty string")
        await self._post(self._exchange_path, {"code": code.strip()})
        logger.info("Authorization code exchanged")

    async def refresh_access_token(self) -> AccessToken:
        payload = await self._post(self._refresh_path, {}, not_connected=(400, 404))
        token = payload.get("accessToken")
        if not isinstance(token, str) or not token.strip():
            raise TokenServiceError("Token service response is missing accessToken")

        expiry = payload.get("expiryDate")
        try:
            expiry_ms = int(expiry) if expiry is not None else None
        except (TypeError, ValueError):
            raise TokenServiceError(f"Token service returned invalid expiryDate: {expiry!r}") from None

        return AccessToken(token=token.strip(), expiry_date=expiry_ms)

    async def close(self) -> None:
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()

    # ── Internal ─────────────────────────────────────────────────────────────

    async def _post(
        self,
        path: str,
        body: dict[str, Any],
        not_connected: tuple[int, ...] = (),
    ) -> dict[str, Any]:
        """POST to the backend. Statuses in not_connected mean no stored refresh token."""
        if not self.configured:
            raise NotConfiguredError("Token service URL is not configured")

        client = await self._get_client()
        url = f"{self._base_url}{path}"
        try:
            response = await client.post(url, json=body)
        except httpx.HTTPError as e:
            raise TokenServiceError(f"Token service request to {path} failed: {e}") from e

        if response.status_code in not_connected:
            raise NotConfiguredError(
                f"Calendar is not connected ({response.status_code}): {_error_message(response)}"
            )
        if response.status_code < 200 or response.status_code >= 300:
            raise TokenServiceError(
                f"Token service error ({response.status_code}): {_error_message(response)}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TokenServiceError("Token service returned invalid JSON") from e
        if not isinstance(payload, dict):
            raise TokenServiceError("Token service returned an unexpected payload shape")
        return payload


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"]
    return response.text[:200]
