"""HTTP transport with bounded retries and exponential back-off.

Every outbound call of the fetch layer goes through :class:`RetryingTransport`.
Rate limiting (429), temporary unavailability (503) and network-level failures
are retried with ``base_delay * 2 ** attempt``; any other error status is
terminal for the call. The HTTP client factory and the sleep function are
injectable so tests can run against :class:`httpx.MockTransport` without
waiting.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from core.config_models import TransportSettings
from core.errors import TransportError

LOGGER = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 503})

ClientFactory = Callable[[], httpx.AsyncClient]
Sleep = Callable[[float], Awaitable[None]]


def backoff_delay(base_delay_s: float, attempt: int) -> float:
    """Delay before retrying after ``attempt`` (numbered from 0)."""

    return base_delay_s * (2 ** attempt)


class RetryingTransport:
    """Send JSON requests with retry on transient failure classes."""

    def __init__(
        self,
        settings: Optional[TransportSettings] = None,
        client_factory: Optional[ClientFactory] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings or TransportSettings()
        self._client_factory = client_factory or self._default_client
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def settings(self) -> TransportSettings:
        return self._settings

    def _default_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self._settings.timeout_s),
            headers={"Content-Type": "application/json"},
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    async def send(self, url: str, body: Any) -> httpx.Response:
        """POST ``body`` as JSON to ``url``."""

        return await self._request("POST", url, json=body)

    async def get(self, url: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        return await self._request("GET", url, params=params)

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        client = self._get_client()
        max_retries = self._settings.max_retries
        last_cause = "no attempt made"
        last_status: Optional[int] = None

        for attempt in range(max_retries + 1):
            try:
                response = await client.request(method, url, **kwargs)
            except httpx.TransportError as exc:
                last_cause = f"{type(exc).__name__}: {exc}"
                last_status = None
            except httpx.RequestError as exc:
                # Decoding errors and redirect loops are terminal.
                raise TransportError(url, f"{type(exc).__name__}: {exc}") from exc
            else:
                if response.is_success:
                    return response
                last_status = response.status_code
                last_cause = f"HTTP {response.status_code}"
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    raise TransportError(url, last_cause, status_code=last_status)

            if attempt == max_retries:
                break
            delay = backoff_delay(self._settings.base_delay_s, attempt)
            LOGGER.warning(
                "%s on attempt %d/%d for %s. Retrying in %.0fms",
                last_cause,
                attempt + 1,
                max_retries + 1,
                url,
                delay * 1000,
            )
            await self._sleep(delay)

        raise TransportError(url, f"{last_cause} after {max_retries + 1} attempts", status_code=last_status)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RetryingTransport":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


__all__ = ["RETRYABLE_STATUS_CODES", "RetryingTransport", "backoff_delay"]
