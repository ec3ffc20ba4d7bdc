"""JSON-over-HTTP client shared by the API adapters.

Rate-limited (429) and server-error (5xx) responses are retried within the
same page request; anything else that is not a 2xx becomes an
``AdapterFetchError``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from types import TracebackType
from typing import Any

import httpx

from record_graph.errors import AdapterFetchError

logger = logging.getLogger(__name__)

MAX_RETRY_AFTER_SECONDS = 300.0

_sleep = asyncio.sleep


def retry_delay(response: httpx.Response, attempt: int) -> float:
    """Seconds to wait before retrying ``response``.

    Honours a numeric ``Retry-After`` header, otherwise backs off
    exponentially from one second.
    """
    header = response.headers.get("Retry-After")
    if header is not None:
        try:
            return min(max(float(header), 0.0), MAX_RETRY_AFTER_SECONDS)
        except ValueError:
            logger.debug("Ignoring non-numeric Retry-After header: %s", header)
    return float(2**attempt)


class JsonApiClient:
    """Thin async wrapper over ``httpx.AsyncClient`` with retry on 429/5xx."""

    def __init__(
        self,
        source: str,
        base_url: str,
        headers: Mapping[str, str] | None = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._source = source
        self._max_retries = max_retries
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=dict(headers or {}),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self) -> JsonApiClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if not self._client.is_closed:
            await self._client.aclose()

    async def get_json(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        """GET ``path`` and decode the JSON body.

        Raises:
            AdapterFetchError: On network errors, exhausted retries or any
                other non-2xx status.
        """
        attempt = 0
        while True:
            try:
                response = await self._client.get(path, params=dict(params or {}))
            except httpx.RequestError as e:
                raise AdapterFetchError(self._source, f"Request to {path} failed: {e}") from e

            retryable = response.status_code == 429 or response.status_code >= 500
            if retryable and attempt < self._max_retries:
                delay = retry_delay(response, attempt)
                logger.warning(
                    "%s returned %d for %s, retrying in %.1fs (%d/%d)",
                    self._source,
                    response.status_code,
                    path,
                    delay,
                    attempt + 1,
                    self._max_retries,
                )
                await _sleep(delay)
                attempt += 1
                continue

            if response.status_code >= 400:
                raise AdapterFetchError(
                    self._source,
                    f"GET {path} failed with {response.status_code}: {response.text[:200]}",
                    status_code=response.status_code,
                )

            try:
                return response.json()
            except ValueError as e:
                raise AdapterFetchError(self._source, f"Invalid JSON from {path}: {e}") from e
