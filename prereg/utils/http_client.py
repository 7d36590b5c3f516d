"""Outbound HTTP for the magic-link provider.

Only transport failures (timeouts, refused or dropped connections) are
retried, with exponential backoff. Any HTTP response, 4xx or 5xx included,
goes straight back to the caller: the OTP endpoint sends an email, so a
request the provider answered must not be replayed.
"""

import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from prereg import __version__
from prereg.config import get_settings

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (httpx.TimeoutException, httpx.NetworkError)


class AsyncHttpClient:
    """Pooled ``httpx.AsyncClient`` with transport-level retries.

    ``transport`` is passed through to httpx (tests use ``MockTransport``).
    """

    def __init__(
        self,
        timeout: float | None = None,
        max_attempts: int = 3,
        max_connections: int = 20,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.max_attempts = max_attempts
        self._timeout = httpx.Timeout(timeout or get_settings().auth_provider_timeout, connect=5.0)
        self._limits = httpx.Limits(max_connections=max_connections)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "AsyncHttpClient":
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            limits=self._limits,
            transport=self._transport,
            headers={"User-Agent": f"prereg/{__version__}"},
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("AsyncHttpClient used outside 'async with'")
        return self._client

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """POST ``url``; the response status is left for the caller to check.

        Raises:
            httpx.TimeoutException / httpx.NetworkError: still failing after
                ``max_attempts`` tries
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await self.client.post(url, **kwargs)
        raise AssertionError("unreachable")


_shared: AsyncHttpClient | None = None


async def get_http_client() -> AsyncHttpClient:
    """Application-wide client, opened on first use and closed in the lifespan."""
    global _shared
    if _shared is None:
        _shared = await AsyncHttpClient().__aenter__()
    return _shared


async def close_http_client() -> None:
    global _shared
    if _shared is not None:
        await _shared.aclose()
        _shared = None
