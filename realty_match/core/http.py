from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from realty_match.core.errors import ExternalServiceError, NonRetryableClientError, RateLimitedError
from realty_match.core.rate_limit import TokenBucket


LOGGER = logging.getLogger(__name__)

DEFAULT_HEADERS = {"User-Agent": "RealtyMatch/1.0"}


class RetryingHttpClient:
    """
    Shared HTTP client for every upstream fetcher. Each attempt takes a token
    from the bucket; 5xx, 429 and transport errors are retried with capped
    exponential backoff, other 4xx fail at once.
    """

    def __init__(
        self,
        bucket: TokenBucket,
        client: httpx.AsyncClient | None = None,
        retries: int = 3,
        timeout: float = 10.0,
        backoff_base: float = 0.5,
        backoff_cap: float = 8.0,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.bucket = bucket
        self.retries = max(0, retries)
        self.timeout = timeout
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self._sleep = sleep or asyncio.sleep
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(follow_redirects=True, headers=DEFAULT_HEADERS)

    async def __aenter__(self) -> RetryingHttpClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        return await self._request("GET", url, params=params, headers=headers, timeout=timeout)

    async def post(
        self,
        url: str,
        json: Any = None,
        content: str | bytes | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        return await self._request(
            "POST", url, json=json, content=content, params=params, headers=headers, timeout=timeout
        )

    async def _request(self, method: str, url: str, timeout: float | None = None, **kwargs: Any) -> Any:
        resolved_timeout = timeout if timeout is not None else self.timeout
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=self.backoff_base, max=self.backoff_cap),
            retry=retry_if_exception(is_retryable),
            sleep=self._sleep,
            before_sleep=before_sleep_log(LOGGER, logging.WARNING),
            reraise=True,
        )
        return await retrying(self._attempt, method, url, resolved_timeout, **kwargs)

    async def _attempt(self, method: str, url: str, timeout: float, **kwargs: Any) -> Any:
        await self.bucket.acquire()
        try:
            response = await self._client.request(method, url, timeout=timeout, **kwargs)
        except httpx.TransportError as exc:
            raise ExternalServiceError(f"{method} {url} failed: {exc!r}", url=url) from exc

        status = response.status_code
        if status == 429:
            raise RateLimitedError(f"{method} {url} rate limited", url=url, status_code=status)
        if status >= 500:
            raise ExternalServiceError(f"{method} {url} returned {status}", url=url, status_code=status)
        if status >= 400:
            raise NonRetryableClientError(f"{method} {url} returned {status}", url=url, status_code=status)
        return _decode_body(response, url)


def is_retryable(error: BaseException) -> bool:
    """Transport failures, 5xx and 429 are retried; other 4xx and bad bodies are not."""
    if isinstance(error, RateLimitedError):
        return True
    if isinstance(error, NonRetryableClientError) or not isinstance(error, ExternalServiceError):
        return False
    return error.status_code is None or error.status_code >= 500


def _decode_body(response: httpx.Response, url: str) -> Any:
    content_type = response.headers.get("content-type", "")
    if "json" not in content_type.lower():
        return response.text
    try:
        return response.json()
    except ValueError as exc:
        raise ExternalServiceError(f"Malformed JSON from {url}", url=url, status_code=response.status_code) from exc
