"""HTTP utilities providing retry/backoff semantics for outbound lookups."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


class RetryConfig:
    def __init__(self, *, attempts: int = 3, backoff_seconds: float = 1.0) -> None:
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds


def _is_retryable(exc: httpx.HTTPError) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _RETRYABLE_STATUS_CODES
    return isinstance(exc, httpx.TransportError)


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    **kwargs,
) -> httpx.Response:
    """Await ``func`` until it yields a successful response.

    Client errors other than throttling are raised on the first attempt.
    """
    config = retry_config or RetryConfig()
    attempt = 0

    while True:
        try:
            response = await func(*args, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPError as exc:
            attempt += 1
            if attempt >= config.attempts or not _is_retryable(exc):
                raise
            logger.warning(
                "HTTP request failed (attempt %d/%d): %s",
                attempt,
                config.attempts,
                exc,
            )
            await asyncio.sleep(config.backoff_seconds * attempt)


__all__ = ["RetryConfig", "request_with_retry"]
