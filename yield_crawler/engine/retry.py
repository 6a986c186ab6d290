"""Bounded, timeout-guarded retries that always terminate in a ``SourceResult``."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Mapping

import structlog
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .errors import CrawlerError, ErrorKind
from .results import FieldValue, SourceResult

Attempt = Callable[[], Awaitable[Mapping[str, FieldValue | None]]]


def classify(exc: BaseException) -> ErrorKind:
    """Map any attempt failure onto the error taxonomy."""

    if isinstance(exc, CrawlerError):
        return exc.kind
    if isinstance(exc, asyncio.TimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(exc, PlaywrightTimeoutError):
        return ErrorKind.TIMEOUT
    return ErrorKind.NAVIGATION


class RetryPolicy:
    """Run one source's fetch+extract under a deadline, a small number of times.

    Resource cleanup is the attempt's job (``async with`` blocks); the
    per-attempt timeout cancels the attempt, which unwinds those blocks before
    the next try starts.
    """

    def __init__(
        self,
        retry_delay: float = 1.0,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.retry_delay = retry_delay
        self.logger = logger or structlog.get_logger("yield_crawler.retry")

    async def run(
        self,
        attempt: Attempt,
        max_attempts: int,
        per_attempt_timeout_ms: int,
        logger: structlog.BoundLogger | None = None,
    ) -> SourceResult:
        log = logger or self.logger
        attempts = max(1, int(max_attempts))
        reason = ErrorKind.NAVIGATION
        for number in range(1, attempts + 1):
            try:
                fields = await asyncio.wait_for(attempt(), timeout=per_attempt_timeout_ms / 1000)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                reason = classify(exc)
                log.warning(
                    "source_attempt_failed",
                    attempt=number,
                    max_attempts=attempts,
                    reason=reason.value,
                    error=str(exc) or type(exc).__name__,
                )
                if number < attempts and self.retry_delay > 0:
                    await asyncio.sleep(self.retry_delay)
                continue
            return SourceResult.success(fields)
        log.error("source_failed", attempts=attempts, reason=reason.value)
        return SourceResult.failure(reason)


__all__ = ["Attempt", "RetryPolicy", "classify"]
