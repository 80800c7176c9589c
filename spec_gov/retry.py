"""Exponential backoff retry for async registry calls.

Client errors (HTTP 4xx) are never retried.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
from loguru import logger

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Retry behavior. ``max_retries`` counts total attempts, not extra ones."""

    max_retries: int = 3
    base_delay: float = 1.0
    backoff: float = 2.0
    max_delay: float = 60.0

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")

    def compute_delay(self, attempt: int) -> float:
        """Delay in seconds after the 1-indexed ``attempt`` failed."""
        return min(self.base_delay * (self.backoff ** (attempt - 1)), self.max_delay)


def status_code_of(exc: BaseException) -> int | None:
    """Best-effort HTTP status carried by an exception."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    return None


def is_client_error(exc: BaseException) -> bool:
    status = status_code_of(exc)
    return status is not None and 400 <= status < 500


async def execute_with_retry(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    description: str = "operation",
    sleep: SleepFn = asyncio.sleep,
) -> T:
    """Await ``fn()`` with retries and exponential backoff.

    ``fn`` is a zero-argument coroutine factory; bind arguments with a lambda
    or ``functools.partial``. The last error is re-raised once attempts run out.
    """
    active = config or RetryConfig()
    for attempt in range(1, active.max_retries + 1):
        try:
            return await fn()
        except Exception as exc:
            if is_client_error(exc) or attempt >= active.max_retries:
                raise
            delay = active.compute_delay(attempt)
            logger.warning(
                "{} failed (attempt {}/{}): {}; retrying in {:.1f}s",
                description,
                attempt,
                active.max_retries,
                exc,
                delay,
            )
            await sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover
