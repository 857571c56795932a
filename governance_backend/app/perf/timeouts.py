from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


class PerfTimeoutError(TimeoutError):
    """Raised when a job exceeds its time budget."""


async def enforce_timeout(
    coro_fn: Callable[[], Awaitable[T]],
    timeout_seconds: float,
) -> T:
    try:
        return await asyncio.wait_for(coro_fn(), timeout=timeout_seconds)
    except asyncio.TimeoutError as exc:  # noqa: PERF203
        raise PerfTimeoutError(f"operation exceeded {timeout_seconds} s") from exc


__all__ = ["PerfTimeoutError", "enforce_timeout"]
