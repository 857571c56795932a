from __future__ import annotations

import asyncio
import logging
from typing import Optional

from governance_backend.app.cache.refresher import CacheRefresher, RefreshReport
from governance_backend.app.observability.logging import structured_log
from governance_backend.app.perf.timeouts import PerfTimeoutError, enforce_timeout

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Runs the refresh sweep every ``interval_seconds`` on the running event loop.

    Each tick runs in a worker thread and is bounded by ``timeout_seconds``.
    A failed or timed-out tick is logged; the loop keeps going.
    """

    def __init__(
        self,
        refresher: CacheRefresher,
        interval_seconds: float,
        timeout_seconds: float = 30,
    ) -> None:
        self.refresher = refresher
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self.last_report: Optional[RefreshReport] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.interval_seconds <= 0 or self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="cache-refresh-scheduler")
        logger.info("[CACHE] refresh scheduler started", extra={"interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("[CACHE] refresh scheduler stopped")

    async def run_once(self) -> Optional[RefreshReport]:
        try:
            report = await enforce_timeout(
                lambda: asyncio.to_thread(self.refresher.refresh),
                self.timeout_seconds,
            )
        except PerfTimeoutError:
            logger.warning("[CACHE] refresh tick timed out", extra={"timeout_seconds": self.timeout_seconds})
            return None
        except Exception:
            logger.exception("[CACHE] refresh tick failed")
            return None
        self.last_report = report
        structured_log(
            {
                "type": "cache_refresh",
                "evicted": len(report.evicted_keys),
                "errors": report.error_count,
            }
        )
        return report

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()


__all__ = ["RefreshScheduler"]
