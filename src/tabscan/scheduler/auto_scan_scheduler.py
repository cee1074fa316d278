"""Periodic background scans.

Runs a scan on a fixed interval while the game session is READY. Ticks that
land while the session is down or while another scan is running are skipped
silently; scan failures are logged and never stop the loop.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from tabscan.datatypes.errors import TabScanError
from tabscan.datatypes.moderation_datatypes import ScanResult
from tabscan.services.scan_orchestrator import ScanOrchestrator
from tabscan.util.logger import get_logger

logger = get_logger("auto_scan_scheduler")

ResultCallback = Callable[[ScanResult], Awaitable[Any]]


class AutoScanScheduler:
    """
    Background task that calls ``orchestrator.scan()`` every ``interval`` seconds.

    Args:
        orchestrator: Scan entry point and readiness source.
        interval: Seconds between ticks; ``<= 0`` disables the scheduler.
        on_result: Optional coroutine receiving each successful result.
    """

    def __init__(
        self,
        orchestrator: ScanOrchestrator,
        interval: float,
        on_result: ResultCallback | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self.interval = float(interval)
        self._on_result = on_result
        self._task: asyncio.Task | None = None

    @property
    def enabled(self) -> bool:
        return self.interval > 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> ScanResult | None:
        """Run one scheduled scan if the session allows it."""
        if not self._orchestrator.is_ready() or self._orchestrator.is_scanning():
            return None
        try:
            result = await self._orchestrator.scan()
        except TabScanError as exc:
            logger.warning("[AUTO_SCAN] Scheduled scan skipped: %s", exc)
            return None

        if self._on_result is not None:
            try:
                await self._on_result(result)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("[AUTO_SCAN] Result handler failed: %s", exc)
        return result

    async def _run_loop(self) -> None:
        logger.info("[AUTO_SCAN] Starting periodic scans (interval=%.1fs)", self.interval)
        try:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    await self.tick()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.error("[AUTO_SCAN] Unexpected error during scan: %s", exc)
        except asyncio.CancelledError:
            logger.info("[AUTO_SCAN] Periodic scans cancelled")
            raise

    def start(self) -> None:
        """Start the background task if enabled and not already running."""
        if not self.enabled:
            logger.info("[AUTO_SCAN] Disabled (interval=%.1fs)", self.interval)
            return
        if self.running:
            logger.warning("[AUTO_SCAN] Scan task already running")
            return
        self._task = asyncio.create_task(self._run_loop())

    async def shutdown(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("[AUTO_SCAN] Scheduler shutdown complete")
