"""Tests for the periodic scan scheduler."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from tabscan.datatypes.errors import NotReadyError
from tabscan.datatypes.moderation_datatypes import ScanResult
from tabscan.scheduler.auto_scan_scheduler import AutoScanScheduler


def make_orchestrator(ready=True, scanning=False, result=None):
    orchestrator = MagicMock()
    orchestrator.is_ready.return_value = ready
    orchestrator.is_scanning.return_value = scanning
    orchestrator.scan = AsyncMock(return_value=result or ScanResult(total_players=2))
    return orchestrator


@pytest.mark.asyncio
async def test_tick_runs_scan_and_reports():
    result = ScanResult(total_players=5)
    orchestrator = make_orchestrator(result=result)
    on_result = AsyncMock()
    scheduler = AutoScanScheduler(orchestrator, 60, on_result=on_result)

    assert await scheduler.tick() is result
    on_result.assert_awaited_once_with(result)


@pytest.mark.asyncio
async def test_tick_skips_when_not_ready():
    orchestrator = make_orchestrator(ready=False)
    scheduler = AutoScanScheduler(orchestrator, 60)

    assert await scheduler.tick() is None
    orchestrator.scan.assert_not_called()


@pytest.mark.asyncio
async def test_tick_skips_while_scanning():
    orchestrator = make_orchestrator(scanning=True)
    scheduler = AutoScanScheduler(orchestrator, 60)

    assert await scheduler.tick() is None
    orchestrator.scan.assert_not_called()


@pytest.mark.asyncio
async def test_tick_swallows_scan_errors():
    orchestrator = make_orchestrator()
    orchestrator.scan.side_effect = NotReadyError("lost")
    on_result = AsyncMock()
    scheduler = AutoScanScheduler(orchestrator, 60, on_result=on_result)

    assert await scheduler.tick() is None
    on_result.assert_not_called()


@pytest.mark.asyncio
async def test_result_handler_failure_does_not_propagate():
    orchestrator = make_orchestrator()
    scheduler = AutoScanScheduler(orchestrator, 60, on_result=AsyncMock(side_effect=RuntimeError("boom")))

    assert await scheduler.tick() is not None


@pytest.mark.asyncio
async def test_disabled_scheduler_does_not_start():
    scheduler = AutoScanScheduler(make_orchestrator(), 0)
    scheduler.start()
    assert scheduler.enabled is False
    assert scheduler.running is False
    await scheduler.shutdown()


@pytest.mark.asyncio
async def test_loop_scans_periodically_until_shutdown():
    orchestrator = make_orchestrator()
    scheduler = AutoScanScheduler(orchestrator, 0.01)

    scheduler.start()
    scheduler.start()
    await asyncio.sleep(0.1)
    assert scheduler.running
    await scheduler.shutdown()

    assert scheduler.running is False
    assert orchestrator.scan.await_count >= 2
