"""
Interval automation for the Safe monitor.

Runs a fleet pass every ``interval_seconds`` in a background task. This is
the in-process alternative to an external cron calling GET /monitor/check;
both can run at once because the scheduler serializes work per wallet.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog

from safe_monitor.monitor.scheduler import FleetScheduler

logger = structlog.get_logger("automation")


class AutomationService:
    """Background loop calling ``FleetScheduler.run_pass`` on an interval."""

    def __init__(self, scheduler: FleetScheduler, interval_seconds: int = 300):
        """
        Initialize automation service.

        Args:
            scheduler: Scheduler whose passes are automated
            interval_seconds: Time between passes (default: 5 minutes)
        """
        self.scheduler = scheduler
        self.interval_seconds = interval_seconds
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._last_run: Optional[datetime] = None
        self._last_error: Optional[str] = None

        self.total_cycles = 0
        self.successful_cycles = 0
        self.failed_cycles = 0

        logger.info("automation.initialized", interval_seconds=interval_seconds)

    @property
    def running(self) -> bool:
        return self._running

    async def start(self, interval_seconds: Optional[int] = None) -> dict:
        if self._running:
            logger.warning("automation.already_running")
            return {
                "success": False,
                "message": "Automation is already running",
                "running": True,
            }

        if interval_seconds is not None:
            self.interval_seconds = interval_seconds

        self._running = True
        self._task = asyncio.create_task(self._automation_loop())

        logger.info("automation.started", interval_seconds=self.interval_seconds)
        return {
            "success": True,
            "message": f"Automation started (interval: {self.interval_seconds}s)",
            "running": True,
            "interval_seconds": self.interval_seconds,
        }

    async def stop(self) -> dict:
        if not self._running:
            logger.debug("automation.not_running")
            return {
                "success": False,
                "message": "Automation is not running",
                "running": False,
            }

        logger.info("automation.stopping")
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("automation.stopped")
        return {
            "success": True,
            "message": "Automation stopped",
            "running": False,
            "total_cycles": self.total_cycles,
            "successful_cycles": self.successful_cycles,
            "failed_cycles": self.failed_cycles,
        }

    async def _automation_loop(self) -> None:
        logger.info("automation.loop_started")

        while self._running:
            try:
                await self.run_cycle()
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                logger.info("automation.loop_cancelled")
                break

    async def run_cycle(self) -> Dict[str, Any]:
        """Run one pass; failures are recorded, never raised."""
        cycle_start = datetime.now(timezone.utc)
        self.total_cycles += 1
        logger.info("automation.cycle_start", cycle=self.total_cycles)

        try:
            result = await self.scheduler.run_pass()
        except Exception as exc:
            logger.exception("automation.cycle_failed", error=str(exc))
            self.failed_cycles += 1
            self._last_error = str(exc)
            return {
                "success": False,
                "error": str(exc),
                "timestamp": cycle_start.isoformat(),
            }

        self._last_run = datetime.now(timezone.utc)
        self.successful_cycles += 1
        logger.info(
            "automation.cycle_complete",
            cycle=self.total_cycles,
            checked=result.wallets_checked,
            notified=result.total_notified,
            duration_seconds=(self._last_run - cycle_start).total_seconds(),
        )
        return result.to_summary()

    def get_status(self) -> dict:
        return {
            "running": self._running,
            "interval_seconds": self.interval_seconds,
            "cycles_completed": self.total_cycles,
            "last_cycle": (
                {
                    "timestamp": self._last_run.isoformat(),
                    "success_rate": (
                        self.successful_cycles / self.total_cycles * 100
                        if self.total_cycles > 0
                        else 0
                    ),
                }
                if self._last_run
                else None
            ),
            "errors_count": self.failed_cycles,
            "last_error": self._last_error,
            "monitor": self.scheduler.get_status(),
        }


# Global automation service instance, created at application startup
_automation_service: Optional[AutomationService] = None


def get_automation_service() -> Optional[AutomationService]:
    """Get the global automation service instance."""
    return _automation_service


def set_automation_service(service: Optional[AutomationService]) -> None:
    """Set the global automation service instance."""
    global _automation_service
    _automation_service = service
