from __future__ import annotations

import asyncio
import logging

from yield_tracker.services.alerts import AlertNotifier

logger = logging.getLogger(__name__)


class AlertScheduler:
    def __init__(self, notifier: AlertNotifier, interval: float):
        self.notifier = notifier
        self.interval = interval
        self._task: asyncio.Task | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self._task is None:
            self._stopping.clear()
            self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        self._stopping.set()
        if self._task:
            await self._task
            self._task = None

    async def _run_loop(self) -> None:
        logger.info(f"Alert scheduler started (interval={self.interval}s)")
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
            if self._stopping.is_set():
                break
            try:
                await self.notifier.check_alerts()
            except Exception as e:
                logger.exception(f"Alert check iteration failed: {e}")
        logger.info("Alert scheduler stopped")
