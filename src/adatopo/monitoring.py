"""
AdaTopo Monitoring
==================

Periodic sampling of topology metrics into the manager's history buffer.

The sampler is an explicit task owned by the host: nothing starts until
``start()`` is called, and ``stop()`` cancels it. Sampling reads the
manager's last complete metrics snapshot and never takes the mutation lock.

Usage:
    async with MetricsSampler(manager, interval_seconds=30):
        await serve_forever()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from adatopo.manager import AdaptiveTopologyManager

logger = logging.getLogger("adatopo.monitoring")


class MetricsSampler:
    def __init__(self, manager: AdaptiveTopologyManager, interval_seconds: float = 30.0):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.manager = manager
        self.interval_seconds = interval_seconds
        self.samples_taken = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start sampling on the running event loop (idempotent)."""
        if self.running:
            return self._task
        self._task = asyncio.create_task(self._run(), name="adatopo-metrics-sampler")
        logger.info(f"Metrics sampler started (every {self.interval_seconds}s)")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"Metrics sampler stopped after {self.samples_taken} samples")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.manager.sample_metrics()
                self.samples_taken += 1
            except Exception as e:
                logger.warning(f"Metrics sample failed: {e}", exc_info=True)

    async def __aenter__(self) -> "MetricsSampler":
        self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()
