"""Cached all-time performance summary.

Only the unfiltered ranking is cached. Refreshes are full recomputations,
serialized by one lock; readers keep getting the previous summary until the
new one is swapped in. Every invalidation bumps a generation counter, and a
rebuild whose data was loaded under an older generation reloads before
storing, so a write made mid-refresh is never masked.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from warehouse_kpi.engine.aggregator import aggregate
from warehouse_kpi.models.kpi import PerformanceSummary
from warehouse_kpi.services import db

logger = logging.getLogger(__name__)


class PerformanceSummaryCache:
    def __init__(self):
        self._summary: Optional[PerformanceSummary] = None
        self._generation = 0
        self._lock = asyncio.Lock()

    @property
    def current(self) -> Optional[PerformanceSummary]:
        return self._summary

    async def _rebuild(self) -> PerformanceSummary:
        # Caller holds the lock
        while True:
            generation = self._generation
            data = await db.load_dataset()
            if generation == self._generation:
                break
            logger.debug("Summary invalidated during load; reloading")
        summary = PerformanceSummary(
            refreshed_at=datetime.now(timezone.utc),
            operators=aggregate(data),
        )
        self._summary = summary
        logger.info("Performance summary refreshed: %d operators ranked", len(summary.operators))
        return summary

    async def refresh(self) -> PerformanceSummary:
        """Recompute unconditionally."""
        async with self._lock:
            return await self._rebuild()

    async def get(self) -> PerformanceSummary:
        summary = self._summary
        if summary is not None:
            return summary
        async with self._lock:
            # Another reader may have rebuilt it while we waited
            if self._summary is not None:
                return self._summary
            return await self._rebuild()

    def invalidate(self) -> None:
        """Drop the cached summary; the next read recomputes it."""
        self._generation += 1
        self._summary = None


summary_cache = PerformanceSummaryCache()
