"""KPI read operations.

All-time reads come from the cached summary; windowed reads and the
category/workload variants recompute from a fresh dataset on every call.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from warehouse_kpi.engine import aggregator
from warehouse_kpi.engine.expander import operator_directory
from warehouse_kpi.models.kpi import (
    CategoryMatch,
    CategoryStatistics,
    KpiHealthMetric,
    OperatorMissingCategories,
    OperatorPerformance,
    PerformanceSummary,
    ShipmentStats,
    TimeWindow,
)
from warehouse_kpi.models.shipment import ShipmentStatus
from warehouse_kpi.models.user import UserProfile
from warehouse_kpi.services import db
from warehouse_kpi.services.auth import requires_authenticated, requires_kpi_access
from warehouse_kpi.services.summary_cache import summary_cache

logger = logging.getLogger(__name__)

_STATUS_ORDER = {"ERROR": 1, "WARNING": 2, "OK": 3}


@requires_kpi_access
async def get_operator_performance(
    caller: UserProfile, operator_id: Optional[str] = None
) -> list[OperatorPerformance]:
    summary = await summary_cache.get()
    if operator_id is None:
        return summary.operators
    return [r for r in summary.operators if r.operator_id == operator_id]


@requires_kpi_access
async def get_filtered_operator_performance(
    caller: UserProfile,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> list[OperatorPerformance]:
    data = await db.load_dataset()
    return aggregator.aggregate(data, TimeWindow(start=start, end=end))


@requires_kpi_access
async def get_category_statistics(caller: UserProfile) -> list[CategoryStatistics]:
    return aggregator.category_statistics(await db.load_dataset())


@requires_kpi_access
async def get_operators_missing_categories(caller: UserProfile) -> list[OperatorMissingCategories]:
    return aggregator.missing_categories(await db.load_dataset())


@requires_kpi_access
async def refresh_performance_metrics(caller: UserProfile) -> PerformanceSummary:
    logger.info("Manual summary refresh requested by %s", caller.id)
    return await summary_cache.refresh()


@requires_kpi_access
async def get_shipment_stats(
    caller: UserProfile,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> ShipmentStats:
    data = await db.load_dataset()
    return aggregator.shipment_stats(data, TimeWindow(start=start, end=end))


@requires_kpi_access
async def get_category_matching(caller: UserProfile, limit: int = 20) -> list[CategoryMatch]:
    shipments, categories = await db.get_shipments(), await db.get_categories()
    return aggregator.category_matching((s.title for s in shipments), categories, limit=limit)


@requires_authenticated
async def get_kpi_system_health(caller: UserProfile) -> list[KpiHealthMetric]:
    """Data-quality checks for troubleshooting an empty or odd-looking dashboard."""
    data = await db.load_dataset()
    summary = await summary_cache.get()
    directory = operator_directory(data.operators)

    live = [s for s in data.shipments if not s.archived]
    completed = [s for s in live if s.status == ShipmentStatus.completed]
    eligible = [s for s in completed if s.completed_at is not None and s.assigned_operators]
    untimed = [s for s in completed if s.completed_at is None]
    unresolved = sum(
        1
        for s in eligible
        for row in aggregator.assignments_for(s, data, directory)
        if row.operator_id is None
    )
    tasks = aggregator.completed_tasks(data)
    total_score = sum(r.total_score for r in summary.operators)
    age = int((datetime.now(timezone.utc) - summary.refreshed_at).total_seconds())

    def metric(name: str, value: int, status: str, details: str) -> KpiHealthMetric:
        return KpiHealthMetric(metric=name, value=value, status=status, details=details)

    metrics = [
        metric("Total Shipments", len(live), "INFO", "All non-archived shipments"),
        metric("Completed Tasks", len(completed), "OK" if completed else "WARNING",
               "Shipments marked as completed"),
        metric("KPI-Eligible Tasks", len(eligible), "OK" if eligible else "ERROR",
               "Completed tasks with timestamp and assigned operators"),
        metric("Missing Timestamps", len(untimed), "OK" if not untimed else "WARNING",
               "Completed tasks without completion timestamp"),
        metric("Unresolved Operator Names", unresolved, "OK" if not unresolved else "WARNING",
               "Assigned names on eligible tasks that match no operator"),
        metric("Operators with Tasks", len({t.operator_id for t in tasks}), "OK" if tasks else "WARNING",
               "Operators with completed, timestamped tasks"),
        metric("Total KPI Score", total_score, "OK" if total_score > 0 else "ERROR",
               "Sum of all operator performance scores"),
        metric("Summary Age (seconds)", age, "OK" if age < 300 else "WARNING" if age < 3600 else "ERROR",
               "Time since last summary refresh"),
    ]
    metrics.sort(key=lambda m: (_STATUS_ORDER.get(m.status, 4), m.metric))
    return metrics
