from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from warehouse_kpi.engine.aggregator import as_utc
from warehouse_kpi.models.kpi import (
    BackfillResult,
    CategoryMatch,
    CategoryStatistics,
    KpiHealthMetric,
    OperatorMissingCategories,
    OperatorPerformance,
    PerformanceSummary,
    ShipmentStats,
)
from warehouse_kpi.models.user import UserProfile
from warehouse_kpi.services import kpi_service, shipment_service
from warehouse_kpi.services.auth import get_caller

router = APIRouter()


def _check_window(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start and end and as_utc(start) > as_utc(end):
        raise HTTPException(422, "start must not be after end")


@router.get("/performance", response_model=list[OperatorPerformance])
async def operator_performance(
    operator_id: Optional[str] = None,
    caller: Optional[UserProfile] = Depends(get_caller),
):
    """All-time ranking (served from the cached summary)."""
    return await kpi_service.get_operator_performance(caller, operator_id)


@router.get("/performance/filtered", response_model=list[OperatorPerformance])
async def filtered_operator_performance(
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
    caller: Optional[UserProfile] = Depends(get_caller),
):
    """Ranking over completions inside [start, end], recomputed live."""
    _check_window(start, end)
    return await kpi_service.get_filtered_operator_performance(caller, start, end)


@router.get("/categories/statistics", response_model=list[CategoryStatistics])
async def category_statistics(caller: Optional[UserProfile] = Depends(get_caller)):
    return await kpi_service.get_category_statistics(caller)


@router.get("/missing-categories", response_model=list[OperatorMissingCategories])
async def missing_categories(caller: Optional[UserProfile] = Depends(get_caller)):
    return await kpi_service.get_operators_missing_categories(caller)


@router.post("/refresh", response_model=PerformanceSummary)
async def refresh(caller: Optional[UserProfile] = Depends(get_caller)):
    return await kpi_service.refresh_performance_metrics(caller)


@router.get("/shipment-stats", response_model=ShipmentStats)
async def shipment_stats(
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
    caller: Optional[UserProfile] = Depends(get_caller),
):
    _check_window(start, end)
    return await kpi_service.get_shipment_stats(caller, start, end)


@router.get("/health", response_model=list[KpiHealthMetric])
async def health(caller: Optional[UserProfile] = Depends(get_caller)):
    return await kpi_service.get_kpi_system_health(caller)


@router.get("/category-matching", response_model=list[CategoryMatch])
async def category_matching(
    limit: int = Query(default=20, ge=1, le=200),
    caller: Optional[UserProfile] = Depends(get_caller),
):
    return await kpi_service.get_category_matching(caller, limit)


@router.post("/backfill", response_model=BackfillResult)
async def backfill(caller: Optional[UserProfile] = Depends(get_caller)):
    """Stamp completed_at on completed shipments that lack it."""
    return await shipment_service.backfill_completion_timestamps(caller)
