from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class TimeWindow(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class CategoryBreakdown(BaseModel):
    category: str
    is_delivery: bool            # True if any task in the category was a delivery
    task_count: int
    category_score: int
    avg_intensity_score: float   # 2 dp
    first_completion: datetime
    last_completion: datetime


class OperatorPerformance(BaseModel):
    operator_id: str
    operator_name: str
    operator_color: str
    active: bool
    rank: int
    total_completed_tasks: int
    total_score: int
    avg_score_per_task: float
    high_intensity_count: int
    medium_intensity_count: int
    low_intensity_count: int
    active_days: int
    first_completion_date: Optional[datetime] = None
    last_completion_date: Optional[datetime] = None
    category_breakdown: list[CategoryBreakdown] = []


class CategoryStatistics(BaseModel):
    task_category: str
    total_tasks: int
    total_score: int
    unique_operators: int
    avg_tasks_per_operator: float
    avg_score_per_task: float


class OperatorMissingCategories(BaseModel):
    operator_id: str
    operator_name: str
    missing_categories: list[str]
    completed_categories: list[str]
    missing_count: int


class ShipmentStats(BaseModel):
    total_shipments: int
    total_operators: int
    active_operators: int
    completed_shipments: int
    total_operator_tasks: int
    total_points: int


class KpiHealthMetric(BaseModel):
    metric: str
    value: int
    status: str          # OK | WARNING | ERROR | INFO
    details: str


class CategoryMatch(BaseModel):
    sample_title: str
    matched_category: str
    all_active_categories: list[str]


class PerformanceSummary(BaseModel):
    refreshed_at: datetime
    operators: list[OperatorPerformance]


class BackfillResult(BaseModel):
    fixed: int
    shipment_ids: list[str]
