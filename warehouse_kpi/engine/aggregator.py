"""Performance aggregator — completed shipments → ranked operator KPIs.

Pipeline (all pure, recomputed from the rows passed in):
  1. Keep completed, timestamped, non-archived shipments inside the window.
  2. Expand each into (shipment, operator) rows; drop unresolved names.
  3. Deduplicate on (operator_id, shipment_id).
  4. Reduce per operator, rank, and break down per category.

The category and workload-balance variants reuse steps 1–3.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from warehouse_kpi.engine.classifier import CATCH_ALL, TaskClassifier
from warehouse_kpi.engine.expander import expand, operator_directory
from warehouse_kpi.engine.scoring import ratio, score
from warehouse_kpi.models.category import TaskCategory
from warehouse_kpi.models.kpi import (
    CategoryBreakdown,
    CategoryMatch,
    CategoryStatistics,
    OperatorMissingCategories,
    OperatorPerformance,
    ShipmentStats,
    TimeWindow,
)
from warehouse_kpi.models.operator import Operator
from warehouse_kpi.models.shipment import Assignment, Shipment, ShipmentStatus

logger = logging.getLogger(__name__)


# ── Inputs ────────────────────────────────────────────────────────────────────

@dataclass
class KpiDataset:
    """One consistent read of everything the engine needs.

    `assignments` maps shipment_id → stored assignment rows. Shipments without
    stored rows are expanded from their operator-name list on the fly.
    """
    shipments: list[Shipment]
    operators: list[Operator]
    categories: list[TaskCategory]
    assignments: dict[str, list[Assignment]] = field(default_factory=dict)


@dataclass(frozen=True)
class CompletedTask:
    """One deduplicated (operator, shipment) fact."""
    operator_id: str
    shipment_id: str
    title: str
    intensity: Optional[str]
    is_delivery: bool
    completed_at: datetime
    points: int


def as_utc(value: datetime) -> datetime:
    """Naive timestamps are treated as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ── Steps 1–3 ─────────────────────────────────────────────────────────────────

def is_eligible(shipment: Shipment, window: Optional[TimeWindow] = None) -> bool:
    if shipment.archived or shipment.status != ShipmentStatus.completed:
        return False
    if shipment.completed_at is None:
        return False
    if window is None:
        return True
    done = as_utc(shipment.completed_at)
    if window.start is not None and done < as_utc(window.start):
        return False
    if window.end is not None and done > as_utc(window.end):
        return False
    return True


def assignments_for(shipment: Shipment, data: KpiDataset, directory: dict[str, Operator]) -> list[Assignment]:
    stored = data.assignments.get(shipment.id)
    if stored:
        return stored
    return expand(shipment, directory)


def completed_tasks(data: KpiDataset, window: Optional[TimeWindow] = None) -> list[CompletedTask]:
    """Eligible, resolved and deduplicated (operator, shipment) facts."""
    directory = operator_directory(data.operators)
    known_ids = {o.id for o in data.operators}
    facts: dict[tuple[str, str], CompletedTask] = {}
    dropped = 0

    for shipment in data.shipments:
        if not is_eligible(shipment, window):
            continue
        for row in assignments_for(shipment, data, directory):
            if row.operator_id is None or row.operator_id not in known_ids:
                dropped += 1
                continue
            key = (row.operator_id, shipment.id)
            if key in facts:
                continue
            facts[key] = CompletedTask(
                operator_id=row.operator_id,
                shipment_id=shipment.id,
                title=shipment.title,
                intensity=shipment.intensity,
                is_delivery=shipment.is_delivery,
                completed_at=as_utc(shipment.completed_at),
                points=score(shipment.intensity),
            )

    if dropped:
        logger.debug("Dropped %d assignment rows with unresolved operators", dropped)
    return list(facts.values())


# ── Operator performance ──────────────────────────────────────────────────────

def _category_breakdown(tasks: list[CompletedTask], classify: TaskClassifier) -> list[CategoryBreakdown]:
    groups: dict[str, list[CompletedTask]] = defaultdict(list)
    for t in tasks:
        groups[classify(t.title)].append(t)

    breakdown = []
    for category, items in groups.items():
        total = sum(t.points for t in items)
        breakdown.append(CategoryBreakdown(
            category=category,
            is_delivery=any(t.is_delivery for t in items),
            task_count=len(items),
            category_score=total,
            avg_intensity_score=ratio(total, len(items)),
            first_completion=min(t.completed_at for t in items),
            last_completion=max(t.completed_at for t in items),
        ))
    breakdown.sort(key=lambda b: (-b.category_score, b.category))
    return breakdown


def aggregate(
    data: KpiDataset,
    window: Optional[TimeWindow] = None,
    operator_id: Optional[str] = None,
) -> list[OperatorPerformance]:
    """Ranked performance for every operator with work in the window.

    Ranks are assigned over all operators before `operator_id` narrows the
    result, so a single-operator read reports the operator's global rank.
    """
    classify = TaskClassifier(data.categories)
    operators = {o.id: o for o in data.operators}

    by_operator: dict[str, list[CompletedTask]] = defaultdict(list)
    for t in completed_tasks(data, window):
        by_operator[t.operator_id].append(t)

    rows = []
    for op_id, tasks in by_operator.items():
        op = operators[op_id]
        total_score = sum(t.points for t in tasks)
        rows.append(OperatorPerformance(
            operator_id=op.id,
            operator_name=op.name,
            operator_color=op.color,
            active=op.active,
            rank=0,
            total_completed_tasks=len(tasks),
            total_score=total_score,
            avg_score_per_task=ratio(total_score, len(tasks)),
            high_intensity_count=sum(1 for t in tasks if t.intensity == "high"),
            medium_intensity_count=sum(1 for t in tasks if t.intensity == "medium"),
            low_intensity_count=sum(1 for t in tasks if t.intensity == "low"),
            active_days=len({t.completed_at.date() for t in tasks}),
            first_completion_date=min(t.completed_at for t in tasks),
            last_completion_date=max(t.completed_at for t in tasks),
            category_breakdown=_category_breakdown(tasks, classify),
        ))

    rows.sort(key=lambda r: (-r.total_score, -r.total_completed_tasks, r.operator_name, r.operator_id))
    for i, row in enumerate(rows, start=1):
        row.rank = i

    if operator_id is not None:
        rows = [r for r in rows if r.operator_id == operator_id]
    return rows


# ── Variants ──────────────────────────────────────────────────────────────────

def category_statistics(data: KpiDataset) -> list[CategoryStatistics]:
    """All-time per-category totals across operators."""
    classify = TaskClassifier(data.categories)
    shipments: dict[str, dict[str, int]] = defaultdict(dict)   # category → shipment_id → points
    operators: dict[str, set[str]] = defaultdict(set)

    for t in completed_tasks(data):
        category = classify(t.title)
        shipments[category][t.shipment_id] = t.points
        operators[category].add(t.operator_id)

    stats = []
    for category, points in shipments.items():
        total_tasks = len(points)
        total_score = sum(points.values())
        unique_ops = len(operators[category])
        stats.append(CategoryStatistics(
            task_category=category,
            total_tasks=total_tasks,
            total_score=total_score,
            unique_operators=unique_ops,
            avg_tasks_per_operator=ratio(total_tasks, unique_ops),
            avg_score_per_task=ratio(total_score, total_tasks),
        ))
    stats.sort(key=lambda s: (-s.total_score, s.task_category))
    return stats


def missing_categories(data: KpiDataset) -> list[OperatorMissingCategories]:
    """Active operators who have never completed work in some active category."""
    classify = TaskClassifier(data.categories)
    required = [name for name in classify.active_names if name != CATCH_ALL]

    done: dict[str, set[str]] = defaultdict(set)
    for t in completed_tasks(data):
        category = classify(t.title)
        if category != CATCH_ALL:
            done[t.operator_id].add(category)

    report = []
    for op in data.operators:
        if not op.active:
            continue
        completed = done.get(op.id, set())
        missing = [name for name in required if name not in completed]
        if not missing:
            continue
        report.append(OperatorMissingCategories(
            operator_id=op.id,
            operator_name=op.name,
            missing_categories=missing,
            completed_categories=sorted(completed),
            missing_count=len(missing),
        ))
    report.sort(key=lambda r: (-r.missing_count, r.operator_name))
    return report


def shipment_stats(data: KpiDataset, window: Optional[TimeWindow] = None) -> ShipmentStats:
    """Shipment-level totals for a window; counts shipments, not operator rows."""
    directory = operator_directory(data.operators)
    active = {o.id for o in data.operators if o.active}
    shipment_ids: set[str] = set()
    operator_ids: set[str] = set()
    rows = 0
    points = 0

    for shipment in data.shipments:
        if not is_eligible(shipment, window):
            continue
        shipment_ids.add(shipment.id)
        for row in assignments_for(shipment, data, directory):
            rows += 1
            points += score(shipment.intensity)
            if row.operator_id is not None:
                operator_ids.add(row.operator_id)

    return ShipmentStats(
        total_shipments=len(shipment_ids),
        total_operators=len(operator_ids),
        active_operators=len(operator_ids & active),
        completed_shipments=len(shipment_ids),
        total_operator_tasks=rows,
        total_points=points,
    )


def category_matching(
    titles: Iterable[Optional[str]],
    categories: Iterable[TaskCategory],
    limit: int = 20,
) -> list[CategoryMatch]:
    """Preview how distinct titles classify against the current category set."""
    classify = TaskClassifier(categories)
    names = classify.active_names
    distinct = sorted({t for t in titles if t})[:limit]
    return [
        CategoryMatch(sample_title=t, matched_category=classify(t), all_active_categories=names)
        for t in distinct
    ]
