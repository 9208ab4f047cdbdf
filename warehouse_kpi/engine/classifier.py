"""Task classifier — maps a shipment title to a task category.

Categories are an admin-managed, live taxonomy: a title belongs to the first
*active* category whose name is a case-insensitive prefix of the title, tried
in priority order (sort_order, then longer names first). Titles that match
nothing fall into the catch-all category.
"""
from __future__ import annotations

from typing import Iterable, Optional

from warehouse_kpi.config import KPI_CATCH_ALL_CATEGORY
from warehouse_kpi.models.category import TaskCategory

CATCH_ALL = KPI_CATCH_ALL_CATEGORY


def match_order(categories: Iterable[TaskCategory]) -> list[TaskCategory]:
    """Active categories in prefix-match priority."""
    active = [c for c in categories if c.active and c.name]
    return sorted(active, key=lambda c: (c.sort_order, -len(c.name)))


class TaskClassifier:
    """Classifier bound to one snapshot of the category table.

    Build once per aggregation run; calling it is then a plain scan over the
    pre-sorted prefixes.
    """

    def __init__(self, categories: Iterable[TaskCategory]):
        self._ordered = match_order(categories)
        self._prefixes = [(c.name.lower(), c.name) for c in self._ordered]

    @property
    def active_names(self) -> list[str]:
        return [c.name for c in self._ordered]

    def __call__(self, title: Optional[str]) -> str:
        if not title or not title.strip():
            return CATCH_ALL
        lowered = title.lower()
        for prefix, name in self._prefixes:
            if lowered.startswith(prefix):
                return name
        return CATCH_ALL


def classify(title: Optional[str], categories: Iterable[TaskCategory]) -> str:
    return TaskClassifier(categories)(title)
