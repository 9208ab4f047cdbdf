"""Task category management — the taxonomy the classifier reads.

Names are stored upper-cased and trimmed. A category that still classifies
any shipment title cannot be deleted; deactivate it instead.
"""
from __future__ import annotations

import logging
import uuid
from collections import Counter
from typing import Optional

from warehouse_kpi.engine.classifier import TaskClassifier
from warehouse_kpi.models.category import CategoryCreate, CategoryListItem, CategoryUpdate, TaskCategory
from warehouse_kpi.models.user import UserProfile
from warehouse_kpi.services import db
from warehouse_kpi.services.auth import requires_admin
from warehouse_kpi.services.summary_cache import summary_cache

logger = logging.getLogger(__name__)


class CategoryInUseError(Exception):
    def __init__(self, name: str, usage_count: int):
        self.name = name
        self.usage_count = usage_count
        super().__init__(f"Cannot delete category {name} with {usage_count} associated shipments")


class DuplicateCategoryError(Exception):
    pass


def normalize_name(name: str) -> str:
    cleaned = name.strip().upper()
    if not cleaned:
        raise ValueError("Category name must not be blank")
    return cleaned


async def _usage_counts(categories: list[TaskCategory]) -> Counter:
    classify = TaskClassifier(categories)
    shipments = await db.get_shipments()
    return Counter(classify(s.title) for s in shipments)


async def list_categories() -> list[CategoryListItem]:
    categories = await db.get_categories()
    usage = await _usage_counts(categories)
    items = [
        CategoryListItem(**c.model_dump(), usage_count=usage[c.name], can_delete=usage[c.name] == 0)
        for c in categories
    ]
    items.sort(key=lambda c: (c.sort_order, c.name))
    return items


async def _ensure_unique(name: str, exclude_id: Optional[str] = None) -> None:
    for c in await db.get_categories():
        if c.name == name and c.id != exclude_id:
            raise DuplicateCategoryError(f"Category {name} already exists")


@requires_admin
async def add_category(caller: UserProfile, data: CategoryCreate) -> TaskCategory:
    name = normalize_name(data.name)
    await _ensure_unique(name)
    existing = await db.get_categories()
    category = TaskCategory(
        id=str(uuid.uuid4()),
        name=name,
        color=data.color,
        active=data.active,
        sort_order=max((c.sort_order for c in existing), default=0) + 1,
    )
    await db.save_category(category)
    summary_cache.invalidate()
    logger.info("Category %s added by %s", name, caller.id)
    return category


@requires_admin
async def update_category(caller: UserProfile, category_id: str, patch: CategoryUpdate) -> Optional[TaskCategory]:
    category = await db.get_category(category_id)
    if not category:
        return None
    changes = patch.model_dump(exclude_none=True)
    if "name" in changes:
        changes["name"] = normalize_name(changes["name"])
        await _ensure_unique(changes["name"], exclude_id=category_id)
    updated = category.model_copy(update=changes)
    await db.save_category(updated)
    summary_cache.invalidate()
    return updated


@requires_admin
async def delete_category(caller: UserProfile, category_id: str) -> bool:
    category = await db.get_category(category_id)
    if not category:
        return False
    usage = (await _usage_counts(await db.get_categories()))[category.name]
    if usage > 0:
        raise CategoryInUseError(category.name, usage)
    deleted = await db.delete_category(category_id)
    summary_cache.invalidate()
    logger.info("Category %s deleted by %s", category.name, caller.id)
    return deleted
