from __future__ import annotations
from typing import Optional
from pydantic import BaseModel


class TaskCategory(BaseModel):
    id: str
    name: str              # upper-case, unique
    color: str = "#6B7280"
    active: bool = True
    sort_order: int = 0    # lower matches first


class CategoryCreate(BaseModel):
    name: str
    color: str = "#6B7280"
    active: bool = True


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None
    active: Optional[bool] = None
    sort_order: Optional[int] = None


class CategoryListItem(TaskCategory):
    usage_count: int = 0
    can_delete: bool = True
