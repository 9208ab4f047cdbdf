from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from warehouse_kpi.models.category import CategoryCreate, CategoryListItem, CategoryUpdate, TaskCategory
from warehouse_kpi.models.user import UserProfile
from warehouse_kpi.services import category_service
from warehouse_kpi.services.auth import get_caller
from warehouse_kpi.services.category_service import DuplicateCategoryError

router = APIRouter()


@router.get("", response_model=list[CategoryListItem])
async def list_categories():
    """All categories with how many shipments each one currently classifies."""
    return await category_service.list_categories()


@router.post("", response_model=TaskCategory, status_code=201)
async def add_category(body: CategoryCreate, caller: Optional[UserProfile] = Depends(get_caller)):
    try:
        return await category_service.add_category(caller, body)
    except DuplicateCategoryError as exc:
        raise HTTPException(409, str(exc))
    except ValueError as exc:
        raise HTTPException(422, str(exc))


@router.patch("/{category_id}", response_model=TaskCategory)
async def update_category(
    category_id: str,
    patch: CategoryUpdate,
    caller: Optional[UserProfile] = Depends(get_caller),
):
    try:
        category = await category_service.update_category(caller, category_id, patch)
    except DuplicateCategoryError as exc:
        raise HTTPException(409, str(exc))
    except ValueError as exc:
        raise HTTPException(422, str(exc))
    if not category:
        raise HTTPException(404, "Category not found")
    return category


@router.delete("/{category_id}", status_code=204)
async def delete_category(category_id: str, caller: Optional[UserProfile] = Depends(get_caller)):
    """Fails with 409 while shipments still classify into the category."""
    if not await category_service.delete_category(caller, category_id):
        raise HTTPException(404, "Category not found")
