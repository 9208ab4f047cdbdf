from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from warehouse_kpi.models.operator import Operator, OperatorCreate, OperatorUpdate
from warehouse_kpi.models.user import UserProfile
from warehouse_kpi.services import operator_service
from warehouse_kpi.services.auth import get_caller
from warehouse_kpi.services.operator_service import DuplicateOperatorError

router = APIRouter()


@router.get("", response_model=list[Operator])
async def list_operators(active: Optional[bool] = None):
    return await operator_service.list_operators(active)


@router.post("", response_model=Operator, status_code=201)
async def create_operator(body: OperatorCreate, caller: Optional[UserProfile] = Depends(get_caller)):
    try:
        return await operator_service.create_operator(caller, body)
    except DuplicateOperatorError as exc:
        raise HTTPException(409, str(exc))
    except ValueError as exc:
        raise HTTPException(422, str(exc))


@router.patch("/{operator_id}", response_model=Operator)
async def update_operator(
    operator_id: str,
    patch: OperatorUpdate,
    caller: Optional[UserProfile] = Depends(get_caller),
):
    """Rename, recolor or (de)activate an operator."""
    try:
        operator = await operator_service.update_operator(caller, operator_id, patch)
    except DuplicateOperatorError as exc:
        raise HTTPException(409, str(exc))
    except ValueError as exc:
        raise HTTPException(422, str(exc))
    if not operator:
        raise HTTPException(404, "Operator not found")
    return operator
