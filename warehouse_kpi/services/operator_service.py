"""Operator directory. Operators are deactivated, never deleted."""
from __future__ import annotations

import logging
import uuid
from typing import Optional

from warehouse_kpi.models.operator import Operator, OperatorCreate, OperatorUpdate
from warehouse_kpi.models.user import UserProfile
from warehouse_kpi.services import db
from warehouse_kpi.services.auth import requires_admin
from warehouse_kpi.services.summary_cache import summary_cache

logger = logging.getLogger(__name__)


class DuplicateOperatorError(Exception):
    pass


async def _ensure_unique(name: str, exclude_id: Optional[str] = None) -> None:
    for o in await db.get_operators():
        if o.name == name and o.id != exclude_id:
            raise DuplicateOperatorError(f"Operator {name} already exists")


async def list_operators(active: Optional[bool] = None) -> list[Operator]:
    operators = await db.get_operators(active)
    operators.sort(key=lambda o: o.name)
    return operators


@requires_admin
async def create_operator(caller: UserProfile, data: OperatorCreate) -> Operator:
    name = data.name.strip()
    if not name:
        raise ValueError("Operator name must not be blank")
    await _ensure_unique(name)
    operator = Operator(id=str(uuid.uuid4()), name=name, color=data.color)
    await db.save_operator(operator)
    # Shipments may already name this operator
    await db.resolve_assignments(name, operator.id)
    summary_cache.invalidate()
    return operator


@requires_admin
async def update_operator(caller: UserProfile, operator_id: str, patch: OperatorUpdate) -> Optional[Operator]:
    operator = await db.get_operator(operator_id)
    if not operator:
        return None
    changes = patch.model_dump(exclude_none=True)
    new_name = changes.get("name")
    if new_name is not None:
        new_name = changes["name"] = new_name.strip()
        if not new_name:
            raise ValueError("Operator name must not be blank")
        await _ensure_unique(new_name, exclude_id=operator_id)

    updated = operator.model_copy(update=changes)
    await db.save_operator(updated)

    if new_name and new_name != operator.name:
        await _rename_in_shipments(operator.name, new_name)
        await db.rename_assignments(operator_id, new_name)
        logger.info("Operator %s renamed to %s", operator.name, new_name)

    summary_cache.invalidate()
    return updated


async def _rename_in_shipments(old: str, new: str) -> None:
    for shipment in await db.get_shipments():
        if old in shipment.assigned_operators:
            names = [new if n == old else n for n in shipment.assigned_operators]
            await db.save_shipment(shipment.model_copy(update={"assigned_operators": names}))
