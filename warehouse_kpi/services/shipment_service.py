"""Shipment writes that feed the KPI engine.

- Writing an operator list re-expands it into stored assignment rows.
- Moving a shipment into `completed` stamps completed_at and refreshes the
  performance summary before returning.
- Any other change to a completed shipment invalidates the summary.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from warehouse_kpi.engine.aggregator import as_utc
from warehouse_kpi.engine.expander import expand, operator_directory
from warehouse_kpi.models.kpi import BackfillResult
from warehouse_kpi.models.shipment import Shipment, ShipmentCreate, ShipmentStatus, ShipmentUpdate
from warehouse_kpi.models.user import UserProfile
from warehouse_kpi.services import db
from warehouse_kpi.services.auth import requires_admin
from warehouse_kpi.services.summary_cache import summary_cache

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class InvalidTransitionError(Exception):
    pass


async def sync_assignments(shipment: Shipment) -> None:
    directory = operator_directory(await db.get_operators())
    await db.replace_assignments(shipment.id, expand(shipment, directory))


async def list_shipments(status: Optional[str] = None, include_archived: bool = False) -> list[Shipment]:
    shipments = await db.get_shipments(status, include_archived=include_archived)
    shipments.sort(key=lambda s: as_utc(s.start) if s.start else _EPOCH, reverse=True)
    return shipments


async def create_shipment(data: ShipmentCreate) -> Shipment:
    now = datetime.now(timezone.utc)
    shipment = Shipment(
        id=str(uuid.uuid4()),
        row_id=data.row_id,
        title=data.title.strip(),
        start=data.start,
        intensity=data.intensity.value,
        is_delivery=data.is_delivery,
        assigned_operators=data.assigned_operators,
        updated_at=now,
    )
    await db.save_shipment(shipment)
    await sync_assignments(shipment)
    return shipment


async def update_shipment(shipment_id: str, patch: ShipmentUpdate) -> Optional[Shipment]:
    shipment = await db.get_shipment(shipment_id)
    if not shipment:
        return None

    changes = patch.model_dump(exclude_none=True)
    if "intensity" in changes:
        changes["intensity"] = patch.intensity.value
    new_status = changes.get("status")
    was_completed = shipment.status == ShipmentStatus.completed
    if was_completed and new_status is not None and new_status != ShipmentStatus.completed:
        raise InvalidTransitionError("Completed shipments cannot be reopened")

    now = datetime.now(timezone.utc)
    completing = new_status == ShipmentStatus.completed and not was_completed
    if completing and shipment.completed_at is None:
        changes["completed_at"] = now
    changes["updated_at"] = now

    updated = shipment.model_copy(update=changes)
    await db.save_shipment(updated)
    if "assigned_operators" in changes:
        await sync_assignments(updated)

    if completing:
        logger.info("Shipment %s completed by %s", updated.id, ", ".join(updated.assigned_operators) or "nobody")
        await summary_cache.refresh()
    elif was_completed:
        summary_cache.invalidate()
    return updated


async def complete_shipment(shipment_id: str) -> Optional[Shipment]:
    return await update_shipment(shipment_id, ShipmentUpdate(status=ShipmentStatus.completed))


@requires_admin
async def backfill_completion_timestamps(caller: UserProfile) -> BackfillResult:
    """Give completed shipments without completed_at a best-guess timestamp.

    Uses updated_at, falling back to the scheduled start. Rows with neither
    stay excluded from the KPIs.
    """
    fixed: list[str] = []
    for shipment in await db.get_shipments(ShipmentStatus.completed.value):
        if shipment.completed_at is not None:
            continue
        stamp = shipment.updated_at or shipment.start
        if stamp is None:
            continue
        await db.save_shipment(shipment.model_copy(update={"completed_at": stamp}))
        fixed.append(shipment.id)

    if fixed:
        logger.info("Backfilled completed_at on %d shipments", len(fixed))
        await summary_cache.refresh()
    return BackfillResult(fixed=len(fixed), shipment_ids=fixed)
