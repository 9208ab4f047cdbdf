from __future__ import annotations

from fastapi import APIRouter, HTTPException

from warehouse_kpi.models.shipment import Shipment, ShipmentCreate, ShipmentUpdate
from warehouse_kpi.services import shipment_service
from warehouse_kpi.services.shipment_service import InvalidTransitionError

router = APIRouter()


@router.get("", response_model=list[Shipment])
async def list_shipments(status: str | None = None, include_archived: bool = False):
    return await shipment_service.list_shipments(status, include_archived)


@router.post("", response_model=Shipment, status_code=201)
async def create_shipment(body: ShipmentCreate):
    return await shipment_service.create_shipment(body)


@router.patch("/{shipment_id}", response_model=Shipment)
async def update_shipment(shipment_id: str, patch: ShipmentUpdate):
    try:
        shipment = await shipment_service.update_shipment(shipment_id, patch)
    except InvalidTransitionError as exc:
        raise HTTPException(409, str(exc))
    if not shipment:
        raise HTTPException(404, "Shipment not found")
    return shipment


@router.post("/{shipment_id}/complete", response_model=Shipment)
async def complete_shipment(shipment_id: str):
    """Mark completed; the all-time KPI summary is refreshed before this returns."""
    shipment = await shipment_service.complete_shipment(shipment_id)
    if not shipment:
        raise HTTPException(404, "Shipment not found")
    return shipment
