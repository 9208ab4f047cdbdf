from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel


class ShipmentStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"


class Intensity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class Shipment(BaseModel):
    id: str
    row_id: Optional[str] = None           # source sheet row, when imported
    title: str = ""                        # free text, classified by prefix
    start: Optional[datetime] = None       # scheduled / arrival time
    status: ShipmentStatus = ShipmentStatus.pending
    completed_at: Optional[datetime] = None
    # Stored as plain text: legacy rows may carry null or unknown labels, which score 0.
    intensity: Optional[str] = Intensity.medium.value
    is_delivery: bool = False
    assigned_operators: list[str] = []    # operator display names, in assignment order
    archived: bool = False
    updated_at: Optional[datetime] = None


class ShipmentCreate(BaseModel):
    title: str
    start: Optional[datetime] = None
    intensity: Intensity = Intensity.medium
    is_delivery: bool = False
    assigned_operators: list[str] = []
    row_id: Optional[str] = None


class ShipmentUpdate(BaseModel):
    title: Optional[str] = None
    start: Optional[datetime] = None
    status: Optional[ShipmentStatus] = None
    intensity: Optional[Intensity] = None
    is_delivery: Optional[bool] = None
    assigned_operators: Optional[list[str]] = None
    archived: Optional[bool] = None


class Assignment(BaseModel):
    """One (shipment, operator) pairing. operator_id is None when the name matched nobody."""
    shipment_id: str
    operator_name: str
    operator_id: Optional[str] = None
