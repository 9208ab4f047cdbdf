from __future__ import annotations
from typing import Optional
from pydantic import BaseModel


class Operator(BaseModel):
    id: str
    name: str              # unique; matched exactly against shipment name lists
    active: bool = True
    color: str = "#3B82F6"


class OperatorCreate(BaseModel):
    name: str
    color: str = "#3B82F6"


class OperatorUpdate(BaseModel):
    name: Optional[str] = None
    active: Optional[bool] = None
    color: Optional[str] = None
