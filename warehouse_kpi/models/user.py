from __future__ import annotations
from enum import Enum
from typing import Optional
from pydantic import BaseModel


class UserRole(str, Enum):
    user = "user"
    admin = "admin"
    super_admin = "super_admin"


class UserProfile(BaseModel):
    id: str
    email: Optional[str] = None
    role: UserRole = UserRole.user
    permissions: list[str] = []   # e.g. ["kpi"]
