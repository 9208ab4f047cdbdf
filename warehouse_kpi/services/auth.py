"""Caller resolution and permission checks.

Every guarded service function takes the caller's UserProfile as its first
argument and is wrapped by one of the decorators below, so the role check
lives in one place instead of in each KPI read.
"""
from __future__ import annotations

import functools
import logging
from typing import Callable, Optional

from fastapi import Header

from warehouse_kpi.config import KPI_ADMIN_ROLES, KPI_PERMISSION
from warehouse_kpi.models.user import UserProfile
from warehouse_kpi.services import db

logger = logging.getLogger(__name__)


class PermissionDenied(Exception):
    """Caller lacks the role or permission an operation requires."""


def is_admin(profile: UserProfile) -> bool:
    return profile.role.value in KPI_ADMIN_ROLES


def can_view_kpi_data(profile: UserProfile) -> bool:
    return is_admin(profile) or KPI_PERMISSION in profile.permissions


def _requires(check: Callable[[UserProfile], bool], message: str):
    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(caller: Optional[UserProfile], *args, **kwargs):
            if caller is None or not check(caller):
                logger.warning(
                    "Denied %s for %s", fn.__name__, caller.id if caller else "anonymous caller"
                )
                raise PermissionDenied(message)
            return await fn(caller, *args, **kwargs)
        return wrapper
    return decorator


requires_authenticated = _requires(lambda p: True, "Permission denied: sign in required")
requires_kpi_access = _requires(
    can_view_kpi_data,
    "Permission denied: only admins and users with KPI permission can view KPI data",
)
requires_admin = _requires(is_admin, "Permission denied: only admins can perform this action")


async def get_caller(x_user_id: Optional[str] = Header(default=None)) -> Optional[UserProfile]:
    """FastAPI dependency: resolve the X-User-Id header to a profile (None if absent/unknown)."""
    if not x_user_id:
        return None
    return await db.get_user_profile(x_user_id)
