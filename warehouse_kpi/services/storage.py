"""In-memory storage used when Supabase isn't configured (local dev and tests)."""
from __future__ import annotations

from warehouse_kpi.models.category import TaskCategory
from warehouse_kpi.models.operator import Operator
from warehouse_kpi.models.shipment import Assignment, Shipment
from warehouse_kpi.models.user import UserProfile, UserRole

# ── Seed data ────────────────────────────────────────────────────────────────

DEFAULT_CATEGORIES = [
    # (id, name, color, sort_order)
    ("cat_incoming",  "INCOMING",  "#3B82F6", 1),
    ("cat_outgoing",  "OUTGOING",  "#10B981", 2),
    ("cat_opi",       "OPI",       "#8B5CF6", 3),
    ("cat_delivery",  "DELIVERY",  "#F97316", 4),
    ("cat_pickup",    "PICKUP",    "#06B6D4", 5),
    ("cat_warehouse", "WAREHOUSE", "#6366F1", 6),
    ("cat_sorting",   "SORTING",   "#EC4899", 7),
    ("cat_other",     "OTHER",     "#6B7280", 99),
]

DEFAULT_OPERATORS = [
    # (id, name, color)
    ("op_01", "M. Rivera",  "#3B82F6"),
    ("op_02", "D. Nguyen",  "#10B981"),
    ("op_03", "K. Johnson", "#F97316"),
    ("op_04", "L. Kim",     "#8B5CF6"),
]

DEFAULT_PROFILES = [
    UserProfile(id="u_super", email="root@warehouse.local", role=UserRole.super_admin),
    UserProfile(id="u_admin", email="admin@warehouse.local", role=UserRole.admin),
    UserProfile(id="u_analyst", email="analyst@warehouse.local", role=UserRole.user, permissions=["kpi"]),
    UserProfile(id="u_floor", email="floor@warehouse.local", role=UserRole.user),
]

# ── Tables ───────────────────────────────────────────────────────────────────

SHIPMENTS: dict[str, Shipment] = {}
OPERATORS: dict[str, Operator] = {}
CATEGORIES: dict[str, TaskCategory] = {}
ASSIGNMENTS: dict[str, list[Assignment]] = {}   # shipment_id -> rows in name-list order
USER_PROFILES: dict[str, UserProfile] = {}


def reset() -> None:
    """Clear every table and reload the seed rows."""
    SHIPMENTS.clear()
    OPERATORS.clear()
    CATEGORIES.clear()
    ASSIGNMENTS.clear()
    USER_PROFILES.clear()
    for cid, name, color, order in DEFAULT_CATEGORIES:
        CATEGORIES[cid] = TaskCategory(id=cid, name=name, color=color, sort_order=order)
    for oid, name, color in DEFAULT_OPERATORS:
        OPERATORS[oid] = Operator(id=oid, name=name, color=color)
    for profile in DEFAULT_PROFILES:
        USER_PROFILES[profile.id] = profile.model_copy()


reset()
