"""Async database access layer. Reads from Supabase when configured, falls back to in-memory storage."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from warehouse_kpi.engine.aggregator import KpiDataset
from warehouse_kpi.models.category import TaskCategory
from warehouse_kpi.models.operator import Operator
from warehouse_kpi.models.shipment import Assignment, Shipment
from warehouse_kpi.models.user import UserProfile
from warehouse_kpi.services.supabase_client import get_supabase, reset_supabase

logger = logging.getLogger(__name__)

# Lazy import: storage is only needed for the in-memory fallback
_storage = None


def _get_storage():
    global _storage
    if _storage is None:
        from warehouse_kpi.services import storage as _s
        _storage = _s
    return _storage


async def _db_query(fn):
    """Run a sync Supabase query in a thread, retrying once on stale-connection errors.

    Pooled httpx connections can go stale while idle and fail the next read
    with ReadError. We reset the Supabase singleton (forcing a fresh
    connection) and retry once.
    """
    try:
        return await asyncio.to_thread(fn)
    except Exception as exc:
        # Detect httpx.ReadError / httpcore.ReadError without a hard import
        if any(c.__name__ == "ReadError" for c in type(exc).__mro__):
            logger.warning("Supabase ReadError (stale connection) — resetting client and retrying: %s", exc)
            reset_supabase()
            return await asyncio.to_thread(fn)
        raise


# ── Shipments ──────────────────────────────────────────────────────────────────

async def get_shipments(status: Optional[str] = None, include_archived: bool = True) -> list[Shipment]:
    sb = get_supabase()
    if not sb:
        shipments = list(_get_storage().SHIPMENTS.values())
        if status:
            shipments = [s for s in shipments if s.status == status]
        if not include_archived:
            shipments = [s for s in shipments if not s.archived]
        return shipments

    def _query():
        q = sb.table("shipments").select("*")
        if status:
            q = q.eq("status", status)
        if not include_archived:
            q = q.eq("archived", False)
        return q.execute().data

    rows = await _db_query(_query)
    return [Shipment(**r) for r in rows]


async def get_shipment(shipment_id: str) -> Optional[Shipment]:
    sb = get_supabase()
    if not sb:
        return _get_storage().SHIPMENTS.get(shipment_id)

    def _query():
        return sb.table("shipments").select("*").eq("id", shipment_id).execute().data

    rows = await _db_query(_query)
    return Shipment(**rows[0]) if rows else None


async def save_shipment(shipment: Shipment) -> Shipment:
    sb = get_supabase()
    if not sb:
        _get_storage().SHIPMENTS[shipment.id] = shipment
        return shipment

    def _query():
        row = shipment.model_dump(mode="json")
        sb.table("shipments").upsert(row, on_conflict="id").execute()

    await _db_query(_query)
    return shipment


# ── Operators ──────────────────────────────────────────────────────────────────

async def get_operators(active: Optional[bool] = None) -> list[Operator]:
    sb = get_supabase()
    if not sb:
        operators = list(_get_storage().OPERATORS.values())
        if active is not None:
            operators = [o for o in operators if o.active == active]
        return operators

    def _query():
        q = sb.table("operators").select("*")
        if active is not None:
            q = q.eq("active", active)
        return q.execute().data

    rows = await _db_query(_query)
    return [Operator(**r) for r in rows]


async def get_operator(operator_id: str) -> Optional[Operator]:
    sb = get_supabase()
    if not sb:
        return _get_storage().OPERATORS.get(operator_id)

    def _query():
        return sb.table("operators").select("*").eq("id", operator_id).execute().data

    rows = await _db_query(_query)
    return Operator(**rows[0]) if rows else None


async def save_operator(operator: Operator) -> Operator:
    sb = get_supabase()
    if not sb:
        _get_storage().OPERATORS[operator.id] = operator
        return operator

    def _query():
        sb.table("operators").upsert(operator.model_dump(mode="json"), on_conflict="id").execute()

    await _db_query(_query)
    return operator


# ── Task categories ────────────────────────────────────────────────────────────

async def get_categories() -> list[TaskCategory]:
    sb = get_supabase()
    if not sb:
        cats = list(_get_storage().CATEGORIES.values())
        cats.sort(key=lambda c: (c.sort_order, c.name))
        return cats

    def _query():
        return sb.table("task_categories").select("*").order("sort_order").order("name").execute().data

    rows = await _db_query(_query)
    return [TaskCategory(**r) for r in rows]


async def get_category(category_id: str) -> Optional[TaskCategory]:
    sb = get_supabase()
    if not sb:
        return _get_storage().CATEGORIES.get(category_id)

    def _query():
        return sb.table("task_categories").select("*").eq("id", category_id).execute().data

    rows = await _db_query(_query)
    return TaskCategory(**rows[0]) if rows else None


async def save_category(category: TaskCategory) -> TaskCategory:
    sb = get_supabase()
    if not sb:
        _get_storage().CATEGORIES[category.id] = category
        return category

    def _query():
        sb.table("task_categories").upsert(category.model_dump(mode="json"), on_conflict="id").execute()

    await _db_query(_query)
    return category


async def delete_category(category_id: str) -> bool:
    sb = get_supabase()
    if not sb:
        return _get_storage().CATEGORIES.pop(category_id, None) is not None

    def _query():
        return sb.table("task_categories").delete().eq("id", category_id).execute().data

    rows = await _db_query(_query)
    return bool(rows)


# ── Assignments ────────────────────────────────────────────────────────────────

def _assignment_rows(data: list[dict]) -> dict[str, list[Assignment]]:
    grouped: dict[str, list[Assignment]] = {}
    for r in sorted(data, key=lambda r: (r["shipment_id"], r.get("position", 0))):
        grouped.setdefault(r["shipment_id"], []).append(Assignment(
            shipment_id=r["shipment_id"],
            operator_name=r["operator_name"],
            operator_id=r.get("operator_id"),
        ))
    return grouped


async def get_assignments() -> dict[str, list[Assignment]]:
    sb = get_supabase()
    if not sb:
        return {sid: list(rows) for sid, rows in _get_storage().ASSIGNMENTS.items()}

    def _query():
        return sb.table("shipment_assignments").select("*").execute().data

    return _assignment_rows(await _db_query(_query))


async def replace_assignments(shipment_id: str, rows: list[Assignment]) -> None:
    sb = get_supabase()
    if not sb:
        store = _get_storage().ASSIGNMENTS
        if rows:
            store[shipment_id] = list(rows)
        else:
            store.pop(shipment_id, None)
        return

    def _query():
        sb.table("shipment_assignments").delete().eq("shipment_id", shipment_id).execute()
        if rows:
            sb.table("shipment_assignments").insert([
                {**r.model_dump(mode="json"), "position": i} for i, r in enumerate(rows)
            ]).execute()

    await _db_query(_query)


async def resolve_assignments(operator_name: str, operator_id: str) -> None:
    """Attach a newly created operator to rows that named it before it existed."""
    sb = get_supabase()
    if not sb:
        for rows in _get_storage().ASSIGNMENTS.values():
            for r in rows:
                if r.operator_id is None and r.operator_name == operator_name:
                    r.operator_id = operator_id
        return

    def _query():
        (sb.table("shipment_assignments")
           .update({"operator_id": operator_id})
           .eq("operator_name", operator_name)
           .is_("operator_id", "null")
           .execute())

    await _db_query(_query)


async def rename_assignments(operator_id: str, new_name: str) -> None:
    sb = get_supabase()
    if not sb:
        for rows in _get_storage().ASSIGNMENTS.values():
            for r in rows:
                if r.operator_id == operator_id:
                    r.operator_name = new_name
        return

    def _query():
        (sb.table("shipment_assignments")
           .update({"operator_name": new_name})
           .eq("operator_id", operator_id)
           .execute())

    await _db_query(_query)


# ── User profiles ──────────────────────────────────────────────────────────────

async def get_user_profile(user_id: str) -> Optional[UserProfile]:
    sb = get_supabase()
    if not sb:
        return _get_storage().USER_PROFILES.get(user_id)

    def _query():
        return sb.table("user_profiles").select("id,email,role,permissions").eq("id", user_id).execute().data

    rows = await _db_query(_query)
    if not rows:
        return None
    row = rows[0]
    # permissions is a nullable text[] column
    return UserProfile(**{**row, "permissions": row.get("permissions") or []})


# ── KPI snapshot ───────────────────────────────────────────────────────────────

async def load_dataset() -> KpiDataset:
    """Read every table the KPI engine needs."""
    shipments, operators, categories, assignments = await asyncio.gather(
        get_shipments(),
        get_operators(),
        get_categories(),
        get_assignments(),
    )
    return KpiDataset(
        shipments=shipments,
        operators=operators,
        categories=categories,
        assignments=assignments,
    )
