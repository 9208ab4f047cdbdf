"""Service-layer tests against the in-memory store.

Run:
    python -m pytest warehouse_kpi/tests/test_services.py -v
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from warehouse_kpi.models.category import CategoryCreate, CategoryUpdate
from warehouse_kpi.models.operator import OperatorCreate, OperatorUpdate
from warehouse_kpi.models.shipment import (
    Intensity,
    Shipment,
    ShipmentCreate,
    ShipmentStatus,
    ShipmentUpdate,
)
from warehouse_kpi.services import (
    category_service,
    db,
    kpi_service,
    operator_service,
    shipment_service,
    storage,
)
from warehouse_kpi.services.auth import PermissionDenied, get_caller
from warehouse_kpi.services.category_service import CategoryInUseError, DuplicateCategoryError
from warehouse_kpi.services.operator_service import DuplicateOperatorError
from warehouse_kpi.services.shipment_service import InvalidTransitionError
from warehouse_kpi.services.summary_cache import PerformanceSummaryCache, summary_cache

run = asyncio.run


def _profile(user_id):
    return storage.USER_PROFILES[user_id]


@pytest.fixture
def admin():
    return _profile("u_admin")


@pytest.fixture
def analyst():
    return _profile("u_analyst")


def _new(title, operators, intensity=Intensity.medium, **kw):
    return run(shipment_service.create_shipment(
        ShipmentCreate(title=title, assigned_operators=operators, intensity=intensity, **kw)
    ))


def _done(title, operators, intensity=Intensity.medium, **kw):
    shipment = _new(title, operators, intensity, **kw)
    return run(shipment_service.complete_shipment(shipment.id))


def _ranking(caller):
    return {r.operator_name: r for r in run(kpi_service.get_filtered_operator_performance(caller))}


# ── Permissions ───────────────────────────────────────────────────────────────

class TestPermissions:
    @pytest.mark.parametrize("user_id", [None, "u_floor"])
    def test_kpi_reads_denied(self, user_id):
        caller = _profile(user_id) if user_id else None
        with pytest.raises(PermissionDenied):
            run(kpi_service.get_operator_performance(caller))
        with pytest.raises(PermissionDenied):
            run(kpi_service.get_category_statistics(caller))

    @pytest.mark.parametrize("user_id", ["u_analyst", "u_admin", "u_super"])
    def test_kpi_reads_allowed(self, user_id):
        assert run(kpi_service.get_operator_performance(_profile(user_id))) == []

    def test_analyst_cannot_manage_categories(self, analyst):
        with pytest.raises(PermissionDenied):
            run(category_service.add_category(analyst, CategoryCreate(name="DOCK")))

    def test_health_needs_only_a_signed_in_caller(self):
        with pytest.raises(PermissionDenied):
            run(kpi_service.get_kpi_system_health(None))
        assert run(kpi_service.get_kpi_system_health(_profile("u_floor")))

    def test_get_caller_resolves_header(self):
        assert run(get_caller("u_admin")).id == "u_admin"
        assert run(get_caller(None)) is None
        assert run(get_caller("nobody")) is None


# ── Summary cache ─────────────────────────────────────────────────────────────

class TestSummaryRefresh:
    def test_completion_refreshes_summary(self, analyst):
        assert run(kpi_service.get_operator_performance(analyst)) == []
        _done("INCOMING Pallet 9", ["M. Rivera"], Intensity.high)

        assert summary_cache.current is not None
        [row] = run(kpi_service.get_operator_performance(analyst))
        assert (row.operator_name, row.total_score, row.rank) == ("M. Rivera", 3, 1)

    def test_completion_stamps_timestamp(self):
        shipment = _done("OUTGOING 1", ["L. Kim"])
        assert shipment.status == ShipmentStatus.completed
        assert shipment.completed_at is not None

    def test_editing_completed_shipment_invalidates(self, analyst):
        shipment = _done("INCOMING 1", ["M. Rivera"], Intensity.high)
        run(shipment_service.update_shipment(shipment.id, ShipmentUpdate(intensity=Intensity.low)))
        assert summary_cache.current is None

        [row] = run(kpi_service.get_operator_performance(analyst))
        assert row.total_score == 1

    def test_completed_shipment_cannot_reopen(self):
        shipment = _done("INCOMING 1", ["M. Rivera"])
        with pytest.raises(InvalidTransitionError):
            run(shipment_service.update_shipment(
                shipment.id, ShipmentUpdate(status=ShipmentStatus.in_progress)
            ))

    def test_operator_filter_reads_from_summary(self, analyst):
        _done("INCOMING 1", ["M. Rivera"], Intensity.high)
        _done("INCOMING 2", ["L. Kim"], Intensity.low)
        [kim] = run(kpi_service.get_operator_performance(analyst, "op_04"))
        assert kim.rank == 2

    def test_write_during_refresh_is_not_lost(self, admin, analyst, monkeypatch):
        """A category change made while a refresh is loading data wins over the older load."""
        _done("INCOMING 1", ["M. Rivera"])
        real_load = db.load_dataset
        loads = []

        async def scenario():
            release = asyncio.Event()

            async def held_load():
                data = await real_load()
                loads.append(data)
                if len(loads) == 1:
                    await release.wait()
                return data

            monkeypatch.setattr(db, "load_dataset", held_load)
            refreshing = asyncio.create_task(summary_cache.refresh())
            while not loads:
                await asyncio.sleep(0)
            await category_service.update_category(admin, "cat_incoming", CategoryUpdate(active=False))
            release.set()
            return await refreshing

        summary = run(scenario())
        assert len(loads) == 2
        [cached] = summary.operators
        [live] = run(kpi_service.get_filtered_operator_performance(analyst))
        assert [b.category for b in cached.category_breakdown] == ["OTHER"]
        assert [b.category for b in live.category_breakdown] == ["OTHER"]
        assert summary_cache.current is summary

    def test_concurrent_misses_share_one_rebuild(self, monkeypatch):
        cache = PerformanceSummaryCache()
        real_load = db.load_dataset
        loads = []

        async def counted_load():
            loads.append(1)
            return await real_load()

        monkeypatch.setattr(db, "load_dataset", counted_load)

        async def scenario():
            return await asyncio.gather(*(cache.get() for _ in range(5)))

        summaries = run(scenario())
        assert len(loads) == 1
        assert all(s is summaries[0] for s in summaries)

    def test_manual_refresh(self, analyst):
        _new("INCOMING 1", ["M. Rivera"])
        summary = run(kpi_service.refresh_performance_metrics(analyst))
        assert summary.operators == []
        assert summary_cache.current is summary


# ── Windows ───────────────────────────────────────────────────────────────────

class TestWindows:
    def test_filtered_ranking_uses_window(self, analyst):
        shipment = _done("INCOMING 1", ["D. Nguyen"])
        before = datetime(2000, 1, 1, tzinfo=timezone.utc)
        assert run(kpi_service.get_filtered_operator_performance(analyst, None, before)) == []
        [row] = run(kpi_service.get_filtered_operator_performance(analyst, before, None))
        assert row.operator_id == "op_02"
        assert row.last_completion_date == shipment.completed_at

    def test_shipment_stats(self, analyst):
        _done("INCOMING 1", ["M. Rivera", "L. Kim"], Intensity.high)
        _new("INCOMING 2", ["M. Rivera"])
        stats = run(kpi_service.get_shipment_stats(analyst))
        assert stats.total_shipments == 1
        assert stats.total_operator_tasks == 2
        assert stats.total_points == 6


# ── Categories ────────────────────────────────────────────────────────────────

class TestCategories:
    def test_add_normalizes_and_appends(self, admin):
        category = run(category_service.add_category(admin, CategoryCreate(name="  dock ")))
        assert category.name == "DOCK"
        assert category.sort_order == 100

    def test_duplicate_rejected(self, admin):
        with pytest.raises(DuplicateCategoryError):
            run(category_service.add_category(admin, CategoryCreate(name="incoming")))

    def test_blank_name_rejected(self, admin):
        with pytest.raises(ValueError):
            run(category_service.add_category(admin, CategoryCreate(name="   ")))

    def test_list_reports_usage(self):
        _new("INCOMING 1", [])
        _new("INCOMING 2", [])
        items = {c.name: c for c in run(category_service.list_categories())}
        assert items["INCOMING"].usage_count == 2
        assert items["INCOMING"].can_delete is False
        assert items["OPI"].can_delete is True

    def test_category_in_use_cannot_be_deleted(self, admin):
        _new("INCOMING 1", ["M. Rivera"])
        with pytest.raises(CategoryInUseError) as err:
            run(category_service.delete_category(admin, "cat_incoming"))
        assert err.value.usage_count == 1

    def test_deactivate_then_delete(self, admin):
        _new("INCOMING 1", ["M. Rivera"])
        run(category_service.update_category(admin, "cat_incoming", CategoryUpdate(active=False)))
        assert run(category_service.delete_category(admin, "cat_incoming")) is True
        assert "cat_incoming" not in storage.CATEGORIES

    def test_archived_shipments_still_block_delete(self, admin):
        shipment = _new("WAREHOUSE recount", [])
        run(shipment_service.update_shipment(shipment.id, ShipmentUpdate(archived=True)))
        with pytest.raises(CategoryInUseError) as err:
            run(category_service.delete_category(admin, "cat_warehouse"))
        assert err.value.usage_count == 1

        items = {c.name: c for c in run(category_service.list_categories())}
        assert items["WAREHOUSE"].usage_count == 1
        assert items["WAREHOUSE"].can_delete is False

    def test_deactivation_moves_work_to_catch_all(self, admin, analyst):
        _done("INCOMING 1", ["M. Rivera"])
        run(category_service.update_category(admin, "cat_incoming", CategoryUpdate(active=False)))
        stats = run(kpi_service.get_category_statistics(analyst))
        assert [s.task_category for s in stats] == ["OTHER"]

    def test_rename_to_existing_rejected(self, admin):
        with pytest.raises(DuplicateCategoryError):
            run(category_service.update_category(admin, "cat_opi", CategoryUpdate(name="Pickup")))

    def test_missing_category_returns_none(self, admin):
        assert run(category_service.update_category(admin, "nope", CategoryUpdate(active=False))) is None
        assert run(category_service.delete_category(admin, "nope")) is False

    def test_matching_preview(self, analyst):
        _new("SORTING lane 4", [])
        [match] = run(kpi_service.get_category_matching(analyst))
        assert match.matched_category == "SORTING"


# ── Operators ─────────────────────────────────────────────────────────────────

class TestOperators:
    def test_new_operator_claims_earlier_assignments(self, admin, analyst):
        _done("INCOMING 1", ["New Hire"], Intensity.high)
        assert _ranking(analyst) == {}

        run(operator_service.create_operator(admin, OperatorCreate(name="New Hire")))
        assert _ranking(analyst)["New Hire"].total_score == 3

    def test_rename_keeps_history(self, admin, analyst):
        shipment = _done("INCOMING 1", ["M. Rivera"])
        run(operator_service.update_operator(admin, "op_01", OperatorUpdate(name="Maria Rivera")))

        rows = _ranking(analyst)
        assert "M. Rivera" not in rows
        assert rows["Maria Rivera"].total_completed_tasks == 1
        assert storage.SHIPMENTS[shipment.id].assigned_operators == ["Maria Rivera"]
        assert storage.ASSIGNMENTS[shipment.id][0].operator_name == "Maria Rivera"

    def test_duplicate_name_rejected(self, admin):
        with pytest.raises(DuplicateOperatorError):
            run(operator_service.create_operator(admin, OperatorCreate(name="L. Kim")))

    def test_deactivated_operator_keeps_history(self, admin, analyst):
        _done("INCOMING 1", ["L. Kim"])
        run(operator_service.update_operator(admin, "op_04", OperatorUpdate(active=False)))
        assert _ranking(analyst)["L. Kim"].active is False
        missing = run(kpi_service.get_operators_missing_categories(analyst))
        assert "L. Kim" not in {r.operator_name for r in missing}

    def test_list_sorted_by_name(self):
        names = [o.name for o in run(operator_service.list_operators())]
        assert names == sorted(names)


# ── Backfill and health ───────────────────────────────────────────────────────

class TestBackfill:
    def test_untimed_completions_get_updated_at(self, admin, analyst):
        stamp = datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
        storage.SHIPMENTS["legacy"] = Shipment(
            id="legacy", title="PICKUP 7", status=ShipmentStatus.completed,
            assigned_operators=["K. Johnson"], updated_at=stamp,
        )
        storage.SHIPMENTS["hopeless"] = Shipment(
            id="hopeless", title="PICKUP 8", status=ShipmentStatus.completed,
        )
        assert _ranking(analyst) == {}

        result = run(shipment_service.backfill_completion_timestamps(admin))
        assert result.fixed == 1
        assert result.shipment_ids == ["legacy"]
        assert storage.SHIPMENTS["legacy"].completed_at == stamp
        assert _ranking(analyst)["K. Johnson"].total_completed_tasks == 1

    def test_requires_admin(self, analyst):
        with pytest.raises(PermissionDenied):
            run(shipment_service.backfill_completion_timestamps(analyst))


class TestHealth:
    def test_metrics_sorted_by_severity(self, analyst):
        order = {"ERROR": 1, "WARNING": 2, "OK": 3, "INFO": 4}
        metrics = run(kpi_service.get_kpi_system_health(analyst))
        keys = [(order[m.status], m.metric) for m in metrics]
        assert keys == sorted(keys)
        assert len(metrics) == 8

    def test_empty_store_reports_errors(self, analyst):
        metrics = {m.metric: m for m in run(kpi_service.get_kpi_system_health(analyst))}
        assert metrics["KPI-Eligible Tasks"].status == "ERROR"
        assert metrics["Total KPI Score"].status == "ERROR"

    def test_healthy_after_completion(self, analyst):
        _done("INCOMING 1", ["M. Rivera", "Ghost"])
        metrics = {m.metric: m for m in run(kpi_service.get_kpi_system_health(analyst))}
        assert metrics["KPI-Eligible Tasks"].value == 1
        assert metrics["Unresolved Operator Names"].value == 1
        assert metrics["Unresolved Operator Names"].status == "WARNING"
        assert metrics["Total KPI Score"].value == 2
        assert metrics["Summary Age (seconds)"].status == "OK"
