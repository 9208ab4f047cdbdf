"""Print the KPI data-quality checks and the current top of the ranking.

Reads Supabase when SUPABASE_URL/KEY are set, otherwise the in-memory seed
store (which has no shipments, so most checks report WARNING/ERROR).

Usage:
    python scripts/verify_kpi_health.py
"""
from __future__ import annotations

import asyncio
import sys
import os

# Allow running from repo root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from warehouse_kpi.services.supabase_client import supabase_configured
from warehouse_kpi.services import kpi_service
from warehouse_kpi.services.storage import DEFAULT_PROFILES

_ICONS = {"OK": "✓", "INFO": "ℹ", "WARNING": "!", "ERROR": "✗"}


async def _run():
    # Any admin profile passes every KPI permission check
    caller = next(p for p in DEFAULT_PROFILES if p.id == "u_admin")
    metrics = await kpi_service.get_kpi_system_health(caller)
    ranking = await kpi_service.get_operator_performance(caller)
    return metrics, ranking


def main() -> None:
    print("=" * 60)
    print("  Warehouse KPI — data health check")
    print("=" * 60)
    mode = "Supabase" if supabase_configured() else "in-memory fallback"
    print(f"\n[{mode}]\n")

    metrics, ranking = asyncio.run(_run())
    for m in metrics:
        print(f"  {_ICONS.get(m.status, '?')}  {m.metric:28s} {m.value:>8d}  {m.details}")

    print("\n  Top operators:")
    for row in ranking[:5]:
        print(f"    #{row.rank:<3d} {row.operator_name:24s} score={row.total_score:<5d} tasks={row.total_completed_tasks}")
    if not ranking:
        print("    (none — no KPI-eligible completed shipments)")

    print("\n" + "=" * 60)
    if any(m.status == "ERROR" for m in metrics):
        print("  FAIL — see errors above")
        sys.exit(1)
    print("  PASS")
    print("=" * 60)


if __name__ == "__main__":
    main()
