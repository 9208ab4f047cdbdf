"""Push the default categories, operators and user profiles into Supabase.

Idempotent — uses upsert so it can be re-run safely.

Usage:
    python scripts/seed_supabase.py
"""
from __future__ import annotations

import sys
import os

# Allow running from repo root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from supabase import create_client

from warehouse_kpi.config import SUPABASE_URL, SUPABASE_KEY
from warehouse_kpi.services.storage import CATEGORIES, OPERATORS, USER_PROFILES


def main() -> None:
    if not SUPABASE_URL or not SUPABASE_KEY:
        print("ERROR: Set SUPABASE_URL and SUPABASE_KEY env vars (or in .env)")
        sys.exit(1)

    sb = create_client(SUPABASE_URL, SUPABASE_KEY)

    # ── Task categories ───────────────────────────────────────────────────────
    print(f"Upserting {len(CATEGORIES)} task categories...")
    for category in CATEGORIES.values():
        sb.table("task_categories").upsert(category.model_dump(mode="json"), on_conflict="id").execute()

    # ── Operators ─────────────────────────────────────────────────────────────
    print(f"Upserting {len(OPERATORS)} operators...")
    for operator in OPERATORS.values():
        sb.table("operators").upsert(operator.model_dump(mode="json"), on_conflict="id").execute()

    # ── User profiles ─────────────────────────────────────────────────────────
    print(f"Upserting {len(USER_PROFILES)} user profiles...")
    for profile in USER_PROFILES.values():
        sb.table("user_profiles").upsert(profile.model_dump(mode="json"), on_conflict="id").execute()

    print("Done! All seed data upserted.")


if __name__ == "__main__":
    main()
