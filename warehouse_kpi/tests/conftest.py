from __future__ import annotations

import pytest

from warehouse_kpi.services import db, storage
from warehouse_kpi.services.summary_cache import summary_cache


@pytest.fixture(autouse=True)
def in_memory_store(monkeypatch):
    """Every test runs against a freshly seeded in-memory store, never Supabase."""
    monkeypatch.setattr(db, "get_supabase", lambda: None)
    storage.reset()
    summary_cache.invalidate()
    yield storage
    summary_cache.invalidate()
