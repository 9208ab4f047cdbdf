"""Lazy Supabase client singleton. None means "use the in-memory store"."""
from __future__ import annotations

import logging

from warehouse_kpi.config import SUPABASE_URL, SUPABASE_KEY

logger = logging.getLogger(__name__)

_client = None


def supabase_configured() -> bool:
    return bool(SUPABASE_URL and SUPABASE_KEY)


def get_supabase():
    global _client
    if _client is None and supabase_configured():
        from supabase import create_client
        _client = create_client(SUPABASE_URL, SUPABASE_KEY)
        logger.info("Supabase client connected to %s", SUPABASE_URL)
    return _client


def reset_supabase() -> None:
    """Drop the singleton so the next get_supabase() opens a fresh connection.

    The db layer calls this after a stale pooled httpx connection fails a
    read with ReadError.
    """
    global _client
    _client = None
