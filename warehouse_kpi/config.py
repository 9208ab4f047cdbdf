import os
from dotenv import load_dotenv

load_dotenv()

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Supabase
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")

# KPI engine
KPI_CATCH_ALL_CATEGORY = os.getenv("KPI_CATCH_ALL_CATEGORY", "OTHER").strip().upper() or "OTHER"
KPI_ADMIN_ROLES = frozenset(
    r.strip() for r in os.getenv("KPI_ADMIN_ROLES", "admin,super_admin").split(",") if r.strip()
)
KPI_PERMISSION = os.getenv("KPI_PERMISSION", "kpi")
KPI_SUMMARY_ON_STARTUP = os.getenv("KPI_SUMMARY_ON_STARTUP", "true").lower() in ("1", "true", "yes")
