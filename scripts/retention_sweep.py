#!/usr/bin/env python3
"""
Hard-delete soft-deleted rows older than the retention window, tenant by tenant.

Usage:
    python scripts/retention_sweep.py            # RETENTION_DAYS (default 90)
    python scripts/retention_sweep.py 30         # explicit window
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from lead_intake.core.config import Settings
from lead_intake.core.db import make_engine, make_session_factory, session_scope
from lead_intake.models.orm import Tenant
from lead_intake.services.repository import OrgDb


def sweep(days: int) -> dict:
    settings = Settings.from_env()
    factory = make_session_factory(make_engine(settings.database_url))
    totals = {"leads": 0, "workflows": 0, "knowledge_base_docs": 0}

    with session_scope(factory) as db:
        org_ids = list(db.scalars(select(Tenant.org_id)))

    for org_id in org_ids:
        with session_scope(factory) as db:
            purged = OrgDb(db, org_id, settings.system_user_id).purge_deleted(days)
        print(f"  🧹 {org_id}: {purged}")
        for key, n in purged.items():
            totals[key] = totals.get(key, 0) + n
    return totals


if __name__ == "__main__":
    days = int(sys.argv[1]) if len(sys.argv) > 1 else Settings.from_env().retention_days
    print(f"🧹 Purging rows soft-deleted more than {days} days ago...")
    totals = sweep(days)
    print(f"\n✅ Done: {totals}")
