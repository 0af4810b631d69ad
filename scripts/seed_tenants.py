#!/usr/bin/env python3
"""
Seed the built-in tenants for development.

Creates:
- the default assessment tenant (16-question help desk assessment)
- the demo tenant (10-question product-fit assessment)
- 1 admin user in the default tenant (admin / admin123 unless ADMIN_PASSWORD is set)

Safe to run repeatedly; existing rows are kept.
"""

import os
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from lead_intake.core.config import Settings
from lead_intake.core.db import Base, make_engine, make_session_factory, session_scope
from lead_intake import models  # noqa: F401
from lead_intake.services.seed import seed_admin, seed_defaults
from lead_intake.services.tenants import get_quiz_questions


def main():
    settings = Settings.from_env()
    print(f"🌱 Seeding tenants into {settings.database_url} ...")

    engine = make_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    factory = make_session_factory(engine)

    try:
        with session_scope(factory) as db:
            tenants = seed_defaults(db, settings.default_org_id, settings.demo_org_id)
            for key, tenant in tenants.items():
                count = len(get_quiz_questions(db, tenant.org_id))
                print(f"  ✅ {key}: {tenant.name} (org={tenant.org_id}, subdomain={tenant.subdomain}, questions={count})")
            admin = seed_admin(db, settings.default_org_id, os.getenv("ADMIN_PASSWORD"))
            print(f"  ✅ admin user: {admin.username} ({admin.email})")
    except Exception as e:
        print(f"\n❌ Seeding failed: {e}")
        raise

    print("\n🔗 Test login:")
    print("  POST http://localhost:8000/api/auth/login")
    print('  Body: {"username": "admin", "password": "<ADMIN_PASSWORD or admin123>"}')


if __name__ == "__main__":
    main()
