#!/usr/bin/env python3
"""
Seed script to load the reference medicine catalog into the database.
Usage: python seed_medicines_inventory.py

Safe to run repeatedly: medicines already present (by name) are skipped.
"""

import sys
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

# Allow running from a checkout without installing the package
backend_dir = Path(__file__).parent / "backend"
sys.path.insert(0, str(backend_dir))

from pharmabot.db.base import Base  # noqa: E402
from pharmabot.db.init_db import ensure_database_exists, seed_medicines  # noqa: E402
from pharmabot.db.session import SessionLocal, engine  # noqa: E402


def main() -> bool:
    ensure_database_exists(engine.url.render_as_string(hide_password=False))
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        added = seed_medicines(db)
        print(f"\n✅ Successfully seeded {added} medicines!")
        return True
    except SQLAlchemyError as e:
        db.rollback()
        print(f"\n❌ Error seeding data: {e}")
        return False
    finally:
        db.close()


if __name__ == "__main__":
    print("🏥 Pharmacy Bot - Medicine Catalog Seeding\n")
    sys.exit(0 if main() else 1)
