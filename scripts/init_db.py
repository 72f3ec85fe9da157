"""
Create the schema and seed the default admin and categories.

    python scripts/init_db.py [--skip-categories]
"""

import os
import sys
import argparse

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from core.logging import setup_logging, get_logger

setup_logging()
logger = get_logger("init_db")

from db_config import SessionLocal, engine
from models.models import Base
from services.seed_service import seed_default_admin, seed_default_categories


def init_database(skip_categories: bool = False) -> None:
    Base.metadata.create_all(bind=engine)
    print(f"✅ Schema ready ({len(Base.metadata.sorted_tables)} tables)")

    db = SessionLocal()
    try:
        admin = seed_default_admin(db)
        if admin:
            print(f"✅ Admin account: {admin.username} ({admin.email})")
        else:
            print("ℹ️  DEFAULT_ADMIN_* not set, no admin created")

        if not skip_categories:
            created = seed_default_categories(db)
            print(f"✅ Default categories created: {created}")
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Initialize the iYKELib database")
    parser.add_argument("--skip-categories", action="store_true", help="Do not seed default categories")
    args = parser.parse_args()

    logger.info("Initializing database", skip_categories=args.skip_categories)
    init_database(skip_categories=args.skip_categories)


if __name__ == "__main__":
    main()
