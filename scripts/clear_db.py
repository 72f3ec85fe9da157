"""
Database cleanup script for clearing records after experiments.
"""

import os
import shutil
import sys
from pathlib import Path
import argparse

# Add the parent directory to the Python path and run from the project root
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
os.chdir(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from db_config import SessionLocal
from core.config import settings
from models.models import Base, User

# Activity and engagement tables; children of users and content
LOG_TABLES = [
    "user_activity_logs",
    "search_history",
    "view_logs",
    "download_logs",
]

USER_DATA_TABLES = LOG_TABLES + [
    "comments",
    "reading_history",
    "bookmarks",
    "ratings",
    "certificates",
    "test_results",
    "user_sessions",
]


def _confirm(prompt: str, confirm: bool) -> bool:
    if confirm:
        return True
    response = input(f"⚠️  {prompt} (yes/no): ")
    if response.lower() != "yes":
        print("❌ Operation cancelled.")
        return False
    return True


def _foreign_key_checks(db: Session, enabled: bool) -> None:
    dialect = db.get_bind().dialect.name
    if dialect == "mysql":
        db.execute(text(f"SET FOREIGN_KEY_CHECKS={1 if enabled else 0}"))
    elif dialect == "sqlite":
        db.execute(text(f"PRAGMA foreign_keys={'ON' if enabled else 'OFF'}"))


def _delete_tables(db: Session, tables) -> None:
    _foreign_key_checks(db, False)
    try:
        for table in tables:
            result = db.execute(text(f"DELETE FROM {table}"))
            print(f"   ✅ Cleared {table}: {result.rowcount} records deleted")
    finally:
        _foreign_key_checks(db, True)


def clear_all_tables(db: Session, confirm: bool = False) -> bool:
    """Clear all data from every table, children first."""
    if not _confirm("This will DELETE ALL DATA from the database. Are you sure?", confirm):
        return False

    print("🗑️  Clearing all database tables...")
    tables = [table.name for table in reversed(Base.metadata.sorted_tables)]

    try:
        _delete_tables(db, tables)
        db.commit()
        print("\n✅ Database cleared successfully!")
        return True
    except SQLAlchemyError as e:
        db.rollback()
        print(f"\n❌ Error clearing database: {str(e)}")
        return False


def clear_user_data_only(db: Session, confirm: bool = False) -> bool:
    """Clear user-generated data; keep users, categories, content, tags and courses."""
    if not _confirm("This will DELETE ALL USER DATA but keep the catalog. Continue?", confirm):
        return False

    print("🗑️  Clearing user data only...")
    try:
        _delete_tables(db, USER_DATA_TABLES)
        db.commit()
        print("\n✅ User data cleared successfully!")
        print("ℹ️  Catalog preserved: users, categories, books, tutorials, tags, courses")
        return True
    except SQLAlchemyError as e:
        db.rollback()
        print(f"\n❌ Error clearing user data: {str(e)}")
        return False


def clear_test_users(db: Session, confirm: bool = False) -> bool:
    """Delete test-looking users; their dependent rows go with them via ON DELETE CASCADE."""
    if not _confirm("This will DELETE TEST USERS and their data. Continue?", confirm):
        return False

    print("🗑️  Clearing test users...")
    try:
        test_users = (
            db.query(User)
            .filter((User.username.like("%test%")) | (User.email.like("%test%@%")))
            .all()
        )

        print(f"Found {len(test_users)} test users:")
        for user_obj in test_users:
            print(f"   - {user_obj.username} ({user_obj.email})")

        if test_users:
            user_ids = [user_obj.id for user_obj in test_users]
            deleted = db.query(User).filter(User.id.in_(user_ids)).delete(synchronize_session=False)
            print(f"   ✅ Deleted {deleted} test users")

        db.commit()
        print("\n✅ Test users cleared successfully!")
        return True
    except SQLAlchemyError as e:
        db.rollback()
        print(f"\n❌ Error clearing test users: {str(e)}")
        return False


def _clear_directory(directory: Path, label: str) -> int:
    if not directory.exists() or not directory.is_dir():
        print(f"   ℹ️  {label} directory not found: {directory}")
        return 0

    deleted = 0
    for entry in directory.iterdir():
        try:
            if entry.is_dir():
                shutil.rmtree(entry)
            else:
                entry.unlink()
            deleted += 1
        except OSError as e:
            print(f"   ⚠️  Error deleting {entry.name}: {str(e)}")
    print(f"   ✅ Cleared {label} ({deleted} entries)")
    return deleted


def clear_uploads():
    """Remove uploaded book files and covers."""
    print("🗑️  Clearing uploads...")
    _clear_directory(Path(settings.upload_directory), "uploads")


def clear_cache_files():
    """Clear generated cache files such as the exported OpenAPI schema."""
    print("🗑️  Clearing cache files...")
    _clear_directory(Path("cache"), "cache")


def clear_all_logs():
    """Clear all logs from the logs directory."""
    print("🗑️  Clearing all logs...")
    _clear_directory(Path(settings.log_directory), "logs")


def main():
    parser = argparse.ArgumentParser(description="Database and file cleanup utility")
    parser.add_argument("--all", action="store_true", help="Clear all data from every table")
    parser.add_argument(
        "--user-data",
        action="store_true",
        help="Clear user-generated data only (keeps users and the catalog)",
    )
    parser.add_argument("--test-users", action="store_true", help="Clear test users and their data")
    parser.add_argument("--uploads", action="store_true", help="Clear uploaded files")
    parser.add_argument("--cache", action="store_true", help="Clear the cache directory")
    parser.add_argument("--logs", action="store_true", help="Clear all logs from the logs directory")
    parser.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Auto-confirm dangerous operations (use with caution!)",
    )

    args = parser.parse_args()

    if not any([args.all, args.user_data, args.test_users, args.uploads, args.cache, args.logs]):
        print("🧹 Database & File Cleanup Utility")
        print("=" * 35)
        parser.print_help()

        print("\n📋 Tables in Database:")
        for i, table in enumerate(Base.metadata.sorted_tables, 1):
            print(f"   {i:2d}. {table.name}")
        print(f"\nTotal: {len(Base.metadata.sorted_tables)} tables")
        print("\nExample: python scripts/clear_db.py --test-users --uploads --yes")
        return

    db_session = None
    try:
        if args.all or args.user_data or args.test_users:
            db_session = SessionLocal()

        if args.all:
            clear_all_tables(db_session, args.yes)
        elif args.user_data:
            clear_user_data_only(db_session, args.yes)
        elif args.test_users:
            clear_test_users(db_session, args.yes)

        if args.uploads:
            clear_uploads()
        if args.cache:
            clear_cache_files()
        if args.logs:
            clear_all_logs()

        print("\n🎉 Cleanup completed!")
    finally:
        if db_session:
            db_session.close()


if __name__ == "__main__":
    main()
