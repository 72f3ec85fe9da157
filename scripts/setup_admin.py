"""
Create an administrator, or promote an existing account.

    python scripts/setup_admin.py --username admin --email admin@example.com --password secret
"""

import os
import sys
import argparse
import getpass

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from core.logging import setup_logging

setup_logging()

from db_config import SessionLocal
from services.seed_service import ensure_admin

MIN_PASSWORD_LENGTH = 6


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create or promote an iYKELib administrator")
    parser.add_argument("--username", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", help="Prompted for when omitted")
    parser.add_argument("--reset-password", action="store_true",
                        help="Replace the password of an existing account")
    args = parser.parse_args(argv)

    password = args.password or getpass.getpass("Admin password: ")
    if len(password) < MIN_PASSWORD_LENGTH:
        print(f"❌ Password must be at least {MIN_PASSWORD_LENGTH} characters")
        return 1

    db = SessionLocal()
    try:
        user = ensure_admin(db, args.username, args.email, password, reset_password=args.reset_password)
        print(f"✅ {user.username} ({user.email}) is an administrator (id={user.id})")
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
