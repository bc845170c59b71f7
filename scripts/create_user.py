#!/usr/bin/env python3
"""Register a chirpy user from the command line.

Usage:
    CHIRPY_EMAIL=alice@example.com CHIRPY_PASSWORD=hunter2 python scripts/create_user.py

    python scripts/create_user.py --email alice@example.com --password hunter2

Environment Variables:
    CHIRPY_EMAIL: Email for the new user
    CHIRPY_PASSWORD: Password for the new user
    DATABASE_URL: PostgreSQL connection string (optional, uses memory store if not set)
    STATE_DIR: Where the memory store snapshots rows when DATABASE_URL is unset
"""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from dotenv import dotenv_values

# Add project root to path for imports
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def create_user(email: str, password: str, dry_run: bool = False) -> dict:
    """Register ``email`` unless it already exists.

    Returns:
        dict with user_id, email, and status ('created', 'exists' or 'dry_run')
    """
    # Import here to avoid loading config before env vars are set
    from chirpy.service.errors import ConflictError
    from chirpy.service.runtime import get_runtime

    runtime = get_runtime()
    try:
        if dry_run:
            existing = runtime.store.get_user_by_email(email)
            print(f"[DRY RUN] Would create user: {email}")
            return {
                "user_id": existing.id if existing else None,
                "email": email,
                "status": "exists" if existing else "dry_run",
            }
        try:
            user = runtime.sessions.register(email, password)
        except ConflictError:
            print(f"User {email} already exists")
            return {"user_id": None, "email": email, "status": "exists"}
    finally:
        runtime.close()

    print(f"Created user: {email} (id: {user.id})")
    return {"user_id": user.id, "email": email, "status": "created"}


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Register a chirpy user",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--email",
        default=os.environ.get("CHIRPY_EMAIL"),
        help="User email (or set CHIRPY_EMAIL env var)",
    )
    parser.add_argument(
        "--password",
        default=os.environ.get("CHIRPY_PASSWORD"),
        help="User password (or set CHIRPY_PASSWORD env var)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )

    args = parser.parse_args(argv)

    if not args.email:
        print("Error: --email or CHIRPY_EMAIL environment variable required")
        return 1
    if not args.password:
        print("Error: --password or CHIRPY_PASSWORD environment variable required")
        return 1

    # Same precedence as Settings.from_env: process env first, then .env
    env_file = dotenv_values(".env")

    if not (os.environ.get("JWT_SECRET") or env_file.get("JWT_SECRET")):
        import secrets
        os.environ["JWT_SECRET"] = secrets.token_urlsafe(48)

    if not (os.environ.get("DATABASE_URL") or env_file.get("DATABASE_URL")):
        os.environ["USE_MEMORY_STORE"] = "true"
        print("Note: Using in-memory store (set DATABASE_URL or STATE_DIR for persistence)")

    try:
        result = create_user(args.email, args.password, args.dry_run)
    except Exception as e:
        print(f"Error: {type(e).__name__}")
        return 1
    return 0 if result["status"] in ("created", "dry_run") else 2


if __name__ == "__main__":
    sys.exit(main())
