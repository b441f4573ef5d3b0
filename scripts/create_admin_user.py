#!/usr/bin/env python3
"""
Create the first admin user.

User accounts can only be created by an admin through the API, so the first
admin has to be created from the command line.

Usage:
    python scripts/create_admin_user.py --name "Admin" --email admin@example.com
    (the password is prompted for unless --password is given)
"""

from __future__ import annotations

import argparse
import getpass
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.errors import CRMError
from services.user_service import ensure_admin


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(description="Create the first admin user")
    parser.add_argument("--name", required=True, help="Display name")
    parser.add_argument("--email", required=True, help="Login email")
    parser.add_argument("--password", help="Password (prompted for if omitted)")
    args = parser.parse_args()

    password = args.password or getpass.getpass("Password (min 8 characters): ")

    try:
        user, created = ensure_admin({"name": args.name, "email": args.email, "password": password})
    except CRMError as e:
        print(f"[ERROR] {e.message}", file=sys.stderr)
        return 1
    except RuntimeError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1

    if created:
        print("[SUCCESS] Admin user created")
    else:
        print(f"User already exists: {user.email} (role: {user.role.value})")
    print(f"  User ID: {user.user_id}")
    print(f"  Email: {user.email}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
