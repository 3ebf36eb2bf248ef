"""
Grant Admin Script - adds (or removes) a principal in the admins allow-list.

The principal must already exist at the identity provider; pass its id as
shown by GET /api/auth/me or the provider's dashboard.

Usage:
    python grant_admin.py <principal-id> <email> "<full name>"
    python grant_admin.py --revoke <principal-id>
"""

import argparse
import sys

from portal.config import DATABASE_URL
from portal.database import SessionLocal, create_tables
from portal.models.admin import Admin


def grant(principal_id: str, email: str, full_name: str, role: str = "admin") -> bool:
    """Insert the admin row. Returns False if it was already there."""
    db = SessionLocal()
    try:
        if db.get(Admin, principal_id) is not None:
            return False
        db.add(Admin(id=principal_id, email=email, full_name=full_name, role=role))
        db.commit()
        return True
    finally:
        db.close()


def revoke(principal_id: str) -> bool:
    """Delete the admin row. Returns False if there was none."""
    db = SessionLocal()
    try:
        admin = db.get(Admin, principal_id)
        if admin is None:
            return False
        db.delete(admin)
        db.commit()
        return True
    finally:
        db.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Manage the admin allow-list")
    parser.add_argument("principal_id")
    parser.add_argument("email", nargs="?")
    parser.add_argument("full_name", nargs="?")
    parser.add_argument("--role", default="admin")
    parser.add_argument("--revoke", action="store_true")
    args = parser.parse_args(argv)

    if DATABASE_URL.startswith("sqlite"):
        create_tables()

    if args.revoke:
        removed = revoke(args.principal_id)
        print(f"{'Revoked' if removed else 'Not an admin'}: {args.principal_id}")
        return 0

    if not args.email or not args.full_name:
        parser.error("email and full_name are required when granting")

    added = grant(args.principal_id, args.email, args.full_name, args.role)
    print(f"{'Granted admin to' if added else 'Already an admin'}: {args.principal_id} ({args.email})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
