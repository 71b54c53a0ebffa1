#!/usr/bin/env python
"""
Create an admin account, or reset the password of an existing one.

Usage (from backend/):
    python scripts/create_admin.py --email admin@example.com --password 'S3cret!'
"""

import argparse
import asyncio
import logging
import sys

from sqlalchemy import select

from subdesk.database import dispose_engine, session_scope
from subdesk.models.admin import Admin
from subdesk.security import hash_password

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger("create_admin")

MIN_PASSWORD_LENGTH = 8


async def create_or_reset_admin(email: str, password: str) -> bool:
    """Returns True when a new admin row was created."""
    async with session_scope() as db:
        result = await db.execute(select(Admin).where(Admin.email == email))
        admin = result.scalar_one_or_none()
        if admin is None:
            db.add(Admin(email=email, password_hash=hash_password(password)))
            created = True
        else:
            admin.password_hash = hash_password(password)
            created = False
    await dispose_engine()
    return created


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create or reset a SubDesk admin")
    parser.add_argument("--email", required=True, help="Admin login email")
    parser.add_argument("--password", required=True, help="New password")
    args = parser.parse_args(argv)

    email = args.email.strip()
    if len(args.password) < MIN_PASSWORD_LENGTH:
        logger.error("Password must be at least %d characters", MIN_PASSWORD_LENGTH)
        return 1

    created = asyncio.run(create_or_reset_admin(email, args.password))
    logger.info("Admin %s %s", email, "created" if created else "password reset")
    return 0


if __name__ == "__main__":
    sys.exit(main())
