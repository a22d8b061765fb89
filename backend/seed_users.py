"""
Database seeding script for initial users.

Creates the bootstrap ADMIN (credentials from settings / .env) and a sample
STAFF user, each with their role's default permission table.
Run this script after database is set up but before first use.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.core.config import settings
from backend.app.core.permissions import default_permissions, to_plain_table
from backend.app.core.security import get_password_hash
from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.models.user import User
from backend.app.models.enums import UserRole
from backend.app.models.audit_log import AuditLog  # noqa: F401
from backend.app.models.trip import Trip  # noqa: F401
from backend.app.models.truck import Truck  # noqa: F401
from sqlalchemy import select, or_


def build_seed_users():
    """
    The accounts to seed.

    Returns:
        List of unsaved User instances
    """
    return [
        User(
            email=settings.admin_email,
            username=settings.admin_username,
            full_name="System Administrator",
            hashed_password=get_password_hash(settings.admin_password),
            role=UserRole.ADMIN,
            permissions=to_plain_table(default_permissions(UserRole.ADMIN)),
            is_active=True
        ),
        User(
            email="staff@transportpro.local",
            username="staff",
            full_name="Sample Staff",
            department="Operations",
            hashed_password=get_password_hash("staff123"),
            role=UserRole.STAFF,
            permissions=to_plain_table(default_permissions(UserRole.STAFF)),
            is_active=True
        ),
    ]


async def seed_users():
    """
    Seed initial users, skipping any whose username or email already exists.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("Starting user seeding...")

        created = []
        for user in build_seed_users():
            result = await db.execute(
                select(User).where(or_(User.username == user.username, User.email == user.email))
            )
            if result.scalar_one_or_none():
                print(f"User '{user.username}' already exists, skipping")
                continue
            db.add(user)
            created.append(user)

        await db.commit()

        print("\nUser seeding completed.")
        for user in created:
            print(f"  - {user.role.value.upper():<6} {user.username}")
        if any(user.username == "staff" for user in created):
            print("\nSample staff password: staff123")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_users())
