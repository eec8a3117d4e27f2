#!/usr/bin/env python3
"""Create a profile and grant it the admin role."""

import asyncio
import sys

# Add parent directory to path for imports
sys.path.insert(0, "/app")

from sqlalchemy import select

from app.core.permissions import ActorRole
from app.database import get_db_context
from app.models.user import Profile, UserRoleAssignment


async def create_admin(
    email: str = "admin@temansewa.id",
    full_name: str = "Teman Sewa Admin",
    username: str = "admin",
) -> None:
    """Create an admin profile if it doesn't exist, then ensure the role row."""
    async with get_db_context() as session:

        # Check if profile already exists
        result = await session.execute(
            select(Profile).where(Profile.email == email)
        )
        profile = result.scalar_one_or_none()

        if profile:
            profile.is_active = True
            profile.is_verified = True
            print(f"Found existing profile: {email}")
        else:
            profile = Profile(
                email=email,
                full_name=full_name,
                username=username,
                is_verified=True,
                is_active=True,
            )
            session.add(profile)
            await session.flush()
            print(f"Created profile: {email}")

        role_result = await session.execute(
            select(UserRoleAssignment).where(
                UserRoleAssignment.user_id == profile.user_id,
                UserRoleAssignment.role == ActorRole.ADMIN.value,
            )
        )
        if role_result.scalar_one_or_none() is None:
            session.add(UserRoleAssignment(user_id=profile.user_id, role=ActorRole.ADMIN.value))
            print("Granted role: admin")
        else:
            print("Role admin already granted")

        print(f"User ID: {profile.user_id}")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Create an admin user")
    parser.add_argument("--email", default="admin@temansewa.id", help="Admin email")
    parser.add_argument("--full-name", default="Teman Sewa Admin", help="Full name")
    parser.add_argument("--username", default="admin", help="Username")

    args = parser.parse_args()

    asyncio.run(
        create_admin(
            email=args.email,
            full_name=args.full_name,
            username=args.username,
        )
    )
