"""Onboard a provider for local development.

Creates (or promotes) the user, provisions the default Mon-Fri
availability and prints a bearer token for calling the API.

Usage:
    python -m app.scripts.seed_provider --email=provider@example.com --name="Dr. Ana"
"""

import argparse
import asyncio
import sys
from sqlalchemy import select

from app.core.database import async_session_maker
from app.core.seed import ensure_default_availability
from app.models.user import User, UserRole
from app.services.auth import create_user_token


async def onboard_provider(email: str, name: str, role: UserRole) -> None:
    """Create or promote ``email`` to a provider and seed their availability.

    Args:
        email: Provider email address
        name: Display name shown to clients
        role: PROVIDER or ADMIN
    """
    async with async_session_maker() as db:
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if user:
            print(f"✅ User {email} already exists. Setting role to {role.value}...")
            user.role = role
            user.is_active = True
        else:
            print(f"🆕 Creating provider user: {email}...")
            user = User(email=email, name=name, role=role, is_active=True)
            db.add(user)
        await db.commit()

        rules = await ensure_default_availability(db, user.id)
        token = create_user_token(user)

        print(f"\n🎉 Provider ready!")
        print(f"   Id: {user.id}")
        print(f"   Role: {role.value}")
        print(f"   Availability rules: {len(rules)}")
        print(f"   Token: {token}")


def main():
    """Parse CLI arguments and run the onboarding."""
    parser = argparse.ArgumentParser(description="Create a provider and provision default availability")
    parser.add_argument("--email", required=True, help="Provider email address")
    parser.add_argument("--name", required=True, help="Provider display name")
    parser.add_argument("--admin", action="store_true", help="Create the user as ADMIN instead of PROVIDER")

    args = parser.parse_args()

    if "@" not in args.email or "." not in args.email:
        print("❌ Error: Invalid email format.", file=sys.stderr)
        sys.exit(1)

    role = UserRole.ADMIN if args.admin else UserRole.PROVIDER
    asyncio.run(onboard_provider(args.email, args.name, role))


if __name__ == "__main__":
    main()
