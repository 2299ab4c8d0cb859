#!/usr/bin/env python3
"""Create password accounts from the command line.

Usage:
    # Interactive mode
    python scripts/seed_user.py

    # Command line mode
    python scripts/seed_user.py --email user@example.com --password secret123 --name "User Name"

    # Create an admin
    python scripts/seed_user.py --email admin@example.com --admin

    # From environment variables
    SEED_EMAIL=user@example.com SEED_PASSWORD=secret123 python scripts/seed_user.py

    # List accounts
    python scripts/seed_user.py --list
"""

import argparse
import asyncio
import getpass
import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from fittrack.core.database import async_session_maker
from fittrack.core.security import get_password_hash
from fittrack.models.user import ROLE_ADMIN, ROLE_USER, User

MIN_PASSWORD_LENGTH = 8


async def create_user(
    email: str,
    password: str,
    name: str | None = None,
    admin: bool = False,
) -> User:
    """Create a new password account.

    Raises:
        ValueError: If an account with the email already exists.
    """
    async with async_session_maker() as session:
        result = await session.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none():
            raise ValueError(f"User with email '{email}' already exists")

        user = User(
            email=email,
            password_hash=get_password_hash(password),
            name=name,
            role=ROLE_ADMIN if admin else ROLE_USER,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)

        return user


async def list_users() -> list[User]:
    async with async_session_maker() as session:
        result = await session.execute(select(User).order_by(User.id))
        return list(result.scalars().all())


def get_password_interactive() -> str:
    """Prompt for a password twice.

    Raises:
        ValueError: If the entries differ or the password is too short.
    """
    password = getpass.getpass("Password: ")
    confirm = getpass.getpass("Confirm password: ")

    if password != confirm:
        raise ValueError("Passwords do not match")

    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    return password


async def main() -> None:
    parser = argparse.ArgumentParser(description="Create FitTrack user accounts")
    parser.add_argument(
        "--email",
        help="User email address",
        default=os.environ.get("SEED_EMAIL"),
    )
    parser.add_argument(
        "--password",
        help="User password (or use SEED_PASSWORD env var)",
        default=os.environ.get("SEED_PASSWORD"),
    )
    parser.add_argument(
        "--name",
        help="Display name",
        default=os.environ.get("SEED_NAME"),
    )
    parser.add_argument(
        "--admin",
        action="store_true",
        help="Give the account the admin role",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List existing users",
    )

    args = parser.parse_args()

    if args.list:
        print("\nExisting users:")
        print("-" * 50)
        users = await list_users()
        if not users:
            print("No users found")
        for user in users:
            print(f"  ID: {user.id}")
            print(f"  Email: {user.email}")
            print(f"  Name: {user.name or '(not set)'}")
            print(f"  Role: {user.role}")
            print(f"  Created: {user.created_at}")
            print("-" * 50)
        return

    if not args.email:
        print("\n=== FitTrack User Creation ===\n")
        args.email = input("Email: ").strip()
        if not args.email:
            print("Error: Email is required")
            sys.exit(1)

    if not args.password:
        try:
            args.password = get_password_interactive()
        except ValueError as e:
            print(f"Error: {e}")
            sys.exit(1)

    if args.name is None:
        args.name = input("Display name (optional): ").strip() or None

    try:
        user = await create_user(
            email=args.email,
            password=args.password,
            name=args.name,
            admin=args.admin,
        )
        print("\nUser created successfully")
        print(f"   ID: {user.id}")
        print(f"   Email: {user.email}")
        print(f"   Name: {user.name or '(not set)'}")
        print(f"   Role: {user.role}")
    except ValueError as e:
        print(f"\nError: {e}")
        sys.exit(1)
    except SQLAlchemyError as e:
        print(f"\nDatabase error: {e}")
        print("\nMake sure the database is running and migrations are applied.")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
