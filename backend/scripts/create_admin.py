"""Create an initial admin user for the application.

Usage:
    python -m scripts.create_admin --email admin@example.com --name "Admin Name" --password yourpassword
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Add parent dir to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from sqlalchemy import select

from omnimind.core.database import async_session, engine, init_db
from omnimind.core.security import hash_password
from omnimind.models.user import User


async def create_admin(email: str, name: str, password: str) -> bool:
    await init_db()

    async with async_session() as session:
        existing = (
            await session.execute(select(User).where(User.email == email))
        ).scalar_one_or_none()

        if existing:
            print(f"User with email {email} already exists.")
            return False

        user = User(
            email=email,
            name=name,
            password_hash=hash_password(password),
            role="admin",
            email_verified=True,
        )
        session.add(user)
        await session.commit()
        print(f"Admin user created: {email}")
        return True


async def _run(args) -> None:
    try:
        await create_admin(args.email.lower(), args.name, args.password)
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Create an admin user")
    parser.add_argument("--email", required=True, help="Admin email address")
    parser.add_argument("--name", required=True, help="Full name")
    parser.add_argument("--password", required=True, help="Password")
    args = parser.parse_args()

    if len(args.password) < 6:
        parser.error("password must be at least 6 characters")

    asyncio.run(_run(args))


if __name__ == "__main__":
    main()
