#!/usr/bin/env python3
"""
Super Admin Creator
Creates the first super admin account for the admin dashboard.
Run this script once after applying the database migrations.
"""
import argparse
import asyncio
import getpass

from sqlalchemy import or_, select

from studio_cms.database import AsyncSessionLocal
from studio_cms.models import AdminUser
from studio_cms.utils.auth import hash_password, validate_password_strength


def prompt_password() -> str:
    """Ask for the password twice; returns an empty string on failure."""
    password = getpass.getpass("Enter admin password: ")

    errors = validate_password_strength(password)
    if errors:
        print("\n❌ Error: Password does not meet requirements:")
        for error in errors:
            print(f"   - {error}")
        return ""

    password_confirm = getpass.getpass("Confirm password: ")
    if password != password_confirm:
        print("\n❌ Error: Passwords do not match")
        return ""

    return password


def insert_sql(username: str, email: str, full_name: str, password_hash: str) -> str:
    """SQL for creating the account by hand (for databases this machine cannot reach)."""
    def quote(value: str) -> str:
        return "'" + value.replace("'", "''") + "'"

    return (
        "INSERT INTO admins (username, email, full_name, password_hash, is_active, is_super_admin, assigned_regions)\n"
        f"VALUES ({quote(username)}, {quote(email)}, {quote(full_name)}, {quote(password_hash)}, TRUE, TRUE, '[]');"
    )


async def create_super_admin(username: str, email: str, full_name: str, password_hash: str) -> bool:
    async with AsyncSessionLocal() as session:
        existing = await session.execute(
            select(AdminUser.id).where(or_(AdminUser.username == username, AdminUser.email == email))
        )
        if existing.first() is not None:
            print(f"\n❌ Error: An admin with username '{username}' or email '{email}' already exists")
            return False

        session.add(AdminUser(
            username=username,
            email=email,
            full_name=full_name,
            password_hash=password_hash,
            is_active=True,
            is_super_admin=True,
            assigned_regions=[],
        ))
        await session.commit()
    return True


def main():
    """Main function to create the super admin."""
    parser = argparse.ArgumentParser(description="Create a Studio CMS super admin")
    parser.add_argument("--print-sql", action="store_true",
                        help="print an INSERT statement instead of writing to DATABASE_URL")
    args = parser.parse_args()

    print("=" * 60)
    print("Studio CMS Super Admin Creator")
    print("=" * 60)
    print()

    username = input("Username: ").strip()
    email = input("Email: ").strip()
    full_name = input("Full name: ").strip()
    if not username or not email:
        print("\n❌ Error: Username and email are required")
        return

    password = prompt_password()
    if not password:
        return

    print("\n⏳ Generating hash (this may take a moment)...")
    password_hash = hash_password(password)

    if args.print_sql:
        print("\n✅ Run this statement against your database:\n")
        print(insert_sql(username, email, full_name, password_hash))
        print()
        return

    if asyncio.run(create_super_admin(username, email, full_name, password_hash)):
        print(f"\n✅ Super admin '{username}' created. You can now log in to the dashboard.")
        print()


if __name__ == "__main__":
    main()
