#!/usr/bin/env python3
"""
NexStack seeding -- create the three default accounts.

Usage:
  python seed.py
  python seed.py --database-url sqlite:///nexstack.db

Environment variables:
  SEED_ADMIN_PASSWORD   Password for admin@admin.com   (required)
  SEED_CLIENT_PASSWORD  Password for client@client.com (required)
  SEED_TEAM_PASSWORD    Password for team@team.com     (required)
  ACCESS_SECRET / REFRESH_SECRET must be set as for the API; Settings refuses
  to load without them.

Existing accounts are left alone except for their role, which is reset to the
default if it drifted.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import dataclass

from auth.hashing import PasswordHasher
from auth.models import Role
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.config import Settings, get_settings


@dataclass(frozen=True)
class SeedAccount:
    email: str
    name: str
    role: Role
    password: str


def default_accounts(settings: Settings) -> list[SeedAccount]:
    """Build the default account list. Raises ValueError if a seed password is unset."""
    accounts = [
        SeedAccount("admin@admin.com", "Admin User", Role.ADMIN, settings.seed_admin_password),
        SeedAccount("client@client.com", "Client User", Role.CLIENT, settings.seed_client_password),
        SeedAccount("team@team.com", "Team User", Role.TEAM, settings.seed_team_password),
    ]
    missing = [f"SEED_{a.role.value.upper()}_PASSWORD" for a in accounts if not a.password]
    if missing:
        raise ValueError(f"Missing seed passwords: {', '.join(missing)}")
    return accounts


async def seed_users(service: AuthService, accounts: list[SeedAccount]) -> dict[str, str]:
    """Create or fix each account. Returns {email: "created" | "role_updated" | "exists"}."""
    outcome: dict[str, str] = {}
    for account in accounts:
        existing = service.store.find_by_email(account.email)
        if existing is None:
            await service.create_user(
                email=account.email,
                password=account.password,
                name=account.name,
                role=account.role,
            )
            outcome[account.email] = "created"
        elif existing.role != account.role:
            service.store.update_fields(existing.id, role=account.role)
            outcome[account.email] = "role_updated"
        else:
            outcome[account.email] = "exists"
    return outcome


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="nexstack-seed",
        description="Create the default admin, client and team accounts.",
    )
    parser.add_argument(
        "--database-url",
        metavar="URL",
        default=None,
        help="SQLAlchemy URL to seed (default: DATABASE_URL from the environment)",
    )
    args = parser.parse_args()

    settings = get_settings()
    try:
        accounts = default_accounts(settings)
    except ValueError as exc:
        print(f"  [!] {exc}")
        sys.exit(1)

    store = UserStore(args.database_url or settings.database_url)
    service = AuthService(store, PasswordHasher(rounds=settings.bcrypt_rounds), TokenIssuer(settings))
    try:
        outcome = asyncio.run(seed_users(service, accounts))
    finally:
        store.close()

    labels = {
        "created": "created",
        "role_updated": "already exists, role updated",
        "exists": "already exists",
    }
    for email, result in outcome.items():
        print(f"  [+] {email}: {labels[result]}")
    print("  Seeding completed.")


if __name__ == "__main__":
    main()
