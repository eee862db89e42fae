#!/usr/bin/env python3
"""Seed staff users, menu items and deals for a demo outlet.

Creates the schema if needed, then inserts two users (``manager`` with the
Manager role and ``cashier`` with the User role), a small menu and two deals.
Pass ``--reset`` to purge existing catalog rows before seeding. Existing users
are left untouched.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from decimal import Decimal
from pathlib import Path

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.append(str(BASE_DIR))

from pos_api.app import db as app_db  # noqa: E402
from pos_api.app.auth import hash_password  # noqa: E402
from pos_api.app.models import Deal, DealItem, MenuItem, User  # noqa: E402

USERS = [
    ("manager", "managerpass", "Manager", "Maya", "Khan"),
    ("cashier", "cashierpass", "User", "Sam", "Ali"),
]

MENU_ITEMS = [
    ("Zinger Burger", "Burgers", "9.50"),
    ("Chicken Wrap", "Wraps", "7.25"),
    ("Fries", "Sides", "3.00"),
    ("Soft Drink", "Drinks", "1.75"),
]

DEALS = [
    ("Burger Meal", "13.00", [("Zinger Burger", 1), ("Fries", 1), ("Soft Drink", 1)]),
    ("Wrap Duo", "13.50", [("Chicken Wrap", 2)]),
]


async def _reset(session: AsyncSession) -> None:
    """Remove existing deals and menu items."""

    for model in (DealItem, Deal, MenuItem):
        await session.execute(delete(model))
    await session.commit()


async def seed_catalog(session: AsyncSession) -> dict[str, object]:
    """Insert demo users, items and deals and return their identifiers."""

    users = []
    for username, password, role, first, last in USERS:
        existing = await session.scalar(select(User).where(User.username == username))
        if existing is not None:
            users.append({"id": existing.id, "username": username, "role": existing.role})
            continue
        user = User(
            username=username,
            password_hash=hash_password(password),
            role=role,
            first_name=first,
            last_name=last,
        )
        session.add(user)
        await session.flush()
        users.append({"id": user.id, "username": username, "role": role})

    items: dict[str, MenuItem] = {}
    for name, category, price in MENU_ITEMS:
        item = MenuItem(name=name, category=category, price=Decimal(price))
        session.add(item)
        items[name] = item
    await session.flush()

    deals = []
    for name, price, components in DEALS:
        deal = Deal(
            name=name,
            price=Decimal(price),
            items=[DealItem(menu_item_id=items[n].id, quantity=q) for n, q in components],
        )
        session.add(deal)
        await session.flush()
        deals.append({"id": deal.id, "name": name})

    await session.commit()
    return {
        "users": users,
        "items": [{"id": item.id, "name": name} for name, item in items.items()],
        "deals": deals,
    }


async def main(url: str | None, reset: bool, create: bool) -> None:
    sessionmaker = app_db.init_db(url)
    if create:
        await app_db.create_schema()
    async with sessionmaker() as session:
        if reset:
            await _reset(session)
        data = await seed_catalog(session)
    await app_db.dispose()
    print(json.dumps(data))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed demo users and catalog")
    parser.add_argument("--db-url", default=None, help="Database URL (defaults to settings)")
    parser.add_argument(
        "--reset", action="store_true", help="Purge existing catalog before seeding"
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create tables directly instead of relying on migrations",
    )
    args = parser.parse_args()
    asyncio.run(main(args.db_url, args.reset, args.create_schema))
