import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import fakeredis.aioredis
import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from pos_api.app.auth import Caller, hash_password  # noqa: E402
from pos_api.app.db import build_engine, create_schema  # noqa: E402
from pos_api.app.main import create_app  # noqa: E402
from pos_api.app.models import Deal, DealItem, MenuItem, User  # noqa: E402
from pos_api.app.services.order_lifecycle import OrderLifecycleManager  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class FakeClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
async def engine():
    eng = build_engine("sqlite+aiosqlite://")
    await create_schema(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
async def sessionmaker(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def _seed_catalog(sessionmaker) -> dict[str, int]:
    """Seed a small catalog and two users; return ids by short name."""

    async with sessionmaker() as session:
        burger = MenuItem(name="Zinger Burger", category="Burgers", price=Decimal("9.50"))
        fries = MenuItem(name="Fries", category="Sides", price=Decimal("3.00"))
        drink = MenuItem(name="Soft Drink", category="Drinks", price=Decimal("1.75"))
        retired = MenuItem(
            name="Old Sandwich", category="Sandwiches", price=Decimal("5.00"), is_active=False
        )
        session.add_all([burger, fries, drink, retired])
        await session.flush()
        meal = Deal(
            name="Burger Meal",
            price=Decimal("13.00"),
            items=[
                DealItem(menu_item_id=burger.id, quantity=1),
                DealItem(menu_item_id=fries.id, quantity=1),
                DealItem(menu_item_id=drink.id, quantity=1),
            ],
        )
        old_deal = Deal(name="Old Deal", price=Decimal("4.00"), is_active=False)
        session.add_all([meal, old_deal])
        manager = User(
            username="manager",
            password_hash=hash_password("managerpass"),
            role="Manager",
        )
        cashier = User(
            username="cashier",
            password_hash=hash_password("cashierpass"),
            role="User",
        )
        session.add_all([manager, cashier])
        await session.commit()
        return {
            "burger": burger.id,
            "fries": fries.id,
            "drink": drink.id,
            "retired": retired.id,
            "meal": meal.id,
            "old_deal": old_deal.id,
            "manager": manager.id,
            "cashier": cashier.id,
        }


@pytest.fixture
async def catalog(sessionmaker) -> dict[str, int]:
    return await _seed_catalog(sessionmaker)


@pytest.fixture
async def file_sessionmaker(tmp_path):
    """Seeded on-disk database; each session gets its own connection."""

    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'pos.db'}")
    await create_schema(eng)
    factory = async_sessionmaker(eng, expire_on_commit=False, class_=AsyncSession)
    ids = await _seed_catalog(factory)
    yield factory, ids
    await eng.dispose()


@pytest.fixture
def manager(catalog) -> Caller:
    return Caller(user_id=catalog["manager"], username="manager", role="Manager")


@pytest.fixture
def cashier(catalog) -> Caller:
    return Caller(user_id=catalog["cashier"], username="cashier", role="User")


@pytest.fixture
def lifecycle(sessionmaker, clock) -> OrderLifecycleManager:
    return OrderLifecycleManager(sessionmaker, clock=clock)


@pytest.fixture
async def redis():
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
async def app(sessionmaker, catalog, redis):
    return create_app(sessionmaker=sessionmaker, redis=redis)


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def login(client: httpx.AsyncClient, username: str, password: str) -> dict[str, str]:
    resp = await client.post(
        "/api/auth/login", json={"username": username, "password": password}
    )
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['data']['access_token']}"}


@pytest.fixture
async def manager_headers(client) -> dict[str, str]:
    return await login(client, "manager", "managerpass")


@pytest.fixture
async def cashier_headers(client) -> dict[str, str]:
    return await login(client, "cashier", "cashierpass")
