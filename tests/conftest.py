"""
Shared fixtures: a seeded SQLite store per test, an HTTP client bound to it
and a runner for service-level coroutines.
"""

import asyncio
import os
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

# Must be set before the application module reads its settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("LOCALE", "en")

from order_intake.core.config import get_settings
from order_intake.database import Base, StorageGateway
from order_intake.models import MenuItem, Order, OrderLine

MENU = [
    {"menu_id": 1, "name": "Tea", "price": Decimal("2.50"), "category": "Drinks", "enabled": True},
    {"menu_id": 2, "name": "Rice", "price": Decimal("3.00"), "category": "Mains", "enabled": True},
    {"menu_id": 3, "name": "Noodles", "price": Decimal("4.00"), "category": "Mains", "enabled": True,
     "note": "spicy", "image": "noodles.png", "order_limit": 5},
    {"menu_id": 4, "name": "Retired Soup", "price": Decimal("1.50"), "category": "Soups", "enabled": False},
]


@pytest.fixture(autouse=True)
def english_messages(monkeypatch):
    monkeypatch.setenv("LOCALE", "en")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "orders.db"
    engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        session.add_all([MenuItem(**item) for item in MENU])
        session.commit()
    engine.dispose()
    return path


@pytest.fixture
def db_url(db_path):
    return f"sqlite+aiosqlite:///{db_path}"


@pytest.fixture
def sync_session(db_path):
    """Direct synchronous access for arranging and inspecting rows."""
    engine = create_engine(f"sqlite:///{db_path}")
    with Session(engine) as session:
        yield session
    engine.dispose()


@pytest.fixture
def add_order(sync_session):
    """
    Insert an order with explicit timestamp/status and (menu_id, quantity) lines.

    Naive ``created_at`` values are UTC, as the store keeps them.
    """
    def add(order_id, lines, created_at=None, status="pending", dine_type="takeout"):
        sync_session.add(
            Order(
                order_id=order_id,
                dine_type=dine_type,
                status=status,
                total_amount=Decimal("0"),
                created_at=created_at or datetime.now(timezone.utc),
            )
        )
        sync_session.flush()
        for menu_id, quantity in lines:
            sync_session.add(
                OrderLine(order_id=order_id, menu_id=menu_id, quantity=quantity, price=Decimal("1.00"))
            )
        sync_session.commit()
    return add


@pytest.fixture
def run_with_gateway(db_url):
    """
    Run ``scenario(gateway)`` on a fresh event loop.

    The gateway lives and dies inside the loop so pooled connections never
    outlive it.
    """
    def run(scenario):
        async def main():
            gateway = StorageGateway(db_url)
            try:
                return await scenario(gateway)
            finally:
                await gateway.dispose()
        return asyncio.run(main())
    return run


@pytest.fixture
def client(db_url, monkeypatch):
    from fastapi.testclient import TestClient
    from order_intake.main import app

    monkeypatch.setenv("DATABASE_URL", db_url)
    get_settings.cache_clear()
    with TestClient(app) as test_client:
        yield test_client
