"""
Demo Menu Seeder

Creates the tables if needed and inserts a small menu, skipping items whose
name already exists. Uses the same settings (.env / environment) as the API.

Run from project root: python scripts/seed_menu.py
"""

import asyncio
import os
import sys
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from order_intake.core.config import get_settings, setup_logging
from order_intake.core.exceptions import StorageError
from order_intake.database import StorageGateway
from order_intake.models import MenuItem

DEMO_MENU = [
    {"name": "Black Tea", "price": Decimal("30"), "category": "Drinks"},
    {"name": "Milk Tea", "price": Decimal("45"), "category": "Drinks", "order_limit": 10},
    {"name": "Braised Pork Rice", "price": Decimal("55"), "category": "Rice"},
    {"name": "Chicken Rice", "price": Decimal("60"), "category": "Rice"},
    {"name": "Beef Noodles", "price": Decimal("120"), "category": "Noodles", "note": "spicy on request"},
    {"name": "Sesame Noodles", "price": Decimal("50"), "category": "Noodles"},
    {"name": "Seasonal Greens", "price": Decimal("40"), "category": "Sides"},
    {"name": "Winter Melon Soup", "price": Decimal("35"), "category": "Soups", "enabled": False},
]


async def seed() -> int:
    logger = setup_logging()
    gateway = StorageGateway.from_settings(get_settings())
    try:
        await gateway.connect()
        await gateway.init_schema()

        async with gateway.transaction() as session:
            result = await session.execute(select(MenuItem.name))
            existing = set(result.scalars().all())
            new_items = [MenuItem(**item) for item in DEMO_MENU if item["name"] not in existing]
            session.add_all(new_items)

        logger.info(f"✅ Seeded {len(new_items)} menu items ({len(existing)} already present)")
        return 0
    except StorageError as e:
        logger.error(f"❌ Seeding failed: {e.original_error or e}")
        return 1
    finally:
        await gateway.dispose()


if __name__ == "__main__":
    sys.exit(asyncio.run(seed()))
