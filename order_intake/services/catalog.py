"""
Menu catalog reads.

The catalog is reference data maintained outside this service; here it is
only listed for the ordering UI and used to resolve submitted item names.
"""

import logging
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from order_intake.database import StorageGateway
from order_intake.models import MenuItem
from order_intake.schemas import MenuItemResponse

logger = logging.getLogger(__name__)


def to_menu_response(item: MenuItem) -> MenuItemResponse:
    """Serialize a catalog row, blanking missing optional fields."""
    return MenuItemResponse(
        id=item.menu_id,
        name=item.name,
        price=float(item.price or 0),
        category=item.category or "",
        note=item.note or "",
        enabled=bool(item.enabled),
        image=item.image or "",
        order_limit=item.order_limit or 0,
    )


async def load_name_index(session: AsyncSession, names: Iterable[str]) -> dict[str, int]:
    """
    Build a name -> menu_id table for the given names in one query.

    Runs on the caller's session so that it sees the same snapshot as the
    rest of the caller's transaction. Disabled items still resolve: being
    hidden from the menu does not invalidate an order line.
    """
    wanted = {name for name in names if name}
    if not wanted:
        return {}
    result = await session.execute(
        select(MenuItem.name, MenuItem.menu_id).where(MenuItem.name.in_(wanted))
    )
    return {name: menu_id for name, menu_id in result.all()}


class MenuCatalog:
    """Read-only access to the menu table."""

    def __init__(self, gateway: StorageGateway):
        self.gateway = gateway

    async def list_enabled(self) -> list[MenuItemResponse]:
        """Enabled items ordered by category, then name."""
        query = (
            select(MenuItem)
            .where(MenuItem.enabled.is_(True))
            .order_by(MenuItem.category, MenuItem.name)
        )
        async with self.gateway.acquire() as session:
            result = await session.execute(query)
            items = result.scalars().all()
        logger.debug(f"Menu: {len(items)} enabled items")
        return [to_menu_response(item) for item in items]
