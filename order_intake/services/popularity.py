"""
Popularity Aggregator

Two hot-item policies are supported; a deployment picks one through
HOT_ITEMS_POLICY:

    - weekly:   names of the best sellers of the current Monday-Sunday week
    - all_time: every enabled item with its total quantity sold, including
                items that have never been ordered

Both count only non-cancelled orders and only currently enabled items, and
rank by quantity sold descending, then name ascending.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Optional

from sqlalchemy import func, select

from order_intake.core.config import HotItemsPolicy
from order_intake.database import StorageGateway
from order_intake.models import MenuItem, Order, OrderLine, OrderStatus
from order_intake.schemas import HotItemSummary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TopSeller:
    name: str
    total_sold: int


def current_week(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """
    Monday 00:00:00 through Sunday 23:59:59.999999 of the week containing ``now``.

    Without ``now`` this is the server's local week, returned as aware
    datetimes so the store can compare them against its UTC timestamps.
    Bounds carry the zone of an aware ``now`` and stay naive for a naive one.
    """
    if now is None:
        start, end = current_week(datetime.now())
        return start.astimezone(), end.astimezone()

    monday = now.date() - timedelta(days=now.weekday())
    start = datetime.combine(monday, time.min, tzinfo=now.tzinfo)
    end = datetime.combine(monday + timedelta(days=6), time.max, tzinfo=now.tzinfo)
    return start, end


class PopularityAggregator:
    """Read-only sales rankings."""

    def __init__(self, gateway: StorageGateway):
        self.gateway = gateway

    async def top_sellers(
        self, window_start: datetime, window_end: datetime, limit: int = 10
    ) -> list[TopSeller]:
        """
        Best sellers among orders created within [window_start, window_end].

        Args:
            window_start: Inclusive lower bound on order creation time;
                aware values are converted to UTC, naive ones are UTC
            window_end: Inclusive upper bound on order creation time
            limit: Maximum number of entries

        Returns:
            At most ``limit`` entries with a positive total, quantity
            descending, name ascending on ties.
        """
        if limit <= 0:
            return []

        total_sold = func.sum(OrderLine.quantity).label("total_sold")
        query = (
            select(MenuItem.name, total_sold)
            .join(OrderLine, OrderLine.menu_id == MenuItem.menu_id)
            .join(Order, Order.order_id == OrderLine.order_id)
            .where(
                MenuItem.enabled.is_(True),
                Order.created_at >= window_start,
                Order.created_at <= window_end,
                Order.status != OrderStatus.CANCELLED.value,
            )
            .group_by(MenuItem.name)
            .having(func.sum(OrderLine.quantity) > 0)
            .order_by(total_sold.desc(), MenuItem.name)
            .limit(limit)
        )
        async with self.gateway.acquire() as session:
            result = await session.execute(query)
            rows = result.all()

        return [TopSeller(name=name, total_sold=int(total)) for name, total in rows]

    async def weekly_hot_items(self, limit: int = 10, now: Optional[datetime] = None) -> list[str]:
        """Names of this week's best sellers."""
        start, end = current_week(now)
        sellers = await self.top_sellers(start, end, limit)
        names = [seller.name for seller in sellers]
        logger.info(f"📊 Weekly top {limit} ({start:%Y-%m-%d} - {end:%Y-%m-%d}): {names}")
        return names

    async def all_time_summaries(self, limit: int = 10) -> list[HotItemSummary]:
        """
        Every enabled item with its all-time quantity sold.

        Items never ordered appear with ``order_count == 0``, so the list is
        only shorter than ``limit`` when the menu itself is.
        """
        if limit <= 0:
            return []

        sold = (
            select(OrderLine.menu_id, func.sum(OrderLine.quantity).label("quantity"))
            .join(Order, Order.order_id == OrderLine.order_id)
            .where(Order.status != OrderStatus.CANCELLED.value)
            .group_by(OrderLine.menu_id)
            .subquery()
        )
        order_count = func.coalesce(sold.c.quantity, 0).label("order_count")
        query = (
            select(MenuItem.menu_id, MenuItem.name, MenuItem.price, order_count)
            .outerjoin(sold, sold.c.menu_id == MenuItem.menu_id)
            .where(MenuItem.enabled.is_(True))
            .order_by(order_count.desc(), MenuItem.name)
            .limit(limit)
        )
        async with self.gateway.acquire() as session:
            result = await session.execute(query)
            rows = result.all()

        return [
            HotItemSummary(id=menu_id, name=name, price=float(price or 0), order_count=int(count))
            for menu_id, name, price, count in rows
        ]

    async def hot_items(self, policy: HotItemsPolicy, limit: int = 10):
        """Hot items in the shape the deployment's policy calls for."""
        if policy is HotItemsPolicy.ALL_TIME:
            return await self.all_time_summaries(limit)
        return await self.weekly_hot_items(limit)
