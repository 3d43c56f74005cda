"""
Order history reads: the newest-first order list and single-order detail.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from order_intake.database import StorageGateway
from order_intake.models import Order, OrderLine
from order_intake.schemas import OrderDetail, OrderLineResponse, OrderSummary, iso_utc

logger = logging.getLogger(__name__)


def _summary_fields(order: Order) -> dict:
    return {
        "order_id": order.order_id,
        "dine_type": order.dine_type,
        "status": order.status,
        "total_amount": float(order.total_amount or 0),
        "table_number": order.table_number or "",
        "takeout_number": order.takeout_number or "",
        "notes": order.notes or "",
        "timestamp": iso_utc(order.created_at),
    }


def to_order_summary(order: Order) -> OrderSummary:
    return OrderSummary(**_summary_fields(order))


class OrderHistory:
    """Read-only view over admitted orders."""

    def __init__(self, gateway: StorageGateway):
        self.gateway = gateway

    async def list_recent(self) -> list[OrderSummary]:
        """All orders, newest first."""
        query = select(Order).order_by(Order.created_at.desc(), Order.order_id.desc())
        async with self.gateway.acquire() as session:
            result = await session.execute(query)
            orders = result.scalars().all()
        return [to_order_summary(order) for order in orders]

    async def get(self, order_id: str) -> Optional[OrderDetail]:
        """One order with its persisted lines, or None if it does not exist."""
        query = (
            select(Order)
            .where(Order.order_id == order_id)
            .options(selectinload(Order.lines).selectinload(OrderLine.menu_item))
        )
        async with self.gateway.acquire() as session:
            result = await session.execute(query)
            order = result.scalar_one_or_none()

        if order is None:
            return None

        return OrderDetail(
            **_summary_fields(order),
            items=[
                OrderLineResponse(
                    menu_id=line.menu_id,
                    name=line.menu_item.name if line.menu_item else "",
                    quantity=line.quantity,
                    price=float(line.price or 0),
                )
                for line in order.lines
            ],
        )
