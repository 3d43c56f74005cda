"""
Order Admission Transaction

Persists an order header together with its line items as one unit of work:

    1. insert the header as ``pending``, stamped with the store's UTC clock
    2. resolve submitted item names to menu ids (one lookup per order)
    3. insert every resolvable line with its captured unit price
    4. commit

Lines whose name matches no menu item are dropped and reported back; the
order itself is still admitted. Any store failure rolls back everything.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Mapping

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError

from order_intake.core.exceptions import DuplicateIdentifierError, UnresolvedReference
from order_intake.core.messages import message
from order_intake.database import StorageGateway, utcnow
from order_intake.models import Order, OrderLine, OrderStatus
from order_intake.schemas import OrderCreate, OrderLineCreate
from order_intake.services.catalog import load_name_index

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedLine:
    """A submitted line bound to a catalog id."""
    menu_id: int
    quantity: int
    price: Decimal


@dataclass
class OrderReceipt:
    """
    Outcome of a successful admission.

    Attributes:
        order_id: Identifier of the admitted order
        message: Localized confirmation for the client
        persisted_lines: Number of lines written
        unresolved: Lines dropped because their name matched no menu item
    """
    order_id: str
    message: str
    persisted_lines: int = 0
    unresolved: list[UnresolvedReference] = field(default_factory=list)

    @property
    def dropped_items(self) -> list[str]:
        return [ref.item_name for ref in self.unresolved]


def resolve_lines(
    order_id: str,
    lines: Iterable[OrderLineCreate],
    name_index: Mapping[str, int],
) -> tuple[list[ResolvedLine], list[UnresolvedReference]]:
    """
    Bind submitted lines to menu ids by exact name.

    Missing quantity or price default to 0. A missing or blank name never
    resolves. Returns the resolvable lines in submission order and one
    ``UnresolvedReference`` per dropped line.
    """
    resolved: list[ResolvedLine] = []
    unresolved: list[UnresolvedReference] = []
    for position, line in enumerate(lines, start=1):
        name = line.name or ""
        menu_id = name_index.get(name) if name else None
        if menu_id is None:
            unresolved.append(UnresolvedReference(order_id, name, position))
            continue
        resolved.append(
            ResolvedLine(
                menu_id=menu_id,
                quantity=line.quantity or 0,
                price=line.price if line.price is not None else Decimal("0"),
            )
        )
    return resolved, unresolved


def _report_detached(order_id: str, task: "asyncio.Task[OrderReceipt]") -> None:
    """Log how a transaction finished after its client went away."""
    if task.cancelled():
        logger.error(f"Admission of {order_id} was cancelled after the client left")
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Admission of {order_id} failed after the client left: {exc}")
    else:
        logger.info(f"Admission of {order_id} committed after the client left")


class OrderAdmission:
    """Admits new orders through the storage gateway."""

    def __init__(self, gateway: StorageGateway):
        self.gateway = gateway

    async def submit_order(self, order: OrderCreate) -> OrderReceipt:
        """
        Admit an order and its resolvable lines atomically.

        The unit of work runs in a task owned by the gateway and is shielded
        from cancellation of the caller: if the HTTP client disconnects, the
        transaction still commits or rolls back, and shutdown waits for it.

        Raises:
            DuplicateIdentifierError: the order id is already taken
            QueryError: the store rejected a statement
            StorageConnectionError: the store could not be reached
        """
        task = self.gateway.run_detached(self._admit(order))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            logger.warning(f"Client left during admission of {order.order_id}; finishing it")
            task.add_done_callback(lambda t: _report_detached(order.order_id, t))
            raise

    async def _admit(self, order: OrderCreate) -> OrderReceipt:
        async with self.gateway.transaction() as session:
            try:
                await session.execute(
                    insert(Order).values(
                        order_id=order.order_id,
                        dine_type=order.dine_type.value,
                        status=OrderStatus.PENDING.value,
                        total_amount=order.total_amount,
                        table_number=order.table_number,
                        takeout_number=order.takeout_number,
                        notes=order.notes,
                        created_at=utcnow(),
                    )
                )
            except IntegrityError as e:
                logger.info(f"Order id {order.order_id} already taken")
                raise DuplicateIdentifierError(order.order_id, e) from e

            name_index = await load_name_index(session, (line.name for line in order.items))
            resolved, unresolved = resolve_lines(order.order_id, order.items, name_index)

            for ref in unresolved:
                logger.warning(f"⚠️ Dropping {ref}")

            if resolved:
                await session.execute(
                    insert(OrderLine),
                    [
                        {
                            "order_id": order.order_id,
                            "menu_id": line.menu_id,
                            "quantity": line.quantity,
                            "price": line.price,
                        }
                        for line in resolved
                    ],
                )

        logger.info(
            f"✅ Order {order.order_id} admitted with {len(resolved)} line(s)"
            + (f", {len(unresolved)} dropped" if unresolved else "")
        )
        return OrderReceipt(
            order_id=order.order_id,
            message=message("order_created"),
            persisted_lines=len(resolved),
            unresolved=unresolved,
        )
