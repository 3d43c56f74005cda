"""
Order Identifier Allocator

Order ids look like ``20250711-T003``: a date prefix, a dash, the dine-type
code letter and a zero-padded three-digit sequence number. The allocator only
reports which sequence numbers are taken; it never reserves one. Two clients
may pick the same next number, in which case the second insert fails on the
primary key and the client re-queries (see ``DuplicateIdentifierError``).
"""

import logging
import re
from typing import Iterable, Optional, Sequence

from sqlalchemy import select

from order_intake.database import StorageGateway
from order_intake.models import DineType, Order

logger = logging.getLogger(__name__)

MIN_SEQUENCE = 1
MAX_SEQUENCE = 999

_SEQUENCE_PATTERNS = {
    dine_type.code: re.compile(rf"-{dine_type.code}(\d{{3}})$") for dine_type in DineType
}


def parse_sequence_number(order_id: Optional[str], code: str) -> Optional[int]:
    """
    Extract the NNN part of an order id for the given dine-type code.

    Returns None for ids that do not end in ``-<code><NNN>``.
    """
    if not order_id:
        return None
    match = _SEQUENCE_PATTERNS[code].search(order_id)
    if match is None:
        return None
    return int(match.group(1))


def lowest_unused(used: Iterable[int]) -> Optional[int]:
    """Lowest sequence number in [1, 999] not in ``used``; None when all are taken."""
    taken = set(used)
    for number in range(MIN_SEQUENCE, MAX_SEQUENCE + 1):
        if number not in taken:
            return number
    return None


def format_order_id(date_prefix: str, dine_type: DineType, number: int) -> str:
    """Build an order id, e.g. ``format_order_id("20250711", TAKEOUT, 1) == "20250711-T001"``."""
    if not MIN_SEQUENCE <= number <= MAX_SEQUENCE:
        raise ValueError(f"Sequence number out of range: {number}")
    return f"{date_prefix}-{dine_type.code}{number:03d}"


class OrderIdentifierAllocator:
    """Reads issued order ids back out of the store."""

    def __init__(self, gateway: StorageGateway):
        self.gateway = gateway

    async def used_sequence_numbers(self, dine_type: DineType, date_prefix: str) -> list[int]:
        """
        Sequence numbers already issued for a date prefix and dine type.

        Args:
            dine_type: Which code letter (D/T) to look for
            date_prefix: Leading part of the id, e.g. "20250711"

        Returns:
            The NNN values as integers, ascending. Ids that do not match the
            ``-<code><NNN>`` suffix are skipped.
        """
        query = (
            select(Order.order_id)
            .where(Order.order_id.startswith(date_prefix, autoescape=True))
            .order_by(Order.order_id)
        )
        async with self.gateway.acquire() as session:
            result = await session.execute(query)
            order_ids: Sequence[str] = result.scalars().all()

        used = sorted(
            number
            for number in (parse_sequence_number(oid, dine_type.code) for oid in order_ids)
            if number is not None
        )
        logger.debug(
            f"Used {dine_type.code} numbers for {date_prefix!r}: {len(used)} of {len(order_ids)} ids"
        )
        return used

    async def next_free(self, dine_type: DineType, date_prefix: str) -> Optional[str]:
        """Suggest the next free order id. Advisory only: nothing is reserved."""
        number = lowest_unused(await self.used_sequence_numbers(dine_type, date_prefix))
        if number is None:
            logger.warning(f"⚠️ No free {dine_type.code} numbers left for {date_prefix!r}")
            return None
        return format_order_id(date_prefix, dine_type, number)
