"""
Storage error taxonomy.

Every failure that can come out of the storage layer is one of the classes
below. Request handlers translate them into opaque client-facing responses;
the ``original_error`` is kept for logging only and never serialized.
"""

from dataclasses import dataclass
from typing import Optional


class StorageError(Exception):
    """Base class for errors raised by the storage layer."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)


class StorageConnectionError(StorageError, ConnectionError):
    """The relational store cannot be reached."""


class QueryError(StorageError):
    """A statement was malformed or failed inside the store."""


class DuplicateIdentifierError(StorageError):
    """
    An order with the same identifier already exists.

    Raised when two submissions race for the same sequence number and this
    one lost. The caller should re-query used numbers and retry.
    """

    def __init__(self, order_id: str, original_error: Optional[Exception] = None):
        self.order_id = order_id
        super().__init__(f"Order id {order_id!r} already exists", original_error)


@dataclass(frozen=True)
class UnresolvedReference:
    """A submitted line whose menu name matched no catalog item."""
    order_id: str
    item_name: str
    position: int

    def __str__(self) -> str:
        return f"line {self.position} of {self.order_id}: no menu item named {self.item_name!r}"
