"""
Core module initialization.
Exports configuration, error types and message catalog helpers.
"""

from order_intake.core.config import get_settings, Settings, EnvironmentMode, HotItemsPolicy
from order_intake.core.exceptions import (
    StorageError,
    StorageConnectionError,
    QueryError,
    DuplicateIdentifierError,
    UnresolvedReference,
)
from order_intake.core.messages import message

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "HotItemsPolicy",
    "StorageError",
    "StorageConnectionError",
    "QueryError",
    "DuplicateIdentifierError",
    "UnresolvedReference",
    "message",
]
