"""
Service layer: each service takes the StorageGateway in its constructor.
"""

from order_intake.services.admission import OrderAdmission, OrderReceipt, resolve_lines
from order_intake.services.catalog import MenuCatalog
from order_intake.services.order_history import OrderHistory
from order_intake.services.order_numbers import OrderIdentifierAllocator
from order_intake.services.popularity import PopularityAggregator, current_week

__all__ = [
    "OrderAdmission",
    "OrderReceipt",
    "resolve_lines",
    "MenuCatalog",
    "OrderHistory",
    "OrderIdentifierAllocator",
    "PopularityAggregator",
    "current_week",
]
