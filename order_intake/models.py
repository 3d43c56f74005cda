"""
SQLAlchemy Database Models

Menu catalog, order headers and order lines for the point-of-sale store.
"""

import enum

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from order_intake.database import Base, UTCDateTime


class DineType(str, enum.Enum):
    """Dine-in or takeout, encoded as one letter inside order ids."""
    DINE_IN = "dine-in"
    TAKEOUT = "takeout"

    @property
    def code(self) -> str:
        return "D" if self is DineType.DINE_IN else "T"

    @classmethod
    def parse(cls, value: str) -> "DineType":
        """
        Accept a code letter (D/T) or a name (dine-in, dine_in, takeout).

        Raises:
            ValueError: if the value names no dine type
        """
        normalized = value.strip().lower().replace("_", "-")
        for dine_type in cls:
            if normalized in (dine_type.value, dine_type.code.lower()):
                return dine_type
        if normalized in ("dinein", "dine"):
            return cls.DINE_IN
        if normalized in ("take-out", "takeaway", "take-away"):
            return cls.TAKEOUT
        raise ValueError(f"Unknown dine type: {value!r}")


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MenuItem(Base):
    """
    Catalog entry. Read-only reference data for the order subsystem;
    ``name`` is unique and is how submitted lines find their item.
    """
    __tablename__ = "menu"

    menu_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True, index=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    category = Column(String(50), nullable=True)
    note = Column(String(255), nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)
    image = Column(String(500), nullable=True)
    order_limit = Column(Integer, nullable=True, default=0)

    def __repr__(self):
        return f"<MenuItem #{self.menu_id} - {self.name} - {self.price}>"


class Order(Base):
    """
    Order header. ``order_id`` is the human-readable primary key
    ``<date>-<D|T><NNN>``; ``created_at`` is set by the store clock, in UTC.
    """
    __tablename__ = "orders"

    order_id = Column(String(50), primary_key=True)
    dine_type = Column(String(20), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    table_number = Column(String(20), nullable=True)
    takeout_number = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, index=True)

    lines = relationship("OrderLine", back_populates="order", order_by="OrderLine.line_id")

    def __repr__(self):
        return f"<Order {self.order_id} - {self.dine_type} - {self.status}>"


class OrderLine(Base):
    """One item of an order, with the unit price captured at order time."""
    __tablename__ = "order_items"

    line_id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(50), ForeignKey("orders.order_id"), nullable=False, index=True)
    menu_id = Column(Integer, ForeignKey("menu.menu_id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)
    price = Column(Numeric(10, 2), nullable=False, default=0)

    order = relationship("Order", back_populates="lines")
    menu_item = relationship("MenuItem")

    def __repr__(self):
        return f"<OrderLine {self.order_id} menu={self.menu_id} x{self.quantity}>"
