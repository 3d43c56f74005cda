"""
Pydantic Schemas for Request/Response Validation

Field names are snake_case in Python and camelCase on the wire.
"""

import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from order_intake.models import DineType

ORDER_ID_PATTERN = re.compile(r"^\S+-[DT]\d{3}$")


def iso_utc(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 in UTC with millisecond precision and a trailing Z, or None."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CamelModel(BaseModel):
    """Base schema: camelCase aliases, populate by either name."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderLineCreate(CamelModel):
    """
    Single submitted line. Quantity and price default to 0 when absent.

    ``name`` is not length-checked here: a line whose name matches no menu
    item (including a blank one) is dropped at admission, not rejected.
    """
    name: Optional[str] = Field(None, examples=["Tea"])
    quantity: Optional[int] = Field(None, ge=0, examples=[2])
    price: Optional[Decimal] = Field(None, ge=0, examples=[2.5])


class OrderCreate(CamelModel):
    """
    Request body for POST /api/orders.

    ``status`` and any client timestamp are not part of the schema; the
    server always admits orders as pending at the store's current time.
    ``total_amount`` is taken as given.
    """
    order_id: str = Field(..., min_length=5, max_length=50, examples=["20250711-T001"])
    dine_type: DineType = Field(..., examples=["takeout"])
    total_amount: Decimal = Field(default=Decimal("0"), ge=0, examples=[5.0])
    table_number: str = Field(default="", max_length=20)
    takeout_number: str = Field(default="", max_length=20)
    notes: str = Field(default="")
    items: List[OrderLineCreate] = Field(default_factory=list)

    @field_validator("dine_type", mode="before")
    @classmethod
    def parse_dine_type(cls, v: Any) -> DineType:
        if isinstance(v, DineType):
            return v
        if not isinstance(v, str):
            raise ValueError("dineType must be a string")
        return DineType.parse(v)

    @field_validator("total_amount", mode="before")
    @classmethod
    def default_total(cls, v: Any) -> Any:
        return Decimal("0") if v is None or v == "" else v

    @field_validator("table_number", "takeout_number", "notes", mode="before")
    @classmethod
    def blank_if_missing(cls, v: Union[str, int, None]) -> str:
        return "" if v is None else str(v)

    @field_validator("items", mode="before")
    @classmethod
    def empty_if_missing(cls, v: Any) -> Any:
        return [] if v is None else v

    @model_validator(mode="after")
    def check_order_id(self) -> "OrderCreate":
        if not ORDER_ID_PATTERN.match(self.order_id):
            raise ValueError("orderId must look like <date>-<D|T><NNN>")
        code = self.order_id[-4]
        if code != self.dine_type.code:
            raise ValueError(
                f"orderId code {code!r} does not match dineType {self.dine_type.value!r}"
            )
        return self


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class MenuItemResponse(CamelModel):
    """Enabled catalog entry as served to the ordering UI."""
    id: int
    name: str
    price: float
    category: str
    note: str
    enabled: bool
    image: str
    order_limit: int


class HotItemSummary(CamelModel):
    """All-time hot item with the quantity sold so far."""
    id: int
    name: str
    price: float
    order_count: int


class OrderCreateResponse(CamelModel):
    """Response after admitting an order."""
    success: bool
    order_id: str
    message: str
    dropped_items: List[str] = Field(default_factory=list)


class OrderSummary(CamelModel):
    """One row of the order history."""
    order_id: str
    dine_type: str
    status: str
    total_amount: float
    table_number: str
    takeout_number: str
    notes: str
    timestamp: Optional[str]


class OrderLineResponse(CamelModel):
    menu_id: int
    name: str
    quantity: int
    price: float


class OrderDetail(OrderSummary):
    """Order summary with its persisted lines."""
    items: List[OrderLineResponse]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    server: Optional[str] = None
    message: str
    timestamp: Optional[str] = None


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
