"""Order domain models.

An order is the running tab for one table. It is mutated only through
OrderStore, which enforces the version and status rules.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class OrderStatus(str, Enum):
    """Order lifecycle status. OPEN -> BILLED is the only transition."""

    OPEN = "OPEN"
    BILLED = "BILLED"


class OrderItem(BaseModel):
    """One line on a tab: a menu item reference or a free-form description."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    menu_item_id: UUID | None = None
    description: str | None = Field(None, min_length=1, max_length=200)
    name: str | None = Field(None, max_length=200)
    quantity: int = Field(..., gt=0, le=1000)
    unit_price: Decimal | None = Field(None, ge=0)

    @model_validator(mode="after")
    def _require_reference(self) -> "OrderItem":
        if self.menu_item_id is None and not self.description:
            raise ValueError("Each item needs a menu_item_id or a description")
        return self


class OrderCreate(BaseModel):
    """Data required to open a tab."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    table_number: int = Field(..., gt=0)
    items: list[OrderItem] = Field(..., min_length=1)
    notes: str | None = Field(None, max_length=1000)


class OrderUpdate(BaseModel):
    """
    Partial update. `version` is the version the caller last observed.

    Fields left as None are unchanged.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    items: list[OrderItem] | None = Field(None, min_length=1)
    notes: str | None = Field(None, max_length=1000)
    version: int = Field(..., ge=1)


class Order(BaseModel):
    """Full order entity as stored."""

    order_id: UUID
    hotel_id: UUID
    table_number: int
    items: list[OrderItem]
    notes: str | None = None
    status: OrderStatus
    version: int
    locked_by: str | None = None
    lock_expires_at: datetime | None = None
    invoice_id: UUID | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_open(self) -> bool:
        return self.status == OrderStatus.OPEN
