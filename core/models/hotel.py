"""Read-only tenant and menu models used to validate and price orders."""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel


class Hotel(BaseModel):
    """A tenant. `table_count` bounds valid table numbers."""

    id: UUID
    hotel_name: str
    table_count: int

    model_config = {"from_attributes": True}


class MenuItem(BaseModel):
    """A priced dish on a hotel's menu."""

    id: UUID
    hotel_id: UUID
    dish_name: str
    price: Decimal

    model_config = {"from_attributes": True}
