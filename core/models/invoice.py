"""Invoice domain models.

Money is Decimal with two-place fixed point semantics. Every derived amount
is rounded to the cent before it is stored (see core.billing).
Invoices are immutable: there is no update model.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class BillableItem(BaseModel):
    """A dish with its unit price, ready to be turned into an invoice line."""

    dish_name: str
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(..., gt=0)
    menu_item_id: UUID | None = None


class InvoiceLine(BaseModel):
    """One priced line of an invoice snapshot."""

    dish_name: str
    quantity: int
    price: Decimal
    total: Decimal
    menu_item_id: UUID | None = None


class ChargeLine(BaseModel):
    """A percentage charge (GST, service charge) and its computed amount."""

    percentage: Decimal
    amount: Decimal


class InvoiceData(BaseModel):
    """
    Structured invoice content.

    This is what the renderer draws and what is stored verbatim as
    invoice_json for replay and audit.
    """

    invoice_number: str
    table_number: int
    hotel_name: str
    date: datetime
    items: list[InvoiceLine] = Field(..., min_length=1)
    subtotal: Decimal
    gst: ChargeLine
    service_charge: ChargeLine
    discount: Decimal
    grand_total: Decimal


class InvoiceItem(BaseModel):
    """An invoice line as stored in invoice_items."""

    id: UUID
    invoice_id: UUID
    line_number: int
    menu_item_id: UUID | None = None
    dish_name: str
    price: Decimal
    quantity: int
    total: Decimal

    model_config = {"from_attributes": True}


class Invoice(BaseModel):
    """Full invoice entity as stored, with its items in insertion order."""

    id: UUID
    hotel_id: UUID
    invoice_number: str
    table_number: int
    subtotal: Decimal
    gst_percentage: Decimal
    gst_amount: Decimal
    service_charge_percentage: Decimal
    service_charge_amount: Decimal
    discount_amount: Decimal
    grand_total: Decimal
    invoice_json: dict[str, Any]
    pdf_key: str
    created_at: datetime
    items: list[InvoiceItem] = []

    model_config = {"from_attributes": True}


class StoredInvoice(BaseModel):
    """Result of a successful dual write."""

    invoice: Invoice
    pdf_key: str


class GenerateItem(BaseModel):
    """A menu item reference in a billing request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    menu_item_id: UUID
    quantity: int = Field(..., gt=0, le=1000)


class GenerateInvoiceRequest(BaseModel):
    """Input for POST /billing/generate."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    table_number: int = Field(..., gt=0)
    items: list[GenerateItem] = Field(..., min_length=1)
    gst_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    service_charge_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
