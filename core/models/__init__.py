"""Core domain models."""

from core.models.order import Order, OrderCreate, OrderUpdate, OrderItem, OrderStatus
from core.models.invoice import (
    BillableItem,
    ChargeLine,
    GenerateInvoiceRequest,
    GenerateItem,
    Invoice,
    InvoiceData,
    InvoiceItem,
    InvoiceLine,
    StoredInvoice,
)
from core.models.hotel import Hotel, MenuItem

__all__ = [
    # Order
    "Order", "OrderCreate", "OrderUpdate", "OrderItem", "OrderStatus",
    # Invoice
    "BillableItem", "ChargeLine", "GenerateInvoiceRequest", "GenerateItem",
    "Invoice", "InvoiceData", "InvoiceItem", "InvoiceLine", "StoredInvoice",
    # Tenant
    "Hotel", "MenuItem",
]
