"""
Billing flow behind POST /billing/generate and GET /billing/invoice/{id}.

Generation: look up the hotel (linear retry), check the table number, price
the requested menu items from this hotel's menu, build invoice content,
store row + PDF atomically, then presign a download link. A presigning
failure does not undo a stored invoice; the link is simply omitted.
"""

import logging
from uuid import UUID

from pydantic import BaseModel

from clients.object_store_client import ObjectStoreClient
from core.config import BillingConfig
from core.errors import InputValidationError
from core.models import BillableItem, GenerateInvoiceRequest, Invoice
from core.retry import linear_backoff, retry_transient
from core.services.hotel_service import HotelService
from core.services.invoice_generator import InvoiceGenerator, InvoiceRequest
from core.services.invoice_store import InvoiceStore

logger = logging.getLogger(__name__)


class InvoiceWithLink(BaseModel):
    """An invoice plus a short-lived download URL for its PDF."""

    invoice: Invoice
    pdf_url: str | None


class BillingService:
    """Request-level orchestration of invoice generation and retrieval."""

    def __init__(
        self,
        hotels: HotelService,
        generator: InvoiceGenerator,
        invoices: InvoiceStore,
        object_store: ObjectStoreClient,
        config: BillingConfig | None = None,
    ):
        self.hotels = hotels
        self.generator = generator
        self.invoices = invoices
        self.object_store = object_store
        self.config = config or BillingConfig()

    def generate_invoice(self, hotel_id: UUID, request: GenerateInvoiceRequest) -> InvoiceWithLink:
        """
        Generate, store and link an invoice for one table.

        Raises:
            NotFoundError: Unknown hotel or a menu item not on this hotel's menu
            InputValidationError: Table number beyond the hotel's table count
            TransientInfrastructureError: Storage failed after retries
        """
        hotel = self._lookup(lambda: self.hotels.get_hotel(hotel_id), "get-hotel-info")
        if request.table_number > hotel.table_count:
            raise InputValidationError(
                f"Table number must be between 1 and {hotel.table_count}"
            )

        menu = self._lookup(
            lambda: self.hotels.require_menu_items(
                hotel_id, [item.menu_item_id for item in request.items]
            ),
            "get-menu-items",
        )

        billable = [
            BillableItem(
                dish_name=menu[item.menu_item_id].dish_name,
                price=menu[item.menu_item_id].price,
                quantity=item.quantity,
                menu_item_id=item.menu_item_id,
            )
            for item in request.items
        ]

        invoice_data = self.generator.generate(InvoiceRequest(
            hotel_name=hotel.hotel_name,
            table_number=request.table_number,
            items=billable,
            gst_percentage=request.gst_percentage,
            service_charge_percentage=request.service_charge_percentage,
            discount_amount=request.discount_amount,
        ))

        stored = self.invoices.store_invoice(hotel_id, invoice_data)
        return InvoiceWithLink(invoice=stored.invoice, pdf_url=self._download_url(stored.pdf_key))

    def get_invoice(self, invoice_id: UUID, hotel_id: UUID) -> InvoiceWithLink:
        """
        Fetch a stored invoice with a fresh download link.

        Raises:
            NotFoundError: Absent or owned by another hotel
        """
        invoice = self.invoices.retrieve_invoice(invoice_id, hotel_id)
        return InvoiceWithLink(invoice=invoice, pdf_url=self._download_url(invoice.pdf_key))

    def _lookup(self, operation, label: str):
        return retry_transient(
            operation,
            self.config.lookup_retry_attempts,
            self.config.lookup_retry_base_delay,
            label,
            backoff=linear_backoff,
        )

    def _download_url(self, pdf_key: str) -> str | None:
        try:
            return self.object_store.presigned_download_url(
                pdf_key, self.config.presigned_url_expiry_seconds
            )
        except Exception as e:
            logger.warning(f"Failed to presign download URL for {pdf_key}: {e!r}")
            return None
