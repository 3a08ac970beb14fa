"""
Invoice store: the invoice row and its PDF are written as one unit.

One attempt of store_invoice():

    1. open a transaction, INSERT the invoice row (pdf_key already set)
       and its items. A failure here aborts before any upload.
    2. upload the PDF while the transaction is still open. A failure rolls
       the transaction back, so no row outlives a missing blob.
    3. commit. If the commit fails, the blob is deleted again.

Any failure after an upload was attempted deletes the key (best effort,
a timed-out PUT may still have landed). If the commit outcome is unknown,
the row is looked up before the blob is deleted. Whole attempts are
retried with exponential backoff on transient faults; every attempt starts
over with a fresh invoice ID and key.

Invoices are immutable once stored. There is no update path.
"""

import logging
import time
from typing import Any, Callable
from uuid import UUID, uuid4

import psycopg2
from psycopg2.extras import Json

from clients.object_store_client import ObjectStoreClient
from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction
from core.config import BillingConfig
from core.errors import ConflictError, NotFoundError, is_transient
from core.models import Invoice, InvoiceData, StoredInvoice
from core.retry import exponential_backoff, retry_transient, with_retry
from core.services.invoice_renderer import InvoiceRenderer
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class InvoiceStore:
    """Atomic row + blob persistence and tenant-scoped retrieval of invoices."""

    def __init__(
        self,
        postgres: PostgresClient,
        object_store: ObjectStoreClient,
        renderer: InvoiceRenderer,
        audit: AuditLogger,
        config: BillingConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.postgres = postgres
        self.object_store = object_store
        self.renderer = renderer
        self.audit = audit
        self.config = config or BillingConfig()
        self._sleep = sleep

    def store_invoice(
        self,
        hotel_id: UUID,
        invoice_data: InvoiceData,
        max_retries: int | None = None,
    ) -> StoredInvoice:
        """
        Persist an invoice row and its rendered PDF, all or nothing.

        Args:
            hotel_id: Owning tenant
            invoice_data: Finalized invoice content (amounts already rounded)
            max_retries: Attempts for the whole protocol; defaults to config

        Returns:
            StoredInvoice whose pdf_key names the uploaded blob

        Raises:
            TransientInfrastructureError: Database or object store still
                failing after all attempts. Nothing was persisted.
            ConflictError: Invoice number already used
            ValueError: max_retries below 1
        """
        attempts = self.config.invoice_store_max_retries if max_retries is None else max_retries
        if attempts < 1:
            raise ValueError("max_retries must be at least 1")
        document = self.renderer.render(invoice_data)

        stored = retry_transient(
            lambda: self._store_once(hotel_id, invoice_data, document),
            attempts,
            self.config.invoice_store_base_delay,
            "store-invoice",
            backoff=exponential_backoff,
            sleep=self._sleep,
        )
        logger.info(f"Stored invoice {invoice_data.invoice_number} at {stored.pdf_key}")
        return stored

    def retrieve_invoice(self, invoice_id: UUID, hotel_id: UUID) -> Invoice:
        """
        Get an invoice with its items in original order.

        Never retried: a miss means absent or another tenant's invoice.

        Raises:
            NotFoundError: Absent or owned by another hotel (indistinguishable)
            TransientInfrastructureError: Database unavailable
        """

        def fetch() -> Invoice:
            row = self.postgres.execute_single(
                "SELECT * FROM invoices WHERE id = %s AND hotel_id = %s",
                (invoice_id, hotel_id)
            )
            if row is None:
                raise NotFoundError("Invoice not found or unauthorized")

            items = self.postgres.execute(
                "SELECT * FROM invoice_items WHERE invoice_id = %s ORDER BY line_number ASC",
                (invoice_id,)
            )
            return Invoice.model_validate({**row, "items": items})

        return retry_transient(fetch, 1, 0, "retrieve-invoice")

    # =========================================================================
    # PROTOCOL
    # =========================================================================

    def _store_once(self, hotel_id: UUID, invoice_data: InvoiceData, document: bytes) -> StoredInvoice:
        """One clean-slate attempt of the dual write."""
        invoice_id = uuid4()
        pdf_key = ObjectStoreClient.generate_key(
            self.config.invoice_key_prefix, hotel_id, invoice_data.invoice_number
        )
        upload_attempted = False
        uploaded = False

        try:
            with self.postgres.transaction() as tx:
                row = self._insert_row(tx, invoice_id, hotel_id, invoice_data, pdf_key)
                items = self._insert_items(tx, invoice_id, invoice_data)
                self.audit.log_change(
                    hotel_id=hotel_id,
                    entity_type="invoice",
                    entity_id=invoice_id,
                    action=AuditAction.INVOICE_GENERATED,
                    metadata={
                        "invoice_number": invoice_data.invoice_number,
                        "table_number": invoice_data.table_number,
                        "grand_total": str(invoice_data.grand_total),
                    },
                    db=tx,
                )

                upload_attempted = True
                self.object_store.put_object(pdf_key, document)
                uploaded = True

        except psycopg2.IntegrityError as e:
            if upload_attempted:
                self._discard_blob(pdf_key)
            raise ConflictError(f"Invoice number {invoice_data.invoice_number} already exists") from e

        except Exception as e:
            if uploaded and self._commit_landed(invoice_id, hotel_id):
                logger.warning(f"Commit reported {e!r} but invoice {invoice_id} is persisted")
                return self._stored(invoice_id, hotel_id, pdf_key)
            if upload_attempted:
                self._discard_blob(pdf_key)
            raise

        invoice = Invoice.model_validate({**row, "items": items})
        return StoredInvoice(invoice=invoice, pdf_key=pdf_key)

    def _insert_row(self, tx, invoice_id: UUID, hotel_id: UUID, data: InvoiceData, pdf_key: str) -> dict[str, Any]:
        return tx.execute_returning(
            """
            INSERT INTO invoices (
                id, hotel_id, invoice_number, table_number,
                subtotal, gst_percentage, gst_amount,
                service_charge_percentage, service_charge_amount,
                discount_amount, grand_total,
                invoice_json, pdf_key, created_at
            ) VALUES (
                %s, %s, %s, %s,
                %s, %s, %s,
                %s, %s,
                %s, %s,
                %s, %s, %s
            )
            RETURNING *
            """,
            (
                invoice_id, hotel_id, data.invoice_number, data.table_number,
                data.subtotal, data.gst.percentage, data.gst.amount,
                data.service_charge.percentage, data.service_charge.amount,
                data.discount, data.grand_total,
                Json(data.model_dump(mode="json")), pdf_key, now_utc()
            )
        )[0]

    def _insert_items(self, tx, invoice_id: UUID, data: InvoiceData) -> list[dict[str, Any]]:
        rows = []
        for line_number, line in enumerate(data.items, start=1):
            rows.append(tx.execute_returning(
                """
                INSERT INTO invoice_items (
                    id, invoice_id, line_number, menu_item_id, dish_name, price, quantity, total
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    uuid4(), invoice_id, line_number, line.menu_item_id,
                    line.dish_name, line.price, line.quantity, line.total
                )
            )[0])
        return rows

    # =========================================================================
    # COMPENSATION
    # =========================================================================

    def _commit_landed(self, invoice_id: UUID, hotel_id: UUID) -> bool:
        """Whether a commit whose outcome was unknown actually persisted the row."""
        try:
            row = self.postgres.execute_single(
                "SELECT id FROM invoices WHERE id = %s AND hotel_id = %s",
                (invoice_id, hotel_id)
            )
        except Exception as e:
            logger.error(f"Could not verify commit of invoice {invoice_id}: {e!r}")
            return False
        return row is not None

    def _stored(self, invoice_id: UUID, hotel_id: UUID, pdf_key: str) -> StoredInvoice:
        return StoredInvoice(invoice=self.retrieve_invoice(invoice_id, hotel_id), pdf_key=pdf_key)

    def _discard_blob(self, pdf_key: str) -> None:
        """Delete an uploaded (or possibly uploaded) blob. Logs, never raises."""
        try:
            with_retry(
                lambda: self.object_store.delete_object(pdf_key),
                3,
                self.config.invoice_store_base_delay,
                "delete-invoice-document",
                backoff=exponential_backoff,
                retry_on=is_transient,
                sleep=self._sleep,
            )
        except Exception as e:
            logger.error(f"Orphaned invoice document {pdf_key} could not be deleted: {e!r}")
