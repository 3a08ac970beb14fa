"""Tests for BillingService - the generate and fetch invoice flows."""

from decimal import Decimal
from uuid import uuid4

import psycopg2
import pytest

from core.errors import InputValidationError, NotFoundError, TransientInfrastructureError
from core.models import GenerateInvoiceRequest, InvoiceData
from tests.seed import DOSA_ID, HOTEL_A_TABLES, LASSI_ID, PANEER_ID


def _request(table_number=4, items=None, **charges):
    return GenerateInvoiceRequest(
        table_number=table_number,
        items=items or [{"menu_item_id": PANEER_ID, "quantity": 2}, {"menu_item_id": LASSI_ID, "quantity": 1}],
        **charges,
    )


class TestGenerateInvoice:
    """Tests for generate_invoice()."""

    def test_prices_from_menu(self, billing_service, hotel_id):
        result = billing_service.generate_invoice(hotel_id, _request())

        invoice = result.invoice
        assert [i.dish_name for i in invoice.items] == ["Paneer Tikka", "Sweet Lassi"]
        assert [i.price for i in invoice.items] == [Decimal("250.00"), Decimal("60.00")]
        assert invoice.subtotal == Decimal("560.00")
        assert invoice.grand_total == Decimal("560.00")

    def test_applies_charges(self, billing_service, hotel_id):
        result = billing_service.generate_invoice(hotel_id, _request(
            gst_percentage=Decimal("18"),
            service_charge_percentage=Decimal("10"),
            discount_amount=Decimal("60"),
        ))

        # taxable 500.00
        assert result.invoice.gst_amount == Decimal("90.00")
        assert result.invoice.service_charge_amount == Decimal("50.00")
        assert result.invoice.grand_total == Decimal("640.00")

    def test_returns_presigned_link_for_stored_key(self, billing_service, hotel_id, object_store):
        result = billing_service.generate_invoice(hotel_id, _request())

        assert result.invoice.pdf_key in object_store.objects
        assert result.pdf_url == f"https://objects.test/{object_store.bucket}/{result.invoice.pdf_key}?expires=900"

    def test_snapshot_carries_hotel_name(self, billing_service, hotel_id):
        result = billing_service.generate_invoice(hotel_id, _request())

        snapshot = InvoiceData.model_validate(result.invoice.invoice_json)
        assert snapshot.hotel_name == "Hotel Sagar"
        assert snapshot.table_number == 4

    def test_table_beyond_table_count(self, billing_service, hotel_id, db):
        with pytest.raises(InputValidationError):
            billing_service.generate_invoice(hotel_id, _request(table_number=HOTEL_A_TABLES + 1))

        assert db.count("invoices") == 0

    def test_item_from_other_hotels_menu(self, billing_service, hotel_id, db, object_store):
        with pytest.raises(NotFoundError, match=str(DOSA_ID)):
            billing_service.generate_invoice(hotel_id, _request(items=[{"menu_item_id": DOSA_ID, "quantity": 1}]))

        assert db.count("invoices") == 0
        assert object_store.objects == {}

    def test_unknown_hotel(self, billing_service):
        with pytest.raises(NotFoundError, match="Hotel not found"):
            billing_service.generate_invoice(uuid4(), _request())

    def test_hotel_lookup_retried(self, billing_service, hotel_id, db):
        db.fail_on("FROM hotels", psycopg2.OperationalError("connection reset"), times=2)

        result = billing_service.generate_invoice(hotel_id, _request())

        assert result.invoice.hotel_id == hotel_id

    def test_hotel_lookup_exhausted(self, billing_service, hotel_id, db, config):
        db.fail_on("FROM hotels", psycopg2.OperationalError("connection reset"), times=config.lookup_retry_attempts)

        with pytest.raises(TransientInfrastructureError, match="get-hotel-info"):
            billing_service.generate_invoice(hotel_id, _request())

    def test_presign_failure_keeps_invoice(self, billing_service, hotel_id, db, object_store):
        object_store.presign_failures = [RuntimeError("signer unavailable")]

        result = billing_service.generate_invoice(hotel_id, _request())

        assert result.pdf_url is None
        assert db.count("invoices") == 1

    def test_storage_failure_surfaces_as_transient(self, billing_service, hotel_id, db, object_store):
        object_store.put_failures = [TimeoutError() for _ in range(3)]

        with pytest.raises(TransientInfrastructureError):
            billing_service.generate_invoice(hotel_id, _request())

        assert db.count("invoices") == 0
        assert object_store.objects == {}


class TestGetInvoice:
    """Tests for get_invoice()."""

    def test_fetch_with_fresh_link(self, billing_service, hotel_id):
        created = billing_service.generate_invoice(hotel_id, _request())

        fetched = billing_service.get_invoice(created.invoice.id, hotel_id)

        assert fetched.invoice == created.invoice
        assert fetched.pdf_url is not None

    def test_other_hotel_not_found(self, billing_service, hotel_id, hotel_b_id):
        created = billing_service.generate_invoice(hotel_id, _request())

        with pytest.raises(NotFoundError):
            billing_service.get_invoice(created.invoice.id, hotel_b_id)
