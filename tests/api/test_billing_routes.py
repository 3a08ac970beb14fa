"""Tests for /billing endpoints."""

from uuid import uuid4

from tests.seed import DOSA_ID, LASSI_ID, NAAN_ID, PANEER_ID


def _generate(client, table=3, items=None, **charges):
    body = {
        "tableNumber": table,
        "items": items or [
            {"menuItemId": str(PANEER_ID), "quantity": 2},
            {"menuItemId": str(NAAN_ID), "quantity": 3},
        ],
        **charges,
    }
    return client.post("/billing/generate", json=body)


class TestGenerateInvoice:
    """POST /billing/generate"""

    def test_created(self, client, object_store):
        response = _generate(client, gstPercentage="5", serviceChargePercentage="10", discountAmount="36.50")

        assert response.status_code == 201
        data = response.json()["data"]
        invoice = data["invoice"]
        # 2 x 250.00 + 3 x 45.50 = 636.50, less 36.50 = 600.00 taxable
        assert invoice["subtotal"] == "636.50"
        assert invoice["gst_amount"] == "30.00"
        assert invoice["service_charge_amount"] == "60.00"
        assert invoice["grand_total"] == "690.00"
        assert [line["dish_name"] for line in invoice["items"]] == ["Paneer Tikka", "Butter Naan"]
        assert invoice["pdf_key"] in object_store.objects
        assert data["pdf_url"].startswith("https://objects.test/")

    def test_snake_case_body_accepted(self, client):
        response = client.post("/billing/generate", json={
            "table_number": 1,
            "items": [{"menu_item_id": str(LASSI_ID), "quantity": 1}],
        })

        assert response.status_code == 201
        assert response.json()["data"]["invoice"]["grand_total"] == "60.00"

    def test_menu_item_of_other_hotel(self, client, db):
        response = _generate(client, items=[{"menuItemId": str(DOSA_ID), "quantity": 1}])

        assert response.status_code == 404
        assert db.count("invoices") == 0

    def test_table_beyond_hotel_tables(self, client_b):
        response = _generate(client_b, table=5, items=[{"menuItemId": str(DOSA_ID), "quantity": 1}])

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_negative_discount_rejected(self, client):
        response = _generate(client, discountAmount="-5")

        assert response.status_code == 400

    def test_storage_outage_is_503(self, client, db, object_store):
        object_store.put_failures = [TimeoutError() for _ in range(3)]

        response = _generate(client)

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "SERVICE_UNAVAILABLE"
        assert db.count("invoices") == 0
        assert object_store.objects == {}

    def test_requires_auth(self, unauthed_client):
        assert _generate(unauthed_client).status_code == 401


class TestGetInvoice:
    """GET /billing/invoice/{id}"""

    def test_fetch(self, client):
        created = _generate(client).json()["data"]["invoice"]

        response = client.get(f"/billing/invoice/{created['id']}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["invoice"] == created
        assert data["pdf_url"] is not None

    def test_other_hotel_404(self, client, client_b):
        created = _generate(client).json()["data"]["invoice"]

        response = client_b.get(f"/billing/invoice/{created['id']}")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_unknown_invoice(self, client):
        assert client.get(f"/billing/invoice/{uuid4()}").status_code == 404

    def test_malformed_id(self, client):
        response = client.get("/billing/invoice/INV-1234")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
