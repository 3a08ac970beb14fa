"""Billing endpoints: generate and fetch invoices."""

from uuid import UUID

from fastapi import APIRouter, Request

from api.base import request_id_of, success_response
from core.models import GenerateInvoiceRequest


def create_billing_router(services: dict) -> APIRouter:
    router = APIRouter()

    billing = services["billing"]

    @router.post("/billing/generate", status_code=201)
    def generate_invoice(request: Request, body: GenerateInvoiceRequest):
        result = billing.generate_invoice(request.state.principal.hotel_id, body)
        return success_response(result.model_dump(mode="json"), request_id_of(request)).model_dump(mode="json")

    @router.get("/billing/invoice/{invoice_id}")
    def get_invoice(request: Request, invoice_id: UUID):
        result = billing.get_invoice(invoice_id, request.state.principal.hotel_id)
        return success_response(result.model_dump(mode="json"), request_id_of(request)).model_dump(mode="json")

    return router
