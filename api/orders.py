"""Order endpoints: open, list, update, bill, audit history and advisory billing locks."""

from uuid import UUID

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from api.base import request_id_of, success_response
from core.errors import InputValidationError
from core.models import OrderCreate, OrderItem, OrderStatus, OrderUpdate


class ReplaceOrderRequest(BaseModel):
    """PUT body: the full item list, optional notes, and the observed version."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    items: list[OrderItem] = Field(..., min_length=1)
    notes: str | None = Field(None, max_length=1000)
    version: int = Field(..., ge=1)


class StatusChangeRequest(BaseModel):
    """PATCH body. BILLED is the only status a client may set."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: str
    invoice_id: UUID | None = None
    version: int = Field(..., ge=1)


def create_orders_router(services: dict) -> APIRouter:
    router = APIRouter()

    order_store = services["orders"]

    @router.post("/orders", status_code=201)
    def create_order(request: Request, body: OrderCreate):
        principal = request.state.principal
        order = order_store.create_order(
            principal.hotel_id, body.table_number, body.items, body.notes
        )
        data = order.model_dump(mode="json", include={"order_id", "status", "version", "created_at"})
        return success_response(data, request_id_of(request)).model_dump(mode="json")

    @router.get("/orders")
    def list_orders(
        request: Request,
        table: int | None = Query(None, ge=1),
        status: OrderStatus | None = Query(None),
    ):
        hotel_id = request.state.principal.hotel_id

        if table is not None:
            order = order_store.get_active_order(hotel_id, table)
            data = {"order": order.model_dump(mode="json") if order else None}
        else:
            orders = order_store.get_all_orders_for_hotel(hotel_id, status)
            data = {"orders": [o.model_dump(mode="json") for o in orders]}

        return success_response(data, request_id_of(request)).model_dump(mode="json")

    @router.get("/orders/{order_id}")
    def get_order(request: Request, order_id: UUID):
        order = order_store.get_order(order_id, request.state.principal.hotel_id)
        return success_response(order.model_dump(mode="json"), request_id_of(request)).model_dump(mode="json")

    @router.get("/orders/{order_id}/history")
    def get_order_history(request: Request, order_id: UUID):
        history = order_store.get_order_history(order_id, request.state.principal.hotel_id)
        data = {"history": history}
        return success_response(data, request_id_of(request)).model_dump(mode="json")

    @router.put("/orders/{order_id}")
    def replace_order(request: Request, order_id: UUID, body: ReplaceOrderRequest):
        update = OrderUpdate(items=body.items, notes=body.notes, version=body.version)
        order = order_store.update_order(order_id, update, hotel_id=request.state.principal.hotel_id)
        return success_response(order.model_dump(mode="json"), request_id_of(request)).model_dump(mode="json")

    @router.patch("/orders/{order_id}")
    def change_status(request: Request, order_id: UUID, body: StatusChangeRequest):
        if body.status != OrderStatus.BILLED.value:
            raise InputValidationError(f"Status can only be set to {OrderStatus.BILLED.value}")
        if body.invoice_id is None:
            raise InputValidationError("invoice_id is required to bill an order")

        order = order_store.mark_billed(
            order_id, body.invoice_id, body.version, hotel_id=request.state.principal.hotel_id
        )
        data = order.model_dump(mode="json", include={"order_id", "status", "version"})
        return success_response(data, request_id_of(request)).model_dump(mode="json")

    @router.post("/orders/{order_id}/lock")
    def lock_order(request: Request, order_id: UUID):
        principal = request.state.principal
        order = order_store.lock_for_billing(order_id, principal.hotel_id, principal.subject)
        return success_response(order.model_dump(mode="json"), request_id_of(request)).model_dump(mode="json")

    @router.delete("/orders/{order_id}/lock")
    def unlock_order(request: Request, order_id: UUID):
        principal = request.state.principal
        order = order_store.release_billing_lock(order_id, principal.hotel_id, principal.subject)
        return success_response(order.model_dump(mode="json"), request_id_of(request)).model_dump(mode="json")

    return router
