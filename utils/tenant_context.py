"""Propagate tenant (hotel) identity through the call stack using contextvars."""

from contextvars import ContextVar
from uuid import UUID
from contextlib import contextmanager

_current_hotel_id: ContextVar[UUID | None] = ContextVar("current_hotel_id", default=None)


def get_current_hotel_id() -> UUID | None:
    """
    Get current hotel ID from context, or None outside an authenticated request.

    Connections opened without a tenant see no tenant-scoped rows.
    """
    return _current_hotel_id.get()


def set_current_hotel_id(hotel_id: UUID) -> None:
    """
    Set current hotel ID in context.

    Called by auth middleware after verifying the bearer token.
    """
    _current_hotel_id.set(hotel_id)


def clear_current_hotel_id() -> None:
    """
    Clear tenant context.

    Must be called in a finally block to prevent context leakage.
    """
    _current_hotel_id.set(None)


@contextmanager
def tenant_context(hotel_id: UUID):
    """
    Context manager for temporarily setting tenant context.

    Example:
        with tenant_context(hotel_id):
            # Connections opened here set app.current_hotel_id for RLS
            orders = order_store.get_all_orders_for_hotel(hotel_id)
    """
    previous = _current_hotel_id.get()
    set_current_hotel_id(hotel_id)
    try:
        yield
    finally:
        if previous is None:
            clear_current_hotel_id()
        else:
            set_current_hotel_id(previous)
