"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, expires_at
from utils.tenant_context import (
    get_current_hotel_id,
    set_current_hotel_id,
    clear_current_hotel_id,
    tenant_context,
)
