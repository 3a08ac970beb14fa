"""Read-only tenant lookups: hotel profile and menu prices."""

import logging
from uuid import UUID

from clients.postgres_client import PostgresClient
from core.errors import NotFoundError
from core.models import Hotel, MenuItem

logger = logging.getLogger(__name__)


class HotelService:
    """Lookups used to validate table numbers and price invoice lines."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def get_hotel(self, hotel_id: UUID) -> Hotel:
        """
        Get the hotel profile.

        Raises:
            NotFoundError: No hotel with this ID
        """
        row = self.postgres.execute_single(
            "SELECT id, hotel_name, table_count FROM hotels WHERE id = %s",
            (hotel_id,)
        )
        if row is None:
            raise NotFoundError("Hotel not found")
        return Hotel.model_validate(row)

    def get_menu_items(self, hotel_id: UUID, menu_item_ids: list[UUID]) -> dict[UUID, MenuItem]:
        """
        Fetch menu items owned by `hotel_id`, keyed by ID.

        Items belonging to other hotels are simply absent from the result.
        """
        unique_ids = list(dict.fromkeys(menu_item_ids))
        if not unique_ids:
            return {}

        placeholders = ", ".join(["%s"] * len(unique_ids))
        rows = self.postgres.execute(
            f"""
            SELECT id, hotel_id, dish_name, price
            FROM menu_items
            WHERE hotel_id = %s AND id IN ({placeholders})
            """,
            (hotel_id, *unique_ids)
        )

        items = [MenuItem.model_validate(row) for row in rows]
        return {item.id: item for item in items}

    def require_menu_items(self, hotel_id: UUID, menu_item_ids: list[UUID]) -> dict[UUID, MenuItem]:
        """
        Like get_menu_items, but every requested ID must resolve.

        Raises:
            NotFoundError: One or more IDs are absent or owned by another hotel
        """
        found = self.get_menu_items(hotel_id, menu_item_ids)
        missing = [str(i) for i in dict.fromkeys(menu_item_ids) if i not in found]
        if missing:
            logger.info(f"Menu items not found for hotel {hotel_id}: {missing}")
            raise NotFoundError(f"Menu item {missing[0]} not found")
        return found
