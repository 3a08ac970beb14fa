"""
Audit trail for order and invoice changes.

Entries are append-only and tenant-attributed. Stores pass their open
transaction as `db` so the entry commits or rolls back together with the
change it describes.
"""

from enum import Enum
from uuid import UUID, uuid4
from typing import Any

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient, Transaction
from utils.timezone import now_utc


class AuditAction(Enum):
    """What happened to the entity."""

    ORDER_CREATED = "Order Created"
    ORDER_UPDATED = "Order Updated"
    BILLING_LOCK_ACQUIRED = "Billing Lock Acquired"
    BILLING_LOCK_RELEASED = "Billing Lock Released"
    INVOICE_GENERATED = "Invoice Generated"
    TABLE_FREED = "Table Freed"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Args:
        old: Previous state of entity
        new: New state of entity
        exclude_fields: Fields to ignore (defaults to {"updated_at", "version"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields or {"updated_at", "version"}
    changes = {}

    for key in set(old.keys()) | set(new.keys()):
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditLogger:
    """
    Append-only audit trail.

    Always use model_dump(mode="json") when passing Pydantic models so UUIDs,
    Decimals and datetimes are JSON-serializable.

    Usage:
        with postgres.transaction() as tx:
            row = tx.execute_returning("INSERT INTO orders ...")[0]
            audit.log_change(
                hotel_id=hotel_id,
                entity_type="order",
                entity_id=row["order_id"],
                action=AuditAction.ORDER_CREATED,
                metadata={"table_number": 5},
                db=tx,
            )
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def log_change(
        self,
        hotel_id: UUID,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        metadata: dict[str, Any],
        db: Transaction | PostgresClient | None = None,
    ) -> None:
        """
        Record one change.

        Args:
            hotel_id: Owning tenant
            entity_type: "order" or "invoice"
            entity_id: ID of the entity
            action: The action performed
            metadata: JSON-serializable detail (changed fields, totals, ...)
            db: Open transaction to write through; defaults to autocommit
        """
        (db or self.postgres).execute(
            """
            INSERT INTO audit_logs (id, hotel_id, entity_type, entity_id, action, metadata, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (
                uuid4(),
                hotel_id,
                entity_type,
                entity_id,
                action.value,
                Json(metadata),
                now_utc()
            )
        )

    def get_entity_history(
        self,
        hotel_id: UUID,
        entity_type: str,
        entity_id: UUID
    ) -> list[dict[str, Any]]:
        """
        Get audit history for an entity, oldest first.

        Args:
            hotel_id: Owning tenant
            entity_type: "order" or "invoice"
            entity_id: ID of the entity
        """
        return self.postgres.execute(
            """
            SELECT id, hotel_id, entity_type, entity_id, action, metadata, created_at
            FROM audit_logs
            WHERE hotel_id = %s AND entity_type = %s AND entity_id = %s
            ORDER BY created_at ASC
            """,
            (hotel_id, entity_type, entity_id)
        )
