"""
Order store: the only writer of the orders table.

Concurrency is optimistic. Every write is one conditional statement that the
database evaluates atomically, so two requests racing on the same row can
never both succeed:

    create       INSERT ... ON CONFLICT DO NOTHING RETURNING *
                 (partial unique index: one OPEN order per hotel/table)
    update/bill  UPDATE ... WHERE order_id = %s AND version = %s
                 AND status = 'OPEN' RETURNING *

When a conditional write matches no row, the row read earlier in the same
transaction tells us why: absent -> NotFound, BILLED -> InvalidOperation,
anything else -> Conflict. Nothing is cached between calls.

Billing locks are advisory. Taking one bumps the version, so editors holding
an older version get a Conflict, but a held lock does not block a caller
that submits the current version.
"""

import logging
from typing import Any, Callable, TypeVar
from uuid import UUID, uuid4

from psycopg2.extras import Json
from pydantic import ValidationError

from clients.postgres_client import PostgresClient, Transaction
from core.audit import AuditLogger, AuditAction, compute_changes
from core.config import BillingConfig
from core.errors import (
    ConflictError,
    InputValidationError,
    InvalidOperationError,
    NotFoundError,
    describe_validation_errors,
)
from core.models import Order, OrderCreate, OrderItem, OrderStatus, OrderUpdate
from core.retry import linear_backoff, retry_transient
from core.services.hotel_service import HotelService
from utils.timezone import expires_at, now_utc

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _items_json(items: list[OrderItem]) -> Json:
    return Json([item.model_dump(mode="json", exclude_none=True) for item in items])


class OrderStore:
    """Create, update, bill and look up orders."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        hotels: HotelService,
        config: BillingConfig | None = None,
    ):
        self.postgres = postgres
        self.audit = audit
        self.hotels = hotels
        self.config = config or BillingConfig()

    def _run(self, operation: Callable[[], T], label: str) -> T:
        """Retry transient faults only; conflicts surface on first occurrence."""
        return retry_transient(
            operation,
            self.config.order_retry_attempts,
            self.config.order_retry_base_delay,
            label,
            backoff=linear_backoff,
        )

    # =========================================================================
    # WRITES
    # =========================================================================

    def create_order(
        self,
        hotel_id: UUID,
        table_number: int,
        items: list[OrderItem | dict[str, Any]],
        notes: str | None = None,
    ) -> Order:
        """
        Open a tab for a table.

        Args:
            hotel_id: Owning tenant
            table_number: 1..hotel.table_count
            items: At least one item
            notes: Optional free text

        Returns:
            The new order with version 1 and status OPEN

        Raises:
            InputValidationError: Empty items or table number out of range
            NotFoundError: Unknown hotel
            ConflictError: The table already has an OPEN order
        """
        try:
            data = OrderCreate(table_number=table_number, items=items, notes=notes)
        except ValidationError as e:
            raise InputValidationError(describe_validation_errors(e.errors())) from e

        hotel = self._run(lambda: self.hotels.get_hotel(hotel_id), "get-hotel-info")
        if data.table_number > hotel.table_count:
            raise InputValidationError(
                f"Table number must be between 1 and {hotel.table_count}"
            )

        # Fixed across retries so a commit whose acknowledgement was lost can be found again
        order_id = uuid4()

        def insert() -> Order:
            now = now_utc()
            with self.postgres.transaction() as tx:
                rows = tx.execute_returning(
                    """
                    INSERT INTO orders (
                        order_id, hotel_id, table_number, items, notes,
                        status, version, created_at, updated_at
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT DO NOTHING
                    RETURNING *
                    """,
                    (
                        order_id, hotel_id, data.table_number, _items_json(data.items), data.notes,
                        OrderStatus.OPEN.value, 1, now, now
                    )
                )
                if not rows:
                    landed = tx.execute_single(
                        "SELECT * FROM orders WHERE order_id = %s AND hotel_id = %s",
                        (order_id, hotel_id)
                    )
                    if landed is not None:
                        logger.warning(f"Order {order_id} was committed by an earlier attempt")
                        return Order.model_validate(landed)
                    raise ConflictError(f"Table {data.table_number} already has an active order")

                order = Order.model_validate(rows[0])
                self.audit.log_change(
                    hotel_id=hotel_id,
                    entity_type="order",
                    entity_id=order.order_id,
                    action=AuditAction.ORDER_CREATED,
                    metadata={
                        "table_number": order.table_number,
                        "item_count": len(order.items),
                    },
                    db=tx,
                )
            return order

        order = self._run(insert, "create-order")
        logger.info(f"Opened order {order.order_id} on table {order.table_number}")
        return order

    def update_order(self, order_id: UUID, data: OrderUpdate, hotel_id: UUID | None = None) -> Order:
        """
        Replace items and/or notes if `data.version` is still current.

        Args:
            order_id: Order to update
            data: New values plus the version the caller last observed
            hotel_id: When given, the order must belong to this tenant

        Returns:
            Updated order, version incremented by exactly 1

        Raises:
            NotFoundError: Order absent or owned by another tenant
            InvalidOperationError: Order is BILLED
            ConflictError: Version is stale
        """
        assignments = ["version = version + 1", "updated_at = %s"]
        values: list[Any] = []
        if data.items is not None:
            assignments.append("items = %s")
            values.append(_items_json(data.items))
        if "notes" in data.model_fields_set:
            assignments.append("notes = %s")
            values.append(data.notes)

        attempts = 0

        def update() -> Order:
            nonlocal attempts
            attempts += 1
            with self.postgres.transaction() as tx:
                before = self._select_for_write(tx, order_id, hotel_id)
                rows = self._conditional_update(
                    tx, ", ".join(assignments), [now_utc(), *values], order_id, data.version, hotel_id
                )
                if not rows:
                    if attempts > 1 and self._update_landed(before, data):
                        logger.warning(f"Update of order {order_id} was committed by an earlier attempt")
                        return before
                    raise self._rejection(before, data.version)

                order = Order.model_validate(rows[0])
                changes = compute_changes(
                    before.model_dump(mode="json", include={"items", "notes"}),
                    order.model_dump(mode="json", include={"items", "notes"}),
                )
                self.audit.log_change(
                    hotel_id=order.hotel_id,
                    entity_type="order",
                    entity_id=order.order_id,
                    action=AuditAction.ORDER_UPDATED,
                    metadata={"version": order.version, "changes": changes},
                    db=tx,
                )
            return order

        order = self._run(update, "update-order")
        logger.info(f"Updated order {order.order_id} to version {order.version}")
        return order

    def mark_billed(
        self,
        order_id: UUID,
        invoice_id: UUID,
        version: int,
        hotel_id: UUID | None = None,
    ) -> Order:
        """
        Close the tab: OPEN -> BILLED, recording the invoice.

        Clears any billing lock. The table is free for a new order afterwards.

        Raises:
            NotFoundError: Order absent or owned by another tenant
            InvalidOperationError: Order is not OPEN
            ConflictError: Version is stale
        """

        attempts = 0

        def bill() -> Order:
            nonlocal attempts
            attempts += 1
            with self.postgres.transaction() as tx:
                before = self._select_for_write(tx, order_id, hotel_id)
                rows = self._conditional_update(
                    tx,
                    """
                    status = %s, invoice_id = %s, locked_by = NULL, lock_expires_at = NULL,
                    version = version + 1, updated_at = %s
                    """,
                    [OrderStatus.BILLED.value, invoice_id, now_utc()],
                    order_id,
                    version,
                    hotel_id,
                )
                if not rows:
                    if (
                        attempts > 1
                        and before.status == OrderStatus.BILLED
                        and before.invoice_id == invoice_id
                        and before.version == version + 1
                    ):
                        logger.warning(f"Billing of order {order_id} was committed by an earlier attempt")
                        return before
                    raise self._rejection(before, version)

                order = Order.model_validate(rows[0])
                self.audit.log_change(
                    hotel_id=order.hotel_id,
                    entity_type="order",
                    entity_id=order.order_id,
                    action=AuditAction.TABLE_FREED,
                    metadata={
                        "table_number": order.table_number,
                        "invoice_id": str(invoice_id),
                        "version": order.version,
                    },
                    db=tx,
                )
            return order

        order = self._run(bill, "mark-billed")
        logger.info(f"Order {order.order_id} billed with invoice {invoice_id}")
        return order

    def lock_for_billing(self, order_id: UUID, hotel_id: UUID, holder: str) -> Order:
        """
        Take (or refresh) the advisory billing lock.

        Succeeds when the order is OPEN and the lock is free, expired, or
        already held by `holder`. Bumps the version.

        Raises:
            NotFoundError: Order absent or owned by another tenant
            InvalidOperationError: Order is not OPEN
            ConflictError: Another holder's lock has not expired
        """

        def lock() -> Order:
            now = now_utc()
            with self.postgres.transaction() as tx:
                before = self._select_for_write(tx, order_id, hotel_id)
                rows = tx.execute_returning(
                    """
                    UPDATE orders
                    SET locked_by = %s, lock_expires_at = %s,
                        version = version + 1, updated_at = %s
                    WHERE order_id = %s AND hotel_id = %s AND status = %s
                      AND (locked_by IS NULL OR locked_by = %s OR lock_expires_at < %s)
                    RETURNING *
                    """,
                    (
                        holder, expires_at(self.config.billing_lock_ttl_minutes, now), now,
                        order_id, hotel_id, OrderStatus.OPEN.value,
                        holder, now
                    )
                )
                if not rows:
                    if not before.is_open:
                        raise InvalidOperationError("Order is already billed")
                    raise ConflictError("Order is being billed by another user")

                order = Order.model_validate(rows[0])
                self.audit.log_change(
                    hotel_id=hotel_id,
                    entity_type="order",
                    entity_id=order.order_id,
                    action=AuditAction.BILLING_LOCK_ACQUIRED,
                    metadata={"locked_by": holder, "version": order.version},
                    db=tx,
                )
            return order

        return self._run(lock, "lock-for-billing")

    def release_billing_lock(self, order_id: UUID, hotel_id: UUID, holder: str) -> Order:
        """
        Release a billing lock held by `holder`. Bumps the version.

        Raises:
            NotFoundError: Order absent or owned by another tenant
            ConflictError: The lock is not held by `holder`
        """

        def release() -> Order:
            with self.postgres.transaction() as tx:
                self._select_for_write(tx, order_id, hotel_id)
                rows = tx.execute_returning(
                    """
                    UPDATE orders
                    SET locked_by = NULL, lock_expires_at = NULL,
                        version = version + 1, updated_at = %s
                    WHERE order_id = %s AND hotel_id = %s AND locked_by = %s
                    RETURNING *
                    """,
                    (now_utc(), order_id, hotel_id, holder)
                )
                if not rows:
                    raise ConflictError("Billing lock is not held by this user")

                order = Order.model_validate(rows[0])
                self.audit.log_change(
                    hotel_id=hotel_id,
                    entity_type="order",
                    entity_id=order.order_id,
                    action=AuditAction.BILLING_LOCK_RELEASED,
                    metadata={"locked_by": holder, "version": order.version},
                    db=tx,
                )
            return order

        return self._run(release, "release-billing-lock")

    # =========================================================================
    # READS
    # =========================================================================

    def get_order(self, order_id: UUID, hotel_id: UUID) -> Order:
        """
        Get one order owned by `hotel_id`.

        Raises:
            NotFoundError: Absent or owned by another tenant
        """
        row = self._run(
            lambda: self.postgres.execute_single(
                "SELECT * FROM orders WHERE order_id = %s AND hotel_id = %s",
                (order_id, hotel_id)
            ),
            "get-order",
        )
        if row is None:
            raise NotFoundError("Order not found")
        return Order.model_validate(row)

    def get_active_order(self, hotel_id: UUID, table_number: int) -> Order | None:
        """The OPEN order on a table, or None when the table is free."""
        row = self._run(
            lambda: self.postgres.execute_single(
                """
                SELECT * FROM orders
                WHERE hotel_id = %s AND table_number = %s AND status = %s
                """,
                (hotel_id, table_number, OrderStatus.OPEN.value)
            ),
            "get-active-order",
        )
        return Order.model_validate(row) if row else None

    def get_all_orders_for_hotel(
        self,
        hotel_id: UUID,
        status: OrderStatus | None = None,
    ) -> list[Order]:
        """
        All orders of a tenant, optionally filtered by status.

        Ordered by table number, newest first within a table.
        """
        query = "SELECT * FROM orders WHERE hotel_id = %s"
        params: list[Any] = [hotel_id]
        if status is not None:
            query += " AND status = %s"
            params.append(status.value)
        query += " ORDER BY table_number ASC, created_at DESC"

        rows = self._run(
            lambda: self.postgres.execute(query, tuple(params)),
            "list-orders",
        )
        return [Order.model_validate(row) for row in rows]

    def get_order_history(self, order_id: UUID, hotel_id: UUID) -> list[dict[str, Any]]:
        """
        Audit trail of one order, oldest first.

        Raises:
            NotFoundError: Absent or owned by another tenant
        """
        self.get_order(order_id, hotel_id)
        return self._run(
            lambda: self.audit.get_entity_history(hotel_id, "order", order_id),
            "get-order-history",
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _select_for_write(self, tx: Transaction, order_id: UUID, hotel_id: UUID | None) -> Order:
        """Read the row a conditional write will target. Plain read, no row lock."""
        if hotel_id is None:
            row = tx.execute_single("SELECT * FROM orders WHERE order_id = %s", (order_id,))
        else:
            row = tx.execute_single(
                "SELECT * FROM orders WHERE order_id = %s AND hotel_id = %s",
                (order_id, hotel_id)
            )
        if row is None:
            raise NotFoundError("Order not found")
        return Order.model_validate(row)

    def _conditional_update(
        self,
        tx: Transaction,
        assignments: str,
        values: list[Any],
        order_id: UUID,
        version: int,
        hotel_id: UUID | None,
    ) -> list[dict[str, Any]]:
        """The single optimistic write: applies only to the expected OPEN version."""
        query = f"""
            UPDATE orders SET {assignments}
            WHERE order_id = %s AND version = %s AND status = %s
        """
        params = [*values, order_id, version, OrderStatus.OPEN.value]
        if hotel_id is not None:
            query += " AND hotel_id = %s"
            params.append(hotel_id)
        query += " RETURNING *"
        return tx.execute_returning(query, tuple(params))

    @staticmethod
    def _update_landed(current: Order, data: OrderUpdate) -> bool:
        """Whether `current` is exactly the row our own update would have produced."""
        if not current.is_open or current.version != data.version + 1:
            return False
        if data.items is not None and (
            [item.model_dump(mode="json") for item in current.items]
            != [item.model_dump(mode="json") for item in data.items]
        ):
            return False
        if "notes" in data.model_fields_set and current.notes != data.notes:
            return False
        return True

    def _rejection(self, before: Order, version: int) -> Exception:
        """Classify a conditional write that matched no row."""
        if not before.is_open:
            return InvalidOperationError(f"Order is {before.status.value.lower()} and can no longer be modified")
        logger.info(
            f"Stale write on order {before.order_id}: submitted version {version}, "
            f"stored version {before.version}"
        )
        return ConflictError("Order was modified by another user")
