"""
PostgreSQL client with connection pooling and RLS tenant isolation.

Uses psycopg2 with ThreadedConnectionPool. Tenant isolation enforced via
PostgreSQL Row Level Security - reads the hotel ID from the tenant contextvar
and sets app.current_hotel_id on each connection checkout.

Every connection carries a statement_timeout. A timed out statement raises
psycopg2.errors.QueryCanceled (an OperationalError), which the stores treat
as a transient fault.

Security: No tenant context = see nothing (RLS blocks all rows).
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Tuple
from uuid import UUID

import psycopg2
import psycopg2.extras
import psycopg2.pool

from utils.tenant_context import get_current_hotel_id

logger = logging.getLogger(__name__)

# Global JSONB registration flag
_jsonb_registered = False

Params = Tuple | Dict | None


def _convert_params(params: Params) -> Params:
    """Convert UUID objects to strings."""
    if params is None:
        return None

    def convert(value: Any) -> Any:
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, list):
            return [convert(v) for v in value]
        if isinstance(value, tuple):
            return tuple(convert(v) for v in value)
        if isinstance(value, dict):
            return {k: convert(v) for k, v in value.items()}
        return value

    return convert(params)


class Transaction:
    """
    Statements executed on one connection inside one database transaction.

    Obtained from PostgresClient.transaction(). Nothing is visible to other
    connections until the surrounding context manager commits.
    """

    def __init__(self, conn):
        self._conn = conn

    def execute(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """Execute query, return list of row dicts (empty when no result set)."""
        with self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(query, _convert_params(params))
            if cur.description:
                return [dict(row) for row in cur.fetchall()]
            return []

    def execute_single(self, query: str, params: Params = None) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        rows = self.execute(query, params)
        return rows[0] if rows else None

    def execute_returning(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """Execute INSERT/UPDATE with RETURNING, return results."""
        return self.execute(query, params)


class PostgresClient:
    """
    PostgreSQL client with automatic RLS context from contextvar.

    The pool is created once per database URL and shared by every instance.
    The process entry point owns its lifecycle: construct the client at
    startup, pass it to the stores, close() it at shutdown.

    Usage:
        db = PostgresClient(database_url)

        with tenant_context(hotel_id):
            orders = db.execute("SELECT * FROM orders")  # Hotel's rows only

        with db.transaction() as tx:
            tx.execute_returning("INSERT ... RETURNING *", (...))
            tx.execute("INSERT ...", (...))
        # committed here, rolled back if the block raised
    """

    # Class-level connection pools shared across instances
    _connection_pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(self, database_url: str, statement_timeout_ms: int = 10000, max_connections: int = 20):
        self._database_url = database_url
        self._statement_timeout_ms = statement_timeout_ms
        self._max_connections = max_connections
        self._ensure_connection_pool()

    def _ensure_connection_pool(self) -> None:
        """Create connection pool if it doesn't exist."""
        with self._pools_lock:
            if self._database_url not in self._connection_pools:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=2,
                    maxconn=self._max_connections,
                    dsn=self._database_url,
                    connect_timeout=10,
                    options=f"-c statement_timeout={self._statement_timeout_ms}",
                )

                global _jsonb_registered
                if not _jsonb_registered:
                    psycopg2.extras.register_default_jsonb(globally=True)
                    _jsonb_registered = True

                self._connection_pools[self._database_url] = pool
                logger.info("Connection pool created")

    @contextmanager
    def get_connection(self) -> Iterator[Any]:
        """
        Get connection with RLS context from contextvar.

        Any open transaction is rolled back if the block raises, so a
        connection never goes back to the pool mid-transaction.
        """
        if self._database_url not in self._connection_pools:
            self._ensure_connection_pool()

        pool = self._connection_pools[self._database_url]
        conn = None
        broken = False

        try:
            conn = pool.getconn()
            if conn is None:
                raise RuntimeError("Could not get connection from pool")

            hotel_id = get_current_hotel_id()

            with conn.cursor() as cur:
                if hotel_id is not None:
                    cur.execute("SET app.current_hotel_id = %s", (str(hotel_id),))
                else:
                    # RLS policies map '' to NULL, which matches no rows
                    cur.execute("SET app.current_hotel_id = ''")

            yield conn

        except Exception:
            if conn is not None:
                broken = conn.closed != 0
                if not broken:
                    try:
                        conn.rollback()
                    except psycopg2.Error:
                        broken = True
            raise

        finally:
            if conn is not None:
                pool.putconn(conn, close=broken)

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """
        Run several statements as one unit of work.

        Commits when the block exits normally. A failed commit raises, so
        callers can compensate for side effects outside the database.
        """
        with self.get_connection() as conn:
            yield Transaction(conn)
            conn.commit()

    def execute(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """Execute query, return list of row dicts. Empty list if no results."""
        with self.get_connection() as conn:
            rows = Transaction(conn).execute(query, params)
            conn.commit()
            return rows

    def execute_single(self, query: str, params: Params = None) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        results = self.execute(query, params)
        return results[0] if results else None

    def close(self) -> None:
        """Close connection pool."""
        with self._pools_lock:
            if self._database_url in self._connection_pools:
                self._connection_pools[self._database_url].closeall()
                del self._connection_pools[self._database_url]
