"""
Typed failures for the order and invoice stores.

Every error raised by a store carries an ErrorKind. The API boundary maps
kinds to HTTP responses with a table keyed by ErrorKind, so adding a kind
without a mapping is caught by tests rather than by string matching.

Only TRANSIENT failures are eligible for automatic retry. is_transient()
also recognises the raw driver exceptions (psycopg2, botocore) that become
TransientInfrastructureError once retries are exhausted.
"""

from enum import Enum

import psycopg2
import psycopg2.pool
from botocore.exceptions import (
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
)


class ErrorKind(str, Enum):
    """Operational failure classes."""

    CONFLICT = "conflict"
    INVALID_OPERATION = "invalid_operation"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    VALIDATION = "validation"


class BillingError(Exception):
    """Base class for store-layer failures. Subclasses pin the kind."""

    kind: ErrorKind

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConflictError(BillingError):
    """
    Stale version on update, or another OPEN order already holds the table.

    Caller must re-fetch current state and resubmit. Never retried.
    """

    kind = ErrorKind.CONFLICT


class InvalidOperationError(BillingError):
    """Mutation of a BILLED order or an illegal status transition."""

    kind = ErrorKind.INVALID_OPERATION


class NotFoundError(BillingError):
    """
    Entity absent or owned by another tenant.

    The two cases are deliberately indistinguishable to the caller.
    """

    kind = ErrorKind.NOT_FOUND


class TransientInfrastructureError(BillingError):
    """Database or object store unavailable after bounded retries."""

    kind = ErrorKind.TRANSIENT


class InputValidationError(BillingError):
    """Malformed input: empty items, table number out of range, etc."""

    kind = ErrorKind.VALIDATION


# S3 error codes that indicate the request may succeed if repeated
_RETRYABLE_S3_CODES = {
    "SlowDown",
    "Throttling",
    "ThrottlingException",
    "RequestTimeout",
    "RequestTimeTooSkewed",
    "InternalError",
    "ServiceUnavailable",
}


def is_transient(exc: BaseException) -> bool:
    """
    Whether a failure is expected to clear on retry.

    Business-rule failures (BillingError other than TRANSIENT) are never
    transient, even when they wrap a driver error.
    """
    if isinstance(exc, BillingError):
        return exc.kind is ErrorKind.TRANSIENT

    # OperationalError covers dropped connections, statement timeouts
    # (QueryCanceled), serialization failures and deadlocks.
    if isinstance(exc, (psycopg2.OperationalError, psycopg2.InterfaceError, psycopg2.pool.PoolError)):
        return True

    if isinstance(exc, (BotoConnectionError, HTTPClientError)):
        return True

    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
        return error.get("Code") in _RETRYABLE_S3_CODES or status >= 500

    return isinstance(exc, (TimeoutError, ConnectionError))


def describe_validation_errors(errors: list[dict]) -> str:
    """Flatten pydantic error dicts into one user-facing sentence."""
    parts = []
    for error in errors:
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        message = error.get("msg", "Invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"
