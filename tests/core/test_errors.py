"""Tests for core/errors.py - error kinds and transient classification."""

import psycopg2
import psycopg2.pool
import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, ReadTimeoutError

from core.errors import (
    BillingError,
    ConflictError,
    ErrorKind,
    InputValidationError,
    InvalidOperationError,
    NotFoundError,
    TransientInfrastructureError,
    describe_validation_errors,
    is_transient,
)


def _client_error(code: str, status: int) -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        "PutObject",
    )


class TestErrorKinds:
    """Each error class pins exactly one kind."""

    @pytest.mark.parametrize("cls,kind", [
        (ConflictError, ErrorKind.CONFLICT),
        (InvalidOperationError, ErrorKind.INVALID_OPERATION),
        (NotFoundError, ErrorKind.NOT_FOUND),
        (TransientInfrastructureError, ErrorKind.TRANSIENT),
        (InputValidationError, ErrorKind.VALIDATION),
    ])
    def test_kind(self, cls, kind):
        err = cls("msg")
        assert err.kind is kind
        assert err.message == "msg"
        assert isinstance(err, BillingError)


class TestIsTransient:
    """Tests for is_transient()."""

    def test_database_faults_are_transient(self):
        assert is_transient(psycopg2.OperationalError("timeout"))
        assert is_transient(psycopg2.InterfaceError("connection already closed"))
        assert is_transient(psycopg2.pool.PoolError("connection pool exhausted"))

    def test_integrity_error_is_not_transient(self):
        assert not is_transient(psycopg2.IntegrityError("duplicate key"))

    def test_object_store_connection_faults_are_transient(self):
        assert is_transient(EndpointConnectionError(endpoint_url="https://s3.test"))
        assert is_transient(ReadTimeoutError(endpoint_url="https://s3.test"))

    def test_throttling_and_5xx_are_transient(self):
        assert is_transient(_client_error("SlowDown", 503))
        assert is_transient(_client_error("InternalError", 500))
        assert is_transient(_client_error("Whatever", 502))

    def test_client_4xx_is_not_transient(self):
        assert not is_transient(_client_error("AccessDenied", 403))
        assert not is_transient(_client_error("NoSuchBucket", 404))

    def test_builtin_network_errors_are_transient(self):
        assert is_transient(TimeoutError())
        assert is_transient(ConnectionResetError())

    def test_business_errors_are_not_transient(self):
        assert not is_transient(ConflictError("stale"))
        assert not is_transient(NotFoundError("gone"))
        assert not is_transient(InvalidOperationError("billed"))
        assert not is_transient(InputValidationError("bad"))

    def test_classified_transient_error_is_transient(self):
        assert is_transient(TransientInfrastructureError("down"))

    def test_programming_errors_are_not_transient(self):
        assert not is_transient(ValueError("bug"))
        assert not is_transient(KeyError("bug"))


class TestDescribeValidationErrors:
    """Tests for describe_validation_errors()."""

    def test_joins_locations_and_messages(self):
        errors = [
            {"loc": ("body", "items"), "msg": "List should have at least 1 item"},
            {"loc": ("body", "table_number"), "msg": "Input should be greater than 0"},
        ]
        assert describe_validation_errors(errors) == (
            "items: List should have at least 1 item; "
            "table_number: Input should be greater than 0"
        )

    def test_nested_location(self):
        errors = [{"loc": ("items", 0, "quantity"), "msg": "bad"}]
        assert describe_validation_errors(errors) == "items.0.quantity: bad"

    def test_missing_location(self):
        assert describe_validation_errors([{"loc": (), "msg": "oops"}]) == "oops"

    def test_empty(self):
        assert describe_validation_errors([]) == "Invalid request"
