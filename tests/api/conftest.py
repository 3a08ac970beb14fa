"""API test fixtures: authenticated TestClients over in-memory stores."""

from unittest.mock import Mock

import pytest
from starlette.testclient import TestClient

from api.app import create_app
from auth.exceptions import InvalidTokenError, TokenExpiredError
from auth.types import Principal, TokenVerifier
from tests.seed import HOTEL_A_ID, HOTEL_B_ID

TOKENS = {
    "hotel-a-token": Principal(hotel_id=HOTEL_A_ID, subject="cashier-a"),
    "hotel-a-second-token": Principal(hotel_id=HOTEL_A_ID, subject="waiter-a"),
    "hotel-b-token": Principal(hotel_id=HOTEL_B_ID, subject="cashier-b"),
}


# =============================================================================
# SERVICES DICT
# =============================================================================


@pytest.fixture
def services(db, order_store, billing_service):
    return {
        "postgres": db,
        "orders": order_store,
        "billing": billing_service,
    }


# =============================================================================
# AUTH FIXTURES
# =============================================================================


@pytest.fixture
def mock_verifier():
    """Verifier that knows a fixed set of bearer tokens."""

    def verify(token):
        if token == "expired-token":
            raise TokenExpiredError("token expired")
        if token not in TOKENS:
            raise InvalidTokenError("unknown token")
        return TOKENS[token]

    mock = Mock(spec=TokenVerifier)
    mock.verify.side_effect = verify
    return mock


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(services, mock_verifier):
    """The production app wired to in-memory stores."""
    return create_app(services, mock_verifier)


def _client(app, token=None):
    c = TestClient(app, raise_server_exceptions=False)
    if token:
        c.headers["Authorization"] = f"Bearer {token}"
    return c


@pytest.fixture
def client(app):
    """Client authenticated as hotel A's cashier."""
    return _client(app, "hotel-a-token")


@pytest.fixture
def second_client(app):
    """Another hotel A user (waiter)."""
    return _client(app, "hotel-a-second-token")


@pytest.fixture
def client_b(app):
    """Client authenticated as hotel B."""
    return _client(app, "hotel-b-token")


@pytest.fixture
def unauthed_client(app):
    """Unauthenticated test client (no Authorization header)."""
    return _client(app)
