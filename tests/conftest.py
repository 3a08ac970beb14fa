"""Shared test fixtures for the billing test suite."""

import pytest
from uuid import UUID
from pathlib import Path

from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
# override=True ensures .env takes precedence over shell env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from core.audit import AuditLogger
from core.config import BillingConfig
from core.services.billing_service import BillingService
from core.services.hotel_service import HotelService
from core.services.invoice_generator import InvoiceGenerator
from core.services.invoice_renderer import InvoiceRenderer
from core.services.invoice_store import InvoiceStore
from core.services.order_store import OrderStore
from utils.tenant_context import clear_current_hotel_id
from tests.fakes import InMemoryObjectStore, SQLitePostgresClient
from tests.seed import HOTEL_A_ID, HOTEL_B_ID, seed


# =============================================================================
# CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_tenant_context():
    """Ensure clean tenant context before and after each test."""
    clear_current_hotel_id()
    yield
    clear_current_hotel_id()


@pytest.fixture
def hotel_id() -> UUID:
    """The primary test hotel's ID."""
    return HOTEL_A_ID


@pytest.fixture
def hotel_b_id() -> UUID:
    """The secondary test hotel's ID (for isolation tests)."""
    return HOTEL_B_ID


# =============================================================================
# INFRASTRUCTURE FIXTURES
# =============================================================================


@pytest.fixture
def db():
    """Fresh in-memory database seeded with two hotels and their menus."""
    client = SQLitePostgresClient()
    seed(client)
    yield client
    client.close()


@pytest.fixture
def object_store():
    """Empty in-memory object store."""
    return InMemoryObjectStore()


@pytest.fixture
def config() -> BillingConfig:
    """Default config with every retry delay at zero."""
    return BillingConfig(
        order_retry_base_delay=0,
        lookup_retry_base_delay=0,
        invoice_store_base_delay=0,
    )


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def audit(db):
    return AuditLogger(db)


@pytest.fixture
def hotels(db):
    return HotelService(db)


@pytest.fixture
def order_store(db, audit, hotels, config):
    return OrderStore(db, audit, hotels, config)


@pytest.fixture
def sleeps():
    """Records requested sleep durations instead of sleeping."""
    return []


@pytest.fixture
def invoice_store(db, object_store, audit, config, sleeps):
    return InvoiceStore(db, object_store, InvoiceRenderer(), audit, config, sleep=sleeps.append)


@pytest.fixture
def billing_service(hotels, invoice_store, object_store, config):
    return BillingService(hotels, InvoiceGenerator(), invoice_store, object_store, config)
