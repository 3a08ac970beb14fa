"""Application factory.

The process entry point builds the shared clients once (build_services),
hands them to create_app, and the app closes the database pool on shutdown.

    services = build_services()
    app = create_app(services, verifier=my_identity_service_verifier)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.base import success_response
from api.billing import create_billing_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from api.orders import create_orders_router
from auth.security_middleware import TenantAuthMiddleware
from auth.types import TokenVerifier
from clients.llm_client import LLMClient
from clients.object_store_client import ObjectStoreClient
from clients.postgres_client import PostgresClient
from clients.vault_client import get_database_url, get_object_store_config
from core.audit import AuditLogger
from core.config import BillingConfig
from core.services.billing_service import BillingService
from core.services.hotel_service import HotelService
from core.services.invoice_generator import InvoiceGenerator
from core.services.invoice_renderer import InvoiceRenderer
from core.services.invoice_store import InvoiceStore
from core.services.order_store import OrderStore

logger = logging.getLogger(__name__)


def build_services(config: BillingConfig | None = None) -> dict:
    """Construct process-wide clients from Vault secrets and wire the stores."""
    config = config or BillingConfig()

    postgres = PostgresClient(get_database_url(), statement_timeout_ms=config.statement_timeout_ms)

    store_config = get_object_store_config()
    object_store = ObjectStoreClient(
        bucket=store_config["bucket"],
        region=store_config["region"],
        endpoint_url=store_config["endpoint_url"],
        access_key_id=store_config["access_key_id"],
        secret_access_key=store_config["secret_access_key"],
        connect_timeout=config.object_store_connect_timeout,
        read_timeout=config.object_store_read_timeout,
    )

    audit = AuditLogger(postgres)
    hotels = HotelService(postgres)
    llm = LLMClient() if config.ai_invoice_generation else None
    invoices = InvoiceStore(postgres, object_store, InvoiceRenderer(), audit, config)

    return {
        "postgres": postgres,
        "orders": OrderStore(postgres, audit, hotels, config),
        "billing": BillingService(hotels, InvoiceGenerator(llm), invoices, object_store, config),
    }


def create_app(services: dict, verifier: TokenVerifier) -> FastAPI:
    """FastAPI app with auth middleware, error handlers, and order/billing routes."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        postgres = services.get("postgres")
        if postgres is not None:
            postgres.close()
            logger.info("Connection pool closed")

    app = FastAPI(title="Hotel Billing", lifespan=lifespan)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(TenantAuthMiddleware, verifier=verifier)
    register_error_handlers(app)

    @app.get("/health")
    def health():
        return success_response({"status": "ok"}).model_dump(mode="json")

    app.include_router(create_orders_router(services))
    app.include_router(create_billing_router(services))

    return app
