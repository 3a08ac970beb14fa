"""Billing configuration."""

from pydantic import BaseModel, Field


class BillingConfig(BaseModel):
    """
    Tunables for the order and invoice stores.

    Delays are in seconds, lock TTL in minutes, timeouts in their natural
    units. Secrets (database URL, bucket credentials) live in Vault, not here.
    """

    # Order writes: small attempt count so a conflict is never mistaken for a fault
    order_retry_attempts: int = Field(
        default=3,
        description="Attempts for order reads/writes on transient faults",
        ge=1,
        le=5,
    )
    order_retry_base_delay: float = Field(
        default=0.2,
        description="Linear backoff base for order writes",
        ge=0,
        le=5,
    )

    # Request-handler lookups (hotel info, menu items)
    lookup_retry_attempts: int = Field(
        default=3,
        description="Attempts for request-handler lookups",
        ge=1,
        le=5,
    )
    lookup_retry_base_delay: float = Field(
        default=1.0,
        description="Linear backoff base for lookups",
        ge=0,
        le=5,
    )

    # Invoice dual write
    invoice_store_max_retries: int = Field(
        default=3,
        description="Attempts for the whole row + blob protocol",
        ge=1,
        le=10,
    )
    invoice_store_base_delay: float = Field(
        default=1.0,
        description="Exponential backoff base for invoice storage",
        ge=0,
        le=10,
    )

    # Advisory billing lock
    billing_lock_ttl_minutes: int = Field(
        default=5,
        description="How long a billing lock is held before it lapses",
        ge=1,
        le=60,
    )

    # Object store
    invoice_key_prefix: str = Field(
        default="invoices",
        description="Top-level folder for invoice documents",
        min_length=1,
    )
    presigned_url_expiry_seconds: int = Field(
        default=900,
        description="Lifetime of invoice download links",
        ge=60,
        le=604800,
    )
    object_store_connect_timeout: float = Field(
        default=5.0,
        description="Object store connect timeout in seconds",
        gt=0,
    )
    object_store_read_timeout: float = Field(
        default=30.0,
        description="Object store read timeout in seconds",
        gt=0,
    )

    # Database
    statement_timeout_ms: int = Field(
        default=10000,
        description="Per-statement timeout; expiry is a transient fault",
        ge=100,
    )

    # Invoice content
    ai_invoice_generation: bool = Field(
        default=False,
        description="Ask the LLM for invoice content before falling back",
    )
