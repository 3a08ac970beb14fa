"""
HashiCorp Vault client for billing secrets.

AppRole authentication, configured from the environment (VAULT_ADDR,
VAULT_ROLE_ID, VAULT_SECRET_ID, optional VAULT_NAMESPACE). Every path is
scoped under 'billing/'. Secrets are read once per process: the database URL,
the invoice bucket settings and the optional LLM credentials.
"""

import os
import logging
from typing import Dict, Iterable

import hvac
from hvac.exceptions import Forbidden, InvalidPath, InvalidRequest, Unauthorized

logger = logging.getLogger(__name__)

_SECRET_PREFIX = "billing"

# Singleton instance and per-path cache
_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, Dict[str, str]] = {}


def _ensure_vault_client() -> "VaultClient":
    global _vault_client_instance
    if _vault_client_instance is None:
        _vault_client_instance = VaultClient()
    return _vault_client_instance


class VaultClient:
    """Vault client with AppRole auth, env-based config, and fail-fast behavior."""

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_namespace: str | None = None,
        client: hvac.Client | None = None,
    ):
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        self.vault_role_id = os.getenv("VAULT_ROLE_ID")
        self.vault_secret_id = os.getenv("VAULT_SECRET_ID")

        if not self.vault_addr:
            raise ValueError("VAULT_ADDR environment variable is required")
        if not self.vault_role_id or not self.vault_secret_id:
            raise ValueError(
                "VAULT_ROLE_ID and VAULT_SECRET_ID environment variables are required"
            )

        self.client = client or hvac.Client(url=self.vault_addr, namespace=self.vault_namespace)
        self._login()

        if not self.client.is_authenticated():
            raise PermissionError("Vault authentication failed")

        logger.info(f"Vault client initialized: {self.vault_addr}")

    def _login(self) -> None:
        try:
            auth_response = self.client.auth.approle.login(
                role_id=self.vault_role_id,
                secret_id=self.vault_secret_id,
            )
        except (Unauthorized, Forbidden, InvalidRequest) as e:
            logger.error(f"AppRole authentication failed: {e}")
            raise PermissionError(f"AppRole authentication failed: {e}") from e

        self.client.token = auth_response["auth"]["client_token"]
        logger.info("AppRole authentication successful")

    def read_secret(self, path: str) -> Dict[str, str]:
        """
        Read every field of the KV v2 secret at billing/<path> in one request.

        Raises:
            PermissionError: Path not accessible or doesn't exist.
        """
        full_path = f"{_SECRET_PREFIX}/{path}"

        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath as e:
            logger.error(f"Secret path not found: {full_path}")
            raise PermissionError(f"Secret path '{full_path}' not found in Vault") from e
        except (Unauthorized, Forbidden) as e:
            logger.error(f"Access denied to secret {full_path}: {e}")
            raise PermissionError(f"Access denied to secret '{full_path}': {e}") from e

        return response["data"]["data"]

    def get_secret(self, path: str, field: str) -> str:
        """
        Single field of billing/<path>.

        Raises:
            PermissionError: Path not accessible or doesn't exist.
            KeyError: Field not found in secret.
        """
        secret_data = self.read_secret(path)
        if field not in secret_data:
            raise KeyError(
                f"Field '{field}' not found in secret '{_SECRET_PREFIX}/{path}'. "
                f"Available: {', '.join(secret_data)}"
            )
        return secret_data[field]


def _load(path: str, required: Iterable[str], optional: Iterable[str] = ()) -> Dict[str, str | None]:
    """Fields of one secret, read once per process. Optional fields may be absent or blank."""
    if path not in _secret_cache:
        _secret_cache[path] = _ensure_vault_client().read_secret(path)
    secret_data = _secret_cache[path]

    missing = [field for field in required if not secret_data.get(field)]
    if missing:
        raise KeyError(f"Secret '{_SECRET_PREFIX}/{path}' is missing: {', '.join(missing)}")

    result: Dict[str, str | None] = {field: secret_data[field] for field in required}
    for field in optional:
        result[field] = secret_data.get(field) or None
    return result


def get_database_url() -> str:
    """PostgreSQL connection URL."""
    return _load("database", ["url"])["url"]


def get_object_store_config() -> Dict[str, str | None]:
    """
    Invoice bucket settings.

    Returns:
        Dict with keys: bucket, access_key_id, secret_access_key, region,
        endpoint_url. region and endpoint_url are None when unset (AWS
        defaults); endpoint_url is set for S3-compatible stores.
    """
    return _load(
        "object_store",
        required=["bucket", "access_key_id", "secret_access_key"],
        optional=["region", "endpoint_url"],
    )


def get_llm_config() -> Dict[str, str | None]:
    """Anthropic API key and optional model override."""
    return _load("llm", required=["api_key"], optional=["model_name"])
