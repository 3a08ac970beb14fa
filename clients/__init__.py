# Infrastructure clients
from clients.vault_client import (
    VaultClient,
    get_database_url,
    get_object_store_config,
    get_llm_config,
)
from clients.postgres_client import PostgresClient, Transaction
from clients.object_store_client import ObjectStoreClient
from clients.llm_client import LLMClient, LLMError, LLMResponse
