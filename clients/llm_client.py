"""
Anthropic client for optional invoice formatting.

One system prompt, one user prompt, text back. Calls carry a request timeout
and a single SDK retry; any API failure surfaces as LLMError so the invoice
generator can fall back to its deterministic result.
"""

import logging

import anthropic
from pydantic import BaseModel

from clients.vault_client import get_llm_config

logger = logging.getLogger(__name__)


class LLMResponse(BaseModel):
    """Text answer plus token usage, when the API reports it."""

    content: str
    model: str | None = None
    usage: dict[str, int] | None = None


class LLMError(Exception):
    """LLM call failed or timed out."""


class LLMClient:
    """Anthropic Messages API client."""

    DEFAULT_MODEL = "claude-haiku-4-5"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float = 10.0,
        client: anthropic.Anthropic | None = None,
    ):
        """
        Args:
            api_key: Anthropic API key. If None, fetched from Vault.
            model: Model name. If None, uses Vault's model_name or DEFAULT_MODEL.
            timeout: Per-request timeout in seconds
            client: Preconfigured SDK client
        """
        if client is None and api_key is None:
            config = get_llm_config()
            api_key = config["api_key"]
            model = model or config["model_name"]

        self.model = model or self.DEFAULT_MODEL
        self._client = client or anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=1)
        logger.info(f"LLM client initialized with model: {self.model}")

    def generate(
        self,
        system: str,
        prompt: str,
        max_tokens: int = 2048,
        temperature: float = 0.0,
    ) -> LLMResponse:
        """
        Single-turn completion.

        Raises:
            LLMError: If the API call fails
        """
        try:
            response = self._client.messages.create(
                model=self.model,
                system=system,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise LLMError(f"LLM API call failed: {e}") from e

        text = "".join(block.text for block in response.content if block.type == "text")
        if response.stop_reason == "max_tokens":
            logger.warning(f"LLM response truncated at {max_tokens} tokens")

        usage = None
        if response.usage:
            usage = {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            }

        return LLMResponse(content=text, model=response.model, usage=usage)
