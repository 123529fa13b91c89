"""
brain/ollama_client.py — Ollama Local Adapter

Supports any model pulled into a local Ollama server (llama3.1, qwen2.5,
deepseek-r1, mistral, ...). Generation goes through the OpenAI-compatible
endpoint Ollama exposes at /v1/, so we reuse OpenAIClient pointed at the
local host. Model listing and health use the native /api/tags endpoint.

No API key required. The router treats this provider as always available;
a server that is not running surfaces as a ProviderConnectionError.
"""

from __future__ import annotations

import httpx

from sidekick.brain.llm_client import BaseLLMClient, ProviderConnectionError, ProviderRequestError
from sidekick.brain.openai_client import OpenAIClient
from sidekick.brain.types import GenerationResult, LLMConfig, Message, Provider
from sidekick.observability.logger import get_logger

log = get_logger(__name__)

DEFAULT_OLLAMA_URL = "http://localhost:11434"


class OllamaClient(BaseLLMClient):
    """
    Ollama adapter for locally served models.

    base_url is the server root (e.g. http://localhost:11434), without /v1.
    """

    provider = Provider.OLLAMA

    def __init__(self, base_url: str = DEFAULT_OLLAMA_URL, health_timeout: float = 5.0):
        root = base_url.rstrip("/")
        if root.endswith("/v1"):
            root = root[: -len("/v1")]
        super().__init__(api_key="ollama", base_url=root)
        self._health_timeout = health_timeout
        self._inner = OpenAIClient(api_key="ollama", base_url=f"{root}/v1", provider=Provider.OLLAMA)

    async def generate(
        self,
        messages: list[Message],
        config: LLMConfig,
    ) -> GenerationResult:
        log.debug("ollama.generate.start", model=config.model)
        try:
            return await self._inner.generate(messages, config)
        except ProviderConnectionError as e:
            raise ProviderConnectionError(
                f"Cannot connect to Ollama at {self.base_url}. "
                f"Make sure Ollama is running: ollama serve",
                provider="ollama",
            ) from e
        except ProviderRequestError as e:
            if e.status_code == 404:
                raise ProviderRequestError(
                    f'Model "{config.model}" not found. Pull it first: ollama pull {config.model}',
                    provider="ollama", status_code=404, body=e.body,
                ) from e
            raise

    async def health_check(self) -> bool:
        """Check if the Ollama server is running and reachable."""
        try:
            await self._fetch_tags()
            return True
        except (httpx.HTTPError, ValueError) as e:
            log.warning("ollama.health_check.failed", base_url=self.base_url, error=str(e))
            return False

    async def list_models(self) -> list[str]:
        """Return names of all models available on the Ollama server."""
        try:
            data = await self._fetch_tags()
        except (httpx.HTTPError, ValueError) as e:
            log.warning("ollama.list_models.failed", error=str(e))
            return []
        return [m.get("name", "") for m in data.get("models", []) if m.get("name")]

    async def missing_models(self, required: list[str]) -> list[str]:
        """
        Return the subset of `required` not present on the server.
        Tags are ignored when comparing (llama3.1:8b matches llama3.1:latest).
        """
        available = await self.list_models()
        available_bases = {name.split(":")[0] for name in available}
        return [
            model for model in required
            if model not in available and model.split(":")[0] not in available_bases
        ]

    async def _fetch_tags(self) -> dict:
        async with httpx.AsyncClient(timeout=self._health_timeout) as client:
            response = await client.get(f"{self.base_url}/api/tags")
            response.raise_for_status()
            return response.json()
