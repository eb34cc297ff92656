from __future__ import annotations

import logging
import time
from typing import List, Optional

import httpx

from ..store import ContentStore
from .adapters import AdapterRegistry, ProviderConfig, default_registry
from .errors import LLMConfigError

logger = logging.getLogger(__name__)

# Message sent by test_connection
PROBE_MESSAGE = "Hi"

_FIELD_LABELS = {
    "api_url": "API base URL",
    "api_key": "API key",
    "model": "model",
}


class ModelGateway:
    """Uniform chat access to the configured language-model provider.

    Provider settings are read from the store on every call, so a settings
    change applies to the next request without restarting anything.
    """

    def __init__(
        self,
        store: ContentStore,
        timeout: float = 120.0,
        registry: Optional[AdapterRegistry] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._store = store
        self._registry = registry or default_registry()
        self._client = httpx.Client(timeout=timeout, transport=transport)

    @property
    def registry(self) -> AdapterRegistry:
        return self._registry

    def close(self) -> None:
        self._client.close()

    def get_config(self) -> ProviderConfig:
        return ProviderConfig.from_mapping(self._store.get_config_map())

    def get_prompt(self, key: str) -> str:
        return self._store.get_config_value(key)

    @staticmethod
    def _require(config: ProviderConfig, *fields: str) -> None:
        for name in fields:
            if not getattr(config, name):
                raise LLMConfigError(
                    f"{_FIELD_LABELS[name]} is not configured",
                    field=name,
                    provider=config.provider,
                )

    def chat(self, system_prompt: str, user_content: str) -> str:
        config = self.get_config()
        self._require(config, "api_url", "model")
        adapter = self._registry.resolve(config.provider)

        start = time.monotonic()
        text = adapter.chat(self._client, config, system_prompt, user_content)
        logger.debug(
            "LLM %s (%s/%s) replied in %dms",
            adapter.name,
            config.provider or "default",
            config.model,
            int((time.monotonic() - start) * 1000),
        )
        return text

    # Filtering and summarizing only differ in the system prompt
    def classify(self, system_prompt: str, user_content: str) -> str:
        return self.chat(system_prompt, user_content)

    def summarize(self, system_prompt: str, user_content: str) -> str:
        return self.chat(system_prompt, user_content)

    def list_models(self) -> List[str]:
        config = self.get_config()
        self._require(config, "api_url")
        return self._registry.resolve(config.provider).list_models(self._client, config)

    def test_connection(self) -> str:
        """Validate the configuration, then make one live call."""
        config = self.get_config()
        self._require(config, "api_url", "api_key", "model")
        return self.chat("", PROBE_MESSAGE)
