"""Wire adapters for the provider APIs the gateway can talk to.

Each adapter turns ``(system_prompt, user_content)`` into one provider's
request format and pulls the reply text back out. Adapters are looked up by
provider id in an ``AdapterRegistry``; ids without a registered adapter use
the chat-completions format, which OpenAI, Ollama, DeepSeek and most
self-hosted servers accept.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import httpx

from ..models import CONFIG_LLM_API_KEY, CONFIG_LLM_API_URL, CONFIG_LLM_MODEL, CONFIG_LLM_PROVIDER
from .errors import LLMDecodeError, LLMHTTPError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderConfig:
    """Provider settings as read from the key/value configuration."""

    provider: str
    api_url: str
    api_key: str
    model: str

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> "ProviderConfig":
        return cls(
            provider=(values.get(CONFIG_LLM_PROVIDER) or "").strip().lower(),
            api_url=(values.get(CONFIG_LLM_API_URL) or "").strip().rstrip("/"),
            api_key=(values.get(CONFIG_LLM_API_KEY) or "").strip(),
            model=(values.get(CONFIG_LLM_MODEL) or "").strip(),
        )


def _send(client: httpx.Client, request: httpx.Request, provider: str) -> Any:
    """Send ``request`` and decode the JSON body.

    Transport errors propagate unchanged.
    """
    response = client.send(request)
    body = response.text
    if not response.is_success:
        raise LLMHTTPError(response.status_code, body, provider=provider)
    try:
        return response.json()
    except ValueError as exc:
        raise LLMDecodeError(f"failed to parse response: {exc}", body=body, provider=provider) from exc


def _as_text(content: Any) -> str:
    """Reply text from a message ``content``: a string or a list of text parts."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part["text"]
            for part in content
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        )
    return ""


class ProviderAdapter(ABC):
    """One provider wire format."""

    name: str = ""

    @abstractmethod
    def chat(self, client: httpx.Client, config: ProviderConfig, system_prompt: str, user_content: str) -> str:
        """Send one system + user exchange and return the reply text."""
        ...

    @abstractmethod
    def list_models(self, client: httpx.Client, config: ProviderConfig) -> List[str]:
        """Return the model ids the provider offers."""
        ...


class ChatCompletionsAdapter(ProviderAdapter):
    """``POST <base>/chat/completions`` with bearer auth."""

    name = "chat-completions"

    def _headers(self, config: ProviderConfig) -> Dict[str, str]:
        return {"Authorization": f"Bearer {config.api_key}"}

    def build_request(self, client: httpx.Client, config: ProviderConfig, system_prompt: str, user_content: str) -> httpx.Request:
        payload = {
            "model": config.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
        }
        return client.build_request(
            "POST",
            f"{config.api_url}/chat/completions",
            headers=self._headers(config),
            json=payload,
        )

    def chat(self, client: httpx.Client, config: ProviderConfig, system_prompt: str, user_content: str) -> str:
        request = self.build_request(client, config, system_prompt, user_content)
        data = _send(client, request, config.provider)
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            raise LLMDecodeError("no response from model", provider=config.provider)
        try:
            content = choices[0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMDecodeError(f"unexpected response shape: {exc!r}", body=str(data), provider=config.provider) from exc
        return _as_text(content)

    def list_models(self, client: httpx.Client, config: ProviderConfig) -> List[str]:
        request = client.build_request("GET", f"{config.api_url}/models", headers=self._headers(config))
        data = _send(client, request, config.provider)
        entries = data.get("data") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise LLMDecodeError("model list missing 'data'", body=str(data), provider=config.provider)
        return [entry["id"] for entry in entries if isinstance(entry, dict) and entry.get("id")]


class GenerativeContentAdapter(ProviderAdapter):
    """Google AI Studio ``generateContent`` format; the key travels as a query parameter."""

    name = "generative-content"

    def build_request(self, client: httpx.Client, config: ProviderConfig, system_prompt: str, user_content: str) -> httpx.Request:
        payload: Dict[str, Any] = {
            "contents": [
                {"role": "user", "parts": [{"text": user_content}]},
            ],
        }
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}
        return client.build_request(
            "POST",
            f"{config.api_url}/v1beta/models/{config.model}:generateContent",
            params={"key": config.api_key},
            json=payload,
        )

    def chat(self, client: httpx.Client, config: ProviderConfig, system_prompt: str, user_content: str) -> str:
        request = self.build_request(client, config, system_prompt, user_content)
        data = _send(client, request, config.provider)
        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not candidates:
            raise LLMDecodeError("no response from model", provider=config.provider)
        try:
            parts = candidates[0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            parts = None
        if not parts:
            raise LLMDecodeError("no response from model", provider=config.provider)
        return _as_text(parts[:1])

    def list_models(self, client: httpx.Client, config: ProviderConfig) -> List[str]:
        request = client.build_request("GET", f"{config.api_url}/v1beta/models", params={"key": config.api_key})
        data = _send(client, request, config.provider)
        entries = data.get("models") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise LLMDecodeError("model list missing 'models'", body=str(data), provider=config.provider)
        names = [entry.get("name", "") for entry in entries if isinstance(entry, dict)]
        return [name.split("/", 1)[1] if name.startswith("models/") else name for name in names if name]


class AdapterRegistry:
    """Maps provider ids to adapters, with a fallback for unknown ids."""

    def __init__(self, default: ProviderAdapter, adapters: Optional[Mapping[str, ProviderAdapter]] = None):
        self._default = default
        self._adapters: Dict[str, ProviderAdapter] = {}
        for provider_id, adapter in (adapters or {}).items():
            self.register(provider_id, adapter)

    def register(self, provider_id: str, adapter: ProviderAdapter) -> None:
        self._adapters[provider_id.strip().lower()] = adapter

    def resolve(self, provider_id: str) -> ProviderAdapter:
        return self._adapters.get((provider_id or "").strip().lower(), self._default)

    def providers(self) -> List[str]:
        return sorted(self._adapters)


def default_registry() -> AdapterRegistry:
    chat_completions = ChatCompletionsAdapter()
    return AdapterRegistry(
        default=chat_completions,
        adapters={
            "openai": chat_completions,
            "ollama": chat_completions,
            "google": GenerativeContentAdapter(),
        },
    )
