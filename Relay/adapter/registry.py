from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Type

import httpx

from .anthropic_adapter import AnthropicAdapter
from .base_adapter import ChatAdapter
from .gemini_adapter import GeminiAdapter
from .mock_adapter import MockAdapter
from .ollama_adapter import OllamaAdapter
from .openai_adapter import CustomOpenAIAdapter, DeepSeekAdapter, GroqAdapter, OpenAIAdapter
from ..errors import UnknownProviderError

if TYPE_CHECKING:
    from ..chain import ModelSpec

log = logging.getLogger("relay.adapter")


ADAPTERS: Dict[str, Type[ChatAdapter]] = {
    "openai": OpenAIAdapter,
    "groq": GroqAdapter,
    "deepseek": DeepSeekAdapter,
    "custom": CustomOpenAIAdapter,
    "anthropic": AnthropicAdapter,
    "gemini": GeminiAdapter,
    "ollama": OllamaAdapter,
    "mock": MockAdapter,
    # Add new providers here, e.g. "mistral": MistralAdapter,
}


def available_providers() -> List[str]:
    return sorted(ADAPTERS)


def get_adapter_class(provider_id: str) -> Type[ChatAdapter]:
    """Look up the dialect for a provider id; there is no default dialect."""
    try:
        return ADAPTERS[provider_id.lower()]
    except KeyError:
        raise UnknownProviderError(provider_id, available_providers()) from None


def get_chat_adapter(
    spec: "ModelSpec",
    credentials: Optional[Mapping[str, Mapping[str, Any]]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ChatAdapter:
    """
    Unified entrypoint for creating chat adapters.

    `credentials` maps provider ids to their resolved settings
    (api_key, api_base, timeout, ...). The provider's settings are merged
    with the model name from `spec`; the mapping itself is never mutated.
    """
    adapter_cls = get_adapter_class(spec.provider_id)
    provider_cfg = dict((credentials or {}).get(spec.provider_id) or {})
    provider_cfg["model"] = spec.model_name
    log.debug("creating %s for %s", adapter_cls.__name__, spec)
    return adapter_cls(provider_cfg, transport=transport)
