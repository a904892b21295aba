# src/llm/client_factory.py — v1
"""Build generation clients by provider name.

Each provider maps to a builder ``(model, settings) -> BaseLLMClient`` that
knows which settings field holds its key. Custom providers (an
OpenAI-compatible gateway, a local model server) are added with
``register_provider``.
"""

from __future__ import annotations

import logging
from typing import Callable

from intentphrase.config.settings import Settings
from intentphrase.llm.adapters.anthropic_adapter import AnthropicAdapter
from intentphrase.llm.adapters.openai_adapter import OpenAIAdapter
from intentphrase.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

ClientBuilder = Callable[[str, Settings], BaseLLMClient]


class UnsupportedProviderError(ValueError):
    """No builder is registered for the requested provider."""

    kind = "configuration"


def _build_openai(model: str, settings: Settings) -> BaseLLMClient:
    return OpenAIAdapter(model=model, api_key=settings.openai_api_key)


def _build_anthropic(model: str, settings: Settings) -> BaseLLMClient:
    return AnthropicAdapter(model=model, api_key=settings.anthropic_api_key)


_BUILDERS: dict[str, ClientBuilder] = {
    "openai": _build_openai,
    "anthropic": _build_anthropic,
}


def create_llm_client(provider: str, model: str, settings: Settings) -> BaseLLMClient:
    """Instantiate the client for ``provider:model``.

    Raises:
        UnsupportedProviderError: Unknown provider.
    """
    builder = _BUILDERS.get(provider)
    if builder is None:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider {provider!r} (known: {', '.join(sorted(_BUILDERS))})"
        )
    logger.debug("Building %s client for model %s", provider, model)
    return builder(model, settings)


def register_provider(name: str, builder: ClientBuilder) -> None:
    """Add or replace the builder for a provider name."""
    _BUILDERS[name] = builder
    logger.info("Registered LLM provider %s", name)
