# src/llm/base_client.py — v1
"""Generation backend interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from intentphrase.llm.models import GenerationRequest, GenerationResponse


class BaseLLMClient(ABC):
    """A model endpoint that turns one prompt into text.

    Adapters let SDK errors propagate untouched; the executor classifies them.
    """

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        """Run one generation call."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (openai, anthropic)."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier, also the pricing key."""
