# src/llm/adapters/anthropic_adapter.py — v1
"""Anthropic Messages API backend.

There is no JSON mode. When ``json_mode`` is set a short instruction is
appended to the system prompt and the repair parser copes with the rest.
"""

from __future__ import annotations

import time
from typing import Any

import anthropic

from intentphrase.llm.base_client import BaseLLMClient
from intentphrase.llm.models import GenerationRequest, GenerationResponse

JSON_ONLY_INSTRUCTION = "Respond with valid JSON only, without markdown fences or commentary."


class AnthropicAdapter(BaseLLMClient):
    """Generation through ``anthropic.AsyncAnthropic``."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str = "",
        client: Any = None,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._sdk = client

    @property
    def sdk(self) -> Any:
        if self._sdk is None:
            self._sdk = anthropic.AsyncAnthropic(api_key=self._api_key or None)
        return self._sdk

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @property
    def model_name(self) -> str:
        return self._model

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        started = time.monotonic()
        message = await self.sdk.messages.create(**self.request_params(request))
        elapsed_ms = int((time.monotonic() - started) * 1000)

        text = "".join(
            block.text for block in message.content if getattr(block, "type", "") == "text"
        )
        return GenerationResponse(
            text=text,
            provider=self.provider_name,
            model=getattr(message, "model", None) or self._model,
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
            latency_ms=elapsed_ms,
            stop_reason=getattr(message, "stop_reason", None),
        )

    def request_params(self, request: GenerationRequest) -> dict[str, Any]:
        system = [part for part in (request.system,) if part]
        if request.json_mode:
            system.append(JSON_ONLY_INSTRUCTION)
        params: dict[str, Any] = {
            "model": self._model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if system:
            params["system"] = "\n\n".join(system)
        return params
