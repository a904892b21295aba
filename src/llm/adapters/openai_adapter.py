# src/llm/adapters/openai_adapter.py — v1
"""OpenAI chat-completions backend.

``json_mode`` maps to ``response_format={"type": "json_object"}``, which
requires the prompt to ask for a JSON object (see phrase_generation.txt).
"""

from __future__ import annotations

import time
from typing import Any

import openai

from intentphrase.llm.base_client import BaseLLMClient
from intentphrase.llm.models import GenerationRequest, GenerationResponse


class OpenAIAdapter(BaseLLMClient):
    """Generation through ``openai.AsyncOpenAI``.

    Args:
        model: Chat model name.
        api_key: OpenAI key. Empty falls back to OPENAI_API_KEY in the SDK.
        client: Pre-built SDK client (tests, proxies).
    """

    def __init__(
        self,
        model: str = "gpt-4o",
        api_key: str = "",
        client: Any = None,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._sdk = client

    @property
    def sdk(self) -> Any:
        if self._sdk is None:
            self._sdk = openai.AsyncOpenAI(api_key=self._api_key or None)
        return self._sdk

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        started = time.monotonic()
        completion = await self.sdk.chat.completions.create(**self.request_params(request))
        elapsed_ms = int((time.monotonic() - started) * 1000)

        choice = completion.choices[0]
        usage = completion.usage
        return GenerationResponse(
            text=choice.message.content or "",
            provider=self.provider_name,
            model=self._model,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            latency_ms=elapsed_ms,
            stop_reason=choice.finish_reason,
        )

    def request_params(self, request: GenerationRequest) -> dict[str, Any]:
        chat = [{"role": "user", "content": request.prompt}]
        if request.system:
            chat.insert(0, {"role": "system", "content": request.system})
        params: dict[str, Any] = {
            "model": self._model,
            "messages": chat,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
        }
        if request.json_mode:
            params["response_format"] = {"type": "json_object"}
        return params
