# src/llm/models.py — v1
"""Generation request/response types shared by every backend adapter."""

from __future__ import annotations

from pydantic import BaseModel, Field

# Stop reasons meaning "hit the output cap" across providers
_LENGTH_STOPS = frozenset({"length", "max_tokens"})


class GenerationRequest(BaseModel):
    """A single-prompt generation call. Phases never hold a conversation."""

    prompt: str
    system: str | None = None
    max_tokens: int = Field(default=3000, ge=1)
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    json_mode: bool = False


class GenerationResponse(BaseModel):
    """Provider-neutral generation output with usage figures."""

    text: str
    provider: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0
    stop_reason: str | None = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def truncated(self) -> bool:
        return self.stop_reason in _LENGTH_STOPS
