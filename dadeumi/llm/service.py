"""Generation service contract.

Responsibilities:
- Define the provider-neutral request/response shapes used by the step executor.
- Identify which provider family serves a model id.

Key types:
- `GenerationOptions`, `GenerationResponse`: request parameters and usage-bearing result.
- `GenerationService`: protocol implemented by providers, routers, and test fakes.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from ..models.datatypes import ConversationMessage


@dataclass(frozen=True, slots=True)
class GenerationOptions:
    """Per-call generation parameters."""

    model: str
    max_output_tokens: int
    temperature: float = 0.7
    reasoning_effort: str | None = None


@dataclass(frozen=True, slots=True)
class GenerationResponse:
    """Generated text with usage and timing metadata."""

    content: str
    input_tokens: int
    output_tokens: int
    model: str
    duration_seconds: float = 0.0


class GenerationService(Protocol):
    """Protocol for turning a message list into generated text."""

    def generate(
        self,
        messages: Sequence[ConversationMessage],
        options: GenerationOptions,
    ) -> GenerationResponse:
        """Return generated content or raise `GenerationError`."""


def is_anthropic_model(model: str) -> bool:
    """Return whether a model id belongs to the Anthropic family."""

    normalized = model.strip().lower()
    return normalized.startswith("claude") or "claude-" in normalized or "anthropic" in normalized
