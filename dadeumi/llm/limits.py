"""Per-model context and output token limits.

Responsibilities:
- Resolve model-keyed table values by exact name, then longest known prefix.
- Clamp requested output token budgets to what a model accepts.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TypeVar

_Value = TypeVar("_Value")

DEFAULT_CONTEXT_LIMIT = 16384

MODEL_CONTEXT_LIMITS: dict[str, int] = {
    "gpt-4.5-preview": 128000,
    "gpt-4o": 128000,
    "gpt-4-turbo": 128000,
    "gpt-4-32k": 32000,
    "gpt-4": 8192,
    "gpt-3.5-turbo-16k": 16384,
    "gpt-3.5-turbo": 4096,
    "claude-3": 200000,
}

MODEL_OUTPUT_LIMITS: dict[str, int] = {
    "gpt-4.5-preview": 16384,
    "gpt-4o": 16384,
    "gpt-4o-mini": 16384,
    "claude-3-7-sonnet-latest": 128000,
}


def lookup_model_value(table: Mapping[str, _Value], model: str) -> _Value | None:
    """Return the table value for `model` by exact key, else the longest matching prefix."""

    if model in table:
        return table[model]
    matches = [key for key in table if model.startswith(key)]
    if not matches:
        return None
    return table[max(matches, key=len)]


def context_limit_for(model: str) -> int:
    """Return the context window for a model, defaulting conservatively."""

    limit = lookup_model_value(MODEL_CONTEXT_LIMITS, model)
    return DEFAULT_CONTEXT_LIMIT if limit is None else limit


def clamp_max_output_tokens(
    model: str, requested: int, *, explicit: bool
) -> tuple[int, str | None]:
    """Fit a requested output budget to the model's known limit.

    Returns:
        The effective budget and an optional warning message. Defaults are clamped
        silently to the limit; explicit values above it are kept and only warned about.
    """

    limit = lookup_model_value(MODEL_OUTPUT_LIMITS, model)
    if limit is None or requested <= limit:
        return requested, None
    if explicit:
        return requested, (
            f"Requested max output tokens ({requested}) exceed the known limit of "
            f"`{model}` ({limit}); the provider may reject the request."
        )
    return limit, (
        f"Max output tokens lowered from {requested} to {limit}, the limit of `{model}`."
    )
