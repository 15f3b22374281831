"""Cost accounting for generation usage.

Responsibilities:
- Map model ids and token counts to estimated USD cost via a static price table.
- Accumulate run-level totals for reporting.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from ..llm.limits import lookup_model_value
from ..models.datatypes import CostBreakdown
from .logger import RunLogger


@dataclass(frozen=True, slots=True)
class ModelPricing:
    """USD price per million input and output tokens."""

    input_per_million: float
    output_per_million: float


MODEL_PRICING: dict[str, ModelPricing] = {
    "gpt-4o": ModelPricing(2.5, 10.0),
    "gpt-4o-mini": ModelPricing(0.15, 0.6),
    "o1": ModelPricing(15.0, 60.0),
    "o3-mini": ModelPricing(1.1, 4.4),
    "gpt-4o-2024-08-06": ModelPricing(2.5, 10.0),
    "gpt-4o-mini-2024-07-18": ModelPricing(0.15, 0.6),
    "gpt-4.5-preview": ModelPricing(75.0, 150.0),
    "claude-3-opus": ModelPricing(15.0, 75.0),
    "claude-3-sonnet": ModelPricing(3.0, 15.0),
    "claude-3-haiku": ModelPricing(0.25, 1.25),
    "claude-3-5-sonnet": ModelPricing(3.0, 15.0),
    "claude-3-7-sonnet": ModelPricing(3.0, 15.0),
}


@dataclass(slots=True)
class CostTracker:
    """Collect and summarize run-level cost counters."""

    pricing: Mapping[str, ModelPricing] = field(default_factory=lambda: dict(MODEL_PRICING))
    run_logger: RunLogger | None = None
    total_cost_usd: float = 0.0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    call_count: int = 0
    unpriced_models: set[str] = field(default_factory=set)

    def estimate(self, model: str, input_tokens: int, output_tokens: int) -> CostBreakdown:
        """Return the cost of one call; unknown models cost nothing and are logged."""

        price = lookup_model_value(self.pricing, model)
        if price is None:
            if model not in self.unpriced_models:
                self.unpriced_models.add(model)
                (self.run_logger or RunLogger(configure=False)).log_missing_pricing(model)
            return CostBreakdown()
        return CostBreakdown(
            input_cost=max(0, input_tokens) / 1_000_000 * price.input_per_million,
            output_cost=max(0, output_tokens) / 1_000_000 * price.output_per_million,
        )

    def record(self, model: str, input_tokens: int, output_tokens: int) -> CostBreakdown:
        """Estimate one call and add it to the run totals."""

        breakdown = self.estimate(model, input_tokens, output_tokens)
        self.total_cost_usd += breakdown.total_cost
        self.total_input_tokens += max(0, input_tokens)
        self.total_output_tokens += max(0, output_tokens)
        self.call_count += 1
        return breakdown

    def summary(self) -> dict[str, float | int]:
        """Return a summary dictionary for reporting."""

        return {
            "calls": self.call_count,
            "input_tokens": self.total_input_tokens,
            "output_tokens": self.total_output_tokens,
            "total_cost_usd": self.total_cost_usd,
        }
