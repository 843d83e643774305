"""Token pricing and cost calculation.

Rates are USD per million tokens.  Models missing from the table are
charged nothing and logged, so an unpriced model never blocks an analysis.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from impact_analysis.domain.values import CostCalculation, ModelPricing, UsageRecord
from impact_analysis.infrastructure.llm.models import LLMModels

logger = logging.getLogger(__name__)


DEFAULT_PRICING: tuple[ModelPricing, ...] = (
    ModelPricing(LLMModels.GPT_4O_MINI, 0.15, 0.60, "OpenAI"),
    ModelPricing(LLMModels.GPT_4O, 5.00, 15.00, "OpenAI"),
    ModelPricing(LLMModels.GPT_4_TURBO, 10.00, 30.00, "OpenAI"),
    ModelPricing(LLMModels.GPT_3_5_TURBO, 0.50, 1.50, "OpenAI"),
    ModelPricing(LLMModels.CLAUDE_3_HAIKU, 0.80, 4.00, "Anthropic"),
    ModelPricing(LLMModels.CLAUDE_3_SONNET, 3.00, 15.00, "Anthropic"),
    ModelPricing(LLMModels.CLAUDE_3_7_SONNET, 3.00, 15.00, "Anthropic"),
    ModelPricing(LLMModels.CLAUDE_4_SONNET, 3.00, 15.00, "Anthropic"),
    ModelPricing(LLMModels.CLAUDE_3_OPUS, 15.00, 75.00, "Anthropic"),
    ModelPricing(LLMModels.CLAUDE_4_OPUS, 15.00, 75.00, "Anthropic"),
)


class PricingTable:
    """Lookup of per-model rates with cost calculation helpers.

    Parameters
    ----------
    pricing:
        Rates to use.  Defaults to :data:`DEFAULT_PRICING`.
    """

    def __init__(self, pricing: Iterable[ModelPricing] | None = None) -> None:
        entries = DEFAULT_PRICING if pricing is None else tuple(pricing)
        self._pricing: dict[str, ModelPricing] = {p.model_name: p for p in entries}

    def get_pricing(self, model_name: str) -> ModelPricing | None:
        return self._pricing.get(model_name)

    def all_pricing(self) -> list[ModelPricing]:
        return list(self._pricing.values())

    def calculate_cost(
        self,
        input_tokens: int,
        output_tokens: int,
        model_name: str,
    ) -> CostCalculation:
        """Cost of a single call with the given token counts."""
        pricing = self._pricing.get(model_name)
        if pricing is None:
            logger.warning("PricingTable: unknown model %s, charging 0", model_name)
            return CostCalculation(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
                cost=0.0,
                provider="Unknown",
                model=model_name,
            )

        input_cost = input_tokens / 1_000_000 * pricing.input_price_per_million
        output_cost = output_tokens / 1_000_000 * pricing.output_price_per_million
        return CostCalculation(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            cost=input_cost + output_cost,
            provider=pricing.provider,
            model=model_name,
        )


def calculate_total_cost(records: Iterable[UsageRecord]) -> float:
    """Sum of ``cost`` over *records*."""
    return sum(r.cost for r in records)
