"""
Per-model rate cards.

Prices are expressed per million tokens, matching how vendors publish them.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific model."""
    model_id: str
    model_name: str
    provider: str
    input_price_per_million: float
    output_price_per_million: float
    currency: str = "USD"


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table keyed by model id."""
    prices: Dict[str, ModelPricing]

    def get_pricing(self, model_id: str) -> ModelPricing:
        """Get pricing for a specific model.

        Args:
            model_id: Model identifier

        Returns:
            ModelPricing for the model

        Raises:
            ValueError: If model is not supported
        """
        if model_id not in self.prices:
            raise ValueError(f"Unsupported model: {model_id}")
        return self.prices[model_id]

    def find(self, model_id: str) -> Optional[ModelPricing]:
        return self.prices.get(model_id)

    def for_provider(self, provider: str) -> Iterable[ModelPricing]:
        return [p for p in self.prices.values() if p.provider == provider]

    def merged_with(self, extra: Iterable[ModelPricing]) -> "PricingTable":
        """Return a new table with ``extra`` entries overriding existing ones."""
        prices = dict(self.prices)
        for pricing in extra:
            prices[pricing.model_id] = pricing
        return PricingTable(prices)


def _entry(model_id, model_name, provider, input_price, output_price):
    return model_id, ModelPricing(
        model_id=model_id,
        model_name=model_name,
        provider=provider,
        input_price_per_million=input_price,
        output_price_per_million=output_price,
    )


# Reference list prices in USD; used when a provider has no models endpoint
DEFAULT_PRICING = PricingTable(dict([
    _entry("gpt-4o", "GPT-4o", "openai", 2.50, 10.00),
    _entry("gpt-4o-mini", "GPT-4o mini", "openai", 0.15, 0.60),
    _entry("gpt-4", "GPT-4", "openai", 30.00, 60.00),
    _entry("gpt-3.5-turbo", "GPT-3.5 Turbo", "openai", 0.50, 1.50),
    _entry("claude-3-opus", "Claude 3 Opus", "anthropic", 15.00, 75.00),
    _entry("claude-3-5-sonnet", "Claude 3.5 Sonnet", "anthropic", 3.00, 15.00),
    _entry("claude-3-haiku", "Claude 3 Haiku", "anthropic", 0.25, 1.25),
    _entry("minimax-m2.1", "MiniMax-M2.1", "opencode", 0.50, 1.50),
    _entry("minimax-m2", "MiniMax-M2", "opencode", 0.40, 1.20),
]))
