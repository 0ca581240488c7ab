"""
Unit tests for the pricing table and currency helpers.

Tests rate lookups, error handling and formatting.
"""

import pytest

from ai_cost_tracker.core.currency import convert_amount, format_currency, get_rate
from ai_cost_tracker.core.pricing import DEFAULT_PRICING, ModelPricing, PricingTable


class TestPricingTable:
    """Test pricing table functionality."""

    def test_get_supported_model(self):
        """Verify pricing retrieval for supported models."""
        gpt4_pricing = DEFAULT_PRICING.get_pricing("gpt-4")
        assert gpt4_pricing.input_price_per_million == 30.00
        assert gpt4_pricing.output_price_per_million == 60.00
        assert gpt4_pricing.currency == "USD"

    def test_unsupported_model_raises_error(self):
        """Verify error for unknown models."""
        with pytest.raises(ValueError, match="Unsupported model: unknown-model"):
            DEFAULT_PRICING.get_pricing("unknown-model")

    def test_find_returns_none_for_unknown(self):
        assert DEFAULT_PRICING.find("unknown-model") is None

    def test_for_provider(self):
        """Only the provider's own models are listed."""
        anthropic = DEFAULT_PRICING.for_provider("anthropic")
        assert {p.model_id for p in anthropic} == {"claude-3-opus", "claude-3-5-sonnet", "claude-3-haiku"}

    def test_merged_with_overrides(self):
        """Extra entries override existing ones without mutating the original."""
        override = ModelPricing("gpt-4", "GPT-4", "openai", 1.0, 2.0)
        extra = ModelPricing("new-model", "New", "custom", 3.0, 4.0)
        merged = DEFAULT_PRICING.merged_with([override, extra])

        assert merged.get_pricing("gpt-4").input_price_per_million == 1.0
        assert merged.get_pricing("new-model").output_price_per_million == 4.0
        assert DEFAULT_PRICING.get_pricing("gpt-4").input_price_per_million == 30.00

    def test_empty_table(self):
        table = PricingTable({})
        assert table.for_provider("openai") == []


class TestCurrency:
    """Test static conversion rates and formatting."""

    def test_same_currency_rate(self):
        assert get_rate("USD", "usd") == 1.0

    def test_direct_and_inverse_rates(self):
        assert get_rate("USD", "CNY") == 7.20
        assert get_rate("CNY", "USD") == pytest.approx(1 / 7.20)

    def test_unknown_pair_is_one(self):
        assert get_rate("USD", "JPY") == 1.0

    def test_convert_amount_rounds(self):
        assert convert_amount(10, "EUR", "USD") == 10.8
        assert convert_amount(100, "CNY", "USD") == 13.89

    def test_format_currency(self):
        """Symbols, thousands separators and two decimals."""
        assert format_currency(1234.5, "USD") == "$1,234.50"
        assert format_currency(0, "CNY") == "¥0.00"
        assert format_currency(-3, "EUR") == "-€3.00"
        assert format_currency(5, "JPY") == "JPY 5.00"
