"""
Unit tests for pricing calculations.

Tests rate resolution order, cost accuracy, and zero-token behavior.
"""

import pytest
from decimal import Decimal

from statusline_cost.core.pricing import (
    PRICING_TABLE,
    PricingTable,
    ModelPricing,
    calculate_cost,
    calculate_entry_cost,
    model_price,
)
from statusline_cost.core.token_counter import TokenUsage


class TestTokenUsage:
    """Test TokenUsage dataclass."""
    
    def test_defaults_are_zero(self):
        """Verify every token kind defaults to zero."""
        usage = TokenUsage()
        assert (
            usage.input_tokens,
            usage.output_tokens,
            usage.cache_write_tokens,
            usage.cache_read_tokens,
        ) == (0, 0, 0, 0)


class TestModelPrice:
    """Test pricing table resolution."""
    
    @pytest.mark.parametrize("model,expected", [
        ("claude-opus-4-5-20251101", ("5.0", "25.0", "6.25", "0.50")),
        ("claude-opus-4-6", ("5.0", "25.0", "6.25", "0.50")),
        ("claude-sonnet-4-5-20251101", ("3.0", "15.0", "3.75", "0.30")),
        ("claude-sonnet-4-5-20250929", ("3.0", "15.0", "3.75", "0.30")),
        ("claude-sonnet-4-20250514", ("3.0", "15.0", "3.75", "0.30")),
        ("claude-haiku-4-5-20251101", ("1.0", "5.0", "1.25", "0.10")),
        ("claude-haiku-4-5-20251001", ("1.0", "5.0", "1.25", "0.10")),
        ("claude-opus-4-1-20250805", ("15.0", "75.0", "18.75", "1.50")),
    ])
    def test_known_models(self, model, expected):
        """Verify exact-match rates for known model identifiers."""
        pricing = model_price(model)
        assert (
            pricing.input_per_million,
            pricing.output_per_million,
            pricing.cache_write_per_million,
            pricing.cache_read_per_million,
        ) == tuple(Decimal(rate) for rate in expected)
    
    def test_prefix_match_for_future_model(self):
        """Verify an unlisted model version resolves by family prefix."""
        pricing = model_price("claude-opus-4-7-20260301")
        assert pricing.input_per_million == Decimal("5.0")
        assert pricing.output_per_million == Decimal("25.0")
    
    def test_legacy_family_prefix(self):
        """Verify claude-3 families resolve to their own rate cards."""
        assert model_price("claude-3-haiku-20990101").input_per_million == Decimal("0.25")
        assert model_price("claude-3-5-haiku-20990101").input_per_million == Decimal("0.80")
    
    def test_unknown_model_returns_default_tier(self):
        """Verify unknown models fall back to the sonnet-tier default."""
        pricing = model_price("claude-unknown-99")
        assert pricing.input_per_million == Decimal("3.0")
        assert pricing.output_per_million == Decimal("15.0")
    
    def test_non_claude_model_returns_default_tier(self):
        """Verify lookup is total for arbitrary identifiers."""
        assert model_price("gpt-4") == PRICING_TABLE.default
        assert model_price("") == PRICING_TABLE.default
    
    def test_longest_prefix_wins_regardless_of_declared_order(self):
        """Verify the most specific prefix is checked first."""
        cheap = ModelPricing(Decimal("1"), Decimal("1"), Decimal("1"), Decimal("1"))
        pricey = ModelPricing(Decimal("9"), Decimal("9"), Decimal("9"), Decimal("9"))
        table = PricingTable(
            prices={},
            prefixes=(("model", cheap), ("model-pro", pricey)),
            default=cheap,
        )
        assert table.get_pricing("model-pro-2") == pricey
        assert table.get_pricing("model-lite") == cheap
    
    def test_pricing_table_is_read_only(self):
        """Verify the exact-match table cannot be mutated."""
        with pytest.raises(TypeError):
            PRICING_TABLE.prices["claude-new"] = PRICING_TABLE.default


class TestCostCalculation:
    """Test cost calculation accuracy."""
    
    def test_entry_cost_all_token_kinds(self):
        """Verify all four rates are applied."""
        cost = calculate_entry_cost(1000, 500, 200, 10000, "claude-opus-4-5-20251101")
        # (1000*5 + 500*25 + 200*6.25 + 10000*0.50) / 1M = 0.02375
        assert cost == pytest.approx(0.02375)
    
    def test_zero_tokens_cost_exactly_zero(self):
        """Verify zero tokens cost zero for any model."""
        for model in ("claude-opus-4-5-20251101", "claude-unknown", "gpt-4"):
            assert calculate_entry_cost(0, 0, 0, 0, model) == 0.0
    
    def test_opus_input_and_output(self):
        """Verify opus cost for input and output only."""
        usage = TokenUsage(input_tokens=1000, output_tokens=500)
        assert calculate_cost("claude-opus-4-5-20251101", usage) == pytest.approx(0.0175)
    
    def test_haiku_input_and_output(self):
        """Verify haiku cost for input and output only."""
        usage = TokenUsage(input_tokens=2000, output_tokens=100)
        assert calculate_cost("claude-haiku-4-5-20251001", usage) == pytest.approx(0.0025)
    
    def test_cache_read_only_cost(self):
        """Verify cache reads are billed at the cache-read rate."""
        cost = calculate_entry_cost(0, 0, 0, 1_000_000, "claude-sonnet-4-20250514")
        assert cost == pytest.approx(0.30)
    
    def test_no_rounding_applied(self):
        """Verify tiny costs are not rounded to cents."""
        cost = calculate_entry_cost(1, 0, 0, 0, "claude-haiku-4-5-20251001")
        assert cost == pytest.approx(0.000001)
