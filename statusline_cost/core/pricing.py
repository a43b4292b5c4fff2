"""
Pricing calculations and rate management.

Maps a model identifier to its rate card and prices token usage. Rates are
expressed in USD per million tokens.
"""

from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Tuple

from .token_counter import TokenUsage

_ONE_MILLION = Decimal("1000000")


@dataclass(frozen=True)
class ModelPricing:
    """Per-million-token pricing for a model or model family."""
    input_per_million: Decimal
    output_per_million: Decimal
    cache_write_per_million: Decimal
    cache_read_per_million: Decimal


def _rates(input_rate: str, output_rate: str, cache_write: str, cache_read: str) -> ModelPricing:
    return ModelPricing(
        input_per_million=Decimal(input_rate),
        output_per_million=Decimal(output_rate),
        cache_write_per_million=Decimal(cache_write),
        cache_read_per_million=Decimal(cache_read),
    )


OPUS_LEGACY = _rates("15.00", "75.00", "18.75", "1.50")
OPUS = _rates("5.00", "25.00", "6.25", "0.50")
SONNET = _rates("3.00", "15.00", "3.75", "0.30")
HAIKU = _rates("1.00", "5.00", "1.25", "0.10")
HAIKU_3_5 = _rates("0.80", "4.00", "1.00", "0.08")
HAIKU_3 = _rates("0.25", "1.25", "0.30", "0.03")


@dataclass(frozen=True)
class PricingTable:
    """Read-only pricing table.

    Resolution order:
    1. Exact model identifier
    2. First matching prefix; prefixes are kept longest-first so the most
       specific family wins
    3. The default tier, so every lookup resolves
    """
    prices: Mapping[str, ModelPricing]
    prefixes: Tuple[Tuple[str, ModelPricing], ...]
    default: ModelPricing

    def __post_init__(self):
        """Order prefixes longest-first; ties keep their declared order."""
        ordered = tuple(sorted(self.prefixes, key=lambda item: -len(item[0])))
        object.__setattr__(self, "prefixes", ordered)

    def get_pricing(self, model: str) -> ModelPricing:
        """Get pricing for a model identifier.

        Args:
            model: Model identifier

        Returns:
            ModelPricing for the model; never raises
        """
        pricing = self.prices.get(model)
        if pricing is not None:
            return pricing
        for prefix, prefix_pricing in self.prefixes:
            if model.startswith(prefix):
                return prefix_pricing
        return self.default


# Fixed pricing table - no dynamic fetching
PRICING_TABLE = PricingTable(
    prices=MappingProxyType({
        "claude-opus-4-6": OPUS,
        "claude-opus-4-5-20251101": OPUS,
        "claude-opus-4-1-20250805": OPUS_LEGACY,
        "claude-opus-4-20250514": OPUS_LEGACY,
        "claude-sonnet-4-5-20251101": SONNET,
        "claude-sonnet-4-5-20250929": SONNET,
        "claude-sonnet-4-20250514": SONNET,
        "claude-haiku-4-5-20251101": HAIKU,
        "claude-haiku-4-5-20251001": HAIKU,
        "claude-3-7-sonnet-20250219": SONNET,
        "claude-3-5-sonnet-20241022": SONNET,
        "claude-3-5-haiku-20241022": HAIKU_3_5,
        "claude-3-opus-20240229": OPUS_LEGACY,
        "claude-3-haiku-20240307": HAIKU_3,
    }),
    prefixes=(
        ("claude-opus", OPUS),
        ("claude-sonnet", SONNET),
        ("claude-haiku", HAIKU),
        ("claude-3-opus", OPUS_LEGACY),
        ("claude-3-7-sonnet", SONNET),
        ("claude-3-5-sonnet", SONNET),
        ("claude-3-5-haiku", HAIKU_3_5),
        ("claude-3-haiku", HAIKU_3),
    ),
    default=SONNET,
)


def model_price(model: str) -> ModelPricing:
    """Return the rate card for a model identifier."""
    return PRICING_TABLE.get_pricing(model)


def calculate_cost(model: str, usage: TokenUsage) -> float:
    """Calculate the USD cost of token usage for a model.

    No rounding is applied; zero tokens always cost exactly zero.

    Args:
        model: Model identifier
        usage: Token counts

    Returns:
        Cost in USD
    """
    pricing = model_price(model)
    total = (
        Decimal(usage.input_tokens) * pricing.input_per_million
        + Decimal(usage.output_tokens) * pricing.output_per_million
        + Decimal(usage.cache_write_tokens) * pricing.cache_write_per_million
        + Decimal(usage.cache_read_tokens) * pricing.cache_read_per_million
    )
    return float(total / _ONE_MILLION)


def calculate_entry_cost(
    input_tokens: int,
    output_tokens: int,
    cache_write_tokens: int,
    cache_read_tokens: int,
    model: str,
) -> float:
    """Calculate the USD cost of a single transcript entry."""
    return calculate_cost(
        model,
        TokenUsage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cache_write_tokens=cache_write_tokens,
            cache_read_tokens=cache_read_tokens,
        ),
    )
