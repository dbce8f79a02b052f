"""Cost model — estimated tokens and USD from character counts.

Pricing tiers are keyed by model family: any model id containing "flash"
is billed at flash rates, everything else (including an unknown model)
at pro rates. Prices are USD per 1M tokens and come from settings, so
RUNLENS_PRICE_* env vars override them.

Token counts are estimates: ~4 characters per token for English text.
Exact counts would need API-level instrumentation, which is out of reach
for an agent reporting its own activity.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from runlens.config import settings

CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class PricingTier:
    input_per_1m: float
    output_per_1m: float


@dataclass(frozen=True)
class PricingTable:
    """Family substring → tier, plus the tier for everything else."""

    default: PricingTier
    families: dict[str, PricingTier] = field(default_factory=dict)

    def tier_for(self, model: Optional[str]) -> PricingTier:
        if model:
            for family, tier in self.families.items():
                if family in model:
                    return tier
        return self.default


def default_pricing() -> PricingTable:
    return PricingTable(
        default=PricingTier(settings.price_input_per_1m, settings.price_output_per_1m),
        families={
            "flash": PricingTier(
                settings.price_flash_input_per_1m, settings.price_flash_output_per_1m
            ),
        },
    )


@dataclass(frozen=True)
class CostBreakdown:
    estimated_input_tokens: int
    estimated_output_tokens: int
    estimated_total_tokens: int
    input_cost_usd: float
    output_cost_usd: float
    total_cost_usd: float
    model_used: Optional[str]


def estimate_tokens(chars: int) -> int:
    """ceil(chars / 4)."""
    return -(-chars // CHARS_PER_TOKEN)


def round_usd(value: float) -> float:
    """Microdollar precision (6 decimal places)."""
    return round(value, 6)


def dominant_model(models: Iterable[Optional[str]]) -> Optional[str]:
    """Most frequent model id; the first one seen wins a tie."""
    counts: dict[str, int] = {}
    for model in models:
        if model:
            counts[model] = counts.get(model, 0) + 1

    best, best_count = None, 0
    for model, count in counts.items():
        if count > best_count:
            best, best_count = model, count
    return best


def compute_cost(rows: Iterable, pricing: Optional[PricingTable] = None) -> CostBreakdown:
    """Cost breakdown from (prompt_chars, response_chars, model) rows.

    Missing character counts are treated as zero. The dominant model picks
    the pricing tier for the whole set.
    """
    pricing = pricing or default_pricing()

    prompt_chars = 0
    response_chars = 0
    models = []
    for row_prompt, row_response, model in rows:
        prompt_chars += row_prompt or 0
        response_chars += row_response or 0
        models.append(model)

    model_used = dominant_model(models)
    tier = pricing.tier_for(model_used)

    input_tokens = estimate_tokens(prompt_chars)
    output_tokens = estimate_tokens(response_chars)
    input_cost = input_tokens / 1_000_000 * tier.input_per_1m
    output_cost = output_tokens / 1_000_000 * tier.output_per_1m

    return CostBreakdown(
        estimated_input_tokens=input_tokens,
        estimated_output_tokens=output_tokens,
        estimated_total_tokens=input_tokens + output_tokens,
        input_cost_usd=round_usd(input_cost),
        output_cost_usd=round_usd(output_cost),
        total_cost_usd=round_usd(input_cost + output_cost),
        model_used=model_used,
    )


def format_usd(value: float) -> str:
    """Human-readable USD with enough precision for sub-cent amounts."""
    sign = "-" if value < 0 else ""
    value = abs(value)
    if value == 0:
        return "$0.00"
    if value < 0.01:
        return f"{sign}${value:.6f}"
    if value < 1:
        return f"{sign}${value:.4f}"
    return f"{sign}${value:,.2f}"
