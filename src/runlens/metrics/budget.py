"""Budget evaluator — advisory spend warnings.

Learn: Two independent caps, per session and per UTC day, each 0 when
disabled. A warning fires once spend reaches alert_threshold_pct of the
cap that applies. Nothing here blocks a write; the caller decides whether
to surface the message and records it as its own BUDGET_WARNING event.
"""

import math
from dataclasses import dataclass
from typing import Optional

from runlens.metrics.cost import format_usd


@dataclass(frozen=True)
class BudgetLimits:
    """Configurable budget limits (0 = disabled)."""
    max_per_session_usd: float = 0.0
    max_per_day_usd: float = 0.0
    alert_threshold_pct: float = 80.0

    @classmethod
    def from_config(cls, config) -> "BudgetLimits":
        return cls(
            max_per_session_usd=config.max_per_session_usd,
            max_per_day_usd=config.max_per_day_usd,
            alert_threshold_pct=config.alert_threshold_pct,
        )

    @property
    def enabled(self) -> bool:
        return self.max_per_session_usd > 0 or self.max_per_day_usd > 0


def _crossed(spent: float, cap: float, threshold_pct: float) -> bool:
    return cap > 0 and spent >= cap * (threshold_pct / 100)


def _pct_of(spent: float, cap: float) -> int:
    # half up, so 62.5% reads 63%
    return math.floor(spent / cap * 100 + 0.5)


def evaluate_session_budget(limits: BudgetLimits, session_cost: float) -> Optional[str]:
    if not _crossed(session_cost, limits.max_per_session_usd, limits.alert_threshold_pct):
        return None
    return (
        f"Session cost {format_usd(session_cost)} is at "
        f"{_pct_of(session_cost, limits.max_per_session_usd)}% of session budget "
        f"({format_usd(limits.max_per_session_usd)})."
    )


def evaluate_daily_budget(limits: BudgetLimits, daily_cost: float) -> Optional[str]:
    if not _crossed(daily_cost, limits.max_per_day_usd, limits.alert_threshold_pct):
        return None
    return (
        f"Daily spend {format_usd(daily_cost)} is at "
        f"{_pct_of(daily_cost, limits.max_per_day_usd)}% of daily budget "
        f"({format_usd(limits.max_per_day_usd)})."
    )
