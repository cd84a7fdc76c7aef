"""
rate_strategy.py - Interest rate strategies

The hub treats the rate strategy as an external, side-effect-free
collaborator (see InterestRateStrategy in core.py). Two ready-made
implementations are provided:

- FixedRateStrategy: constant annual rate, mostly for tests and simulations
- KinkedRateStrategy: piecewise linear curve over utilisation

    usage = debt / (available_liquidity + debt)

    usage <= optimal:  rate = base + slope1 * usage / optimal
    usage >  optimal:  rate = base + slope1 + slope2 * (usage - optimal) / (1 - optimal)

All rates are annual and RAY-scaled.
"""

from __future__ import annotations
from dataclasses import dataclass

from .core import RAY
from .fixed_point import mul_div, ray_div


@dataclass(frozen=True, slots=True)
class FixedRateStrategy:
    """Always returns the same annual rate (RAY)."""
    rate: int

    def __post_init__(self):
        if self.rate < 0:
            raise ValueError(f"rate cannot be negative, got {self.rate}")

    def calculate_interest_rate(
        self,
        asset_id: int,
        available_liquidity: int,
        base_debt: int,
        premium_debt: int,
    ) -> int:
        return self.rate


@dataclass(frozen=True, slots=True)
class KinkedRateStrategy:
    """
    Utilisation-driven rate curve with a kink at optimal_usage.

    Attributes:
        optimal_usage: Target utilisation (RAY, e.g. 0.8 * RAY)
        base_rate: Rate at zero utilisation
        slope1: Rate added between 0 and optimal_usage
        slope2: Rate added between optimal_usage and full utilisation
    """
    optimal_usage: int
    base_rate: int
    slope1: int
    slope2: int

    def __post_init__(self):
        if not 0 < self.optimal_usage < RAY:
            raise ValueError(f"optimal_usage must be within (0, RAY), got {self.optimal_usage}")
        if min(self.base_rate, self.slope1, self.slope2) < 0:
            raise ValueError("rates and slopes cannot be negative")

    def utilization(self, available_liquidity: int, debt: int) -> int:
        total = available_liquidity + debt
        if total == 0 or debt == 0:
            return 0
        return min(ray_div(debt, total), RAY)

    def calculate_interest_rate(
        self,
        asset_id: int,
        available_liquidity: int,
        base_debt: int,
        premium_debt: int,
    ) -> int:
        usage = self.utilization(available_liquidity, base_debt + premium_debt)
        if usage <= self.optimal_usage:
            return self.base_rate + mul_div(self.slope1, usage, self.optimal_usage)
        excess = mul_div(usage - self.optimal_usage, RAY, RAY - self.optimal_usage)
        return self.base_rate + self.slope1 + mul_div(self.slope2, excess, RAY)
