"""
interest.py - Lazy interest accrual engine

There is no timer. Interest is a pure function of elapsed time and the
borrow rate cached at the previous update, evaluated at the start of every
mutating operation (pull accrual):

    multiplier = RAY + rate * elapsed / SECONDS_PER_YEAR      (linear)
    new_index  = old_index * multiplier

The growth of debt implied by the new index is added to pool value without
minting supply shares, which is how suppliers earn yield. The liquidity fee
is the one exception: a slice of the growth is minted as supply shares to
the asset's fee receiver.

When nothing is drawn the asset does not accrue and its timestamp is left
untouched, so suppliers never earn on an idle pool.

Functions here never mutate an Asset; calculate_accrual() returns an
AccrualResult that LiquidityHub applies inside its atomic scope.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime

from .accounts import Asset
from .core import RAY, SECONDS_PER_YEAR, Rounding
from .fixed_point import mul_div, percent_mul, ray_mul
from .risk_premium import premium_debt
from .shares_math import to_drawn_assets, to_supply_shares


@dataclass(frozen=True, slots=True)
class AccrualResult:
    """
    Outcome of advancing an asset's index to a new timestamp.

    Attributes:
        accrued: False when the call was a no-op (nothing drawn, or no time elapsed)
        elapsed: Seconds since the asset's last update
        old_index / new_index: base_debt_index before and after
        base_growth: Increase of base debt
        premium_growth: Increase of premium debt (premium share stream)
        fee_amount: Liquidity fee carved out of the growth
        fee_shares: Supply shares minted to the fee receiver for fee_amount
        timestamp: Timestamp the asset is advanced to
    """
    accrued: bool
    elapsed: int
    old_index: int
    new_index: int
    base_growth: int
    premium_growth: int
    fee_amount: int
    fee_shares: int
    timestamp: datetime

    @property
    def total_growth(self) -> int:
        return self.base_growth + self.premium_growth


def elapsed_seconds(last_update: datetime, now: datetime) -> int:
    """Whole seconds between two timestamps; never negative."""
    seconds = int((now - last_update).total_seconds())
    return max(seconds, 0)


def calculate_linear_interest(rate: int, last_update: datetime, now: datetime) -> int:
    """
    RAY-scaled multiplier for simple interest over the elapsed period.

    Example:
        # 10% annual rate over half a year
        calculate_linear_interest(RAY // 10, t0, t0 + 182.5 days) == RAY * 1.05
    """
    elapsed = elapsed_seconds(last_update, now)
    return RAY + mul_div(rate, elapsed, SECONDS_PER_YEAR)


def _noop(asset: Asset) -> AccrualResult:
    return AccrualResult(
        accrued=False,
        elapsed=0,
        old_index=asset.base_debt_index,
        new_index=asset.base_debt_index,
        base_growth=0,
        premium_growth=0,
        fee_amount=0,
        fee_shares=0,
        timestamp=asset.last_update_timestamp,
    )


def calculate_accrual(asset: Asset, now: datetime) -> AccrualResult:
    """
    Compute how the asset's index and fee shares move up to `now`.

    PURE FUNCTION - reads the asset record, never mutates it.

    Returns a no-op result when base_drawn_shares is zero or no time has
    elapsed, which makes a second call at the same timestamp idempotent.
    """
    if asset.base_drawn_shares == 0:
        return _noop(asset)
    elapsed = elapsed_seconds(asset.last_update_timestamp, now)
    if elapsed == 0:
        return _noop(asset)

    old_index = asset.base_debt_index
    multiplier = calculate_linear_interest(asset.base_borrow_rate, asset.last_update_timestamp, now)
    new_index = ray_mul(old_index, multiplier)

    old_base = to_drawn_assets(asset.base_drawn_shares, old_index)
    new_base = to_drawn_assets(asset.base_drawn_shares, new_index)
    old_premium = premium_debt(asset.premium_shares, asset.premium_offset, asset.realized_premium, old_index)
    new_premium = premium_debt(asset.premium_shares, asset.premium_offset, asset.realized_premium, new_index)

    base_growth = new_base - old_base
    premium_growth = new_premium - old_premium
    fee_amount = percent_mul(base_growth + premium_growth, asset.config.liquidity_fee)

    fee_shares = 0
    if fee_amount > 0 and asset.supplied_shares > 0:
        # Price the fee against the pool without the fee itself so existing
        # shares keep at least their pre-accrual value.
        assets_after = asset.available_liquidity + new_base + new_premium
        fee_shares = to_supply_shares(
            fee_amount, assets_after - fee_amount, asset.supplied_shares, Rounding.FLOOR
        )

    return AccrualResult(
        accrued=True,
        elapsed=elapsed,
        old_index=old_index,
        new_index=new_index,
        base_growth=base_growth,
        premium_growth=premium_growth,
        fee_amount=fee_amount,
        fee_shares=fee_shares,
        timestamp=now,
    )


def query_borrow_rate(asset: Asset) -> int:
    """Ask the asset's strategy for the rate of the next period."""
    return asset.config.ir_strategy.calculate_interest_rate(
        asset.asset_id,
        asset.available_liquidity,
        asset.base_debt(),
        asset.premium_debt(),
    )
