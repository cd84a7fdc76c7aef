"""
risk_premium.py - Risk premium blending and premium-debt bookkeeping

Every borrower pays the asset's base rate plus a risk premium on top of it.
The premium is tracked as a separate, lazily realised debt stream:

    premium_shares  = drawn_shares * risk_premium         (ghost drawn shares)
    premium_offset  = value of premium_shares when they were (re)based
    accrued_premium = to_drawn_assets(premium_shares) - premium_offset
    premium_debt    = accrued_premium + realized_premium

Because premium shares ride the same base_debt_index as real drawn shares,
premium debt grows at base_rate * risk_premium, giving an effective rate of
base_rate + base_rate * risk_premium without any extra accrual step.

Whenever a spoke's drawn shares change, its accrued premium is first moved
into realized_premium and the premium shares are re-based (see rebase_premium).

The asset-level risk_premium is the drawn-share-weighted average of the
spokes' premiums, i.e. premium_shares / base_drawn_shares of the asset, so
the effective rate it advertises is the rate the premium shares accrue at.
For a draw by a spoke with no prior debt it equals the blend_risk_premium
reducer applied to the previous aggregate.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

from .core import PERCENTAGE_FACTOR, Rounding
from .fixed_point import mul_div, percent_mul
from .shares_math import to_drawn_assets


@dataclass(frozen=True, slots=True)
class PremiumDelta:
    """
    Signed change to a premium-debt triple.

    Applied identically to the spoke account and to the asset aggregate so
    the hub/spoke sums stay equal.
    """
    premium_shares: int = 0
    premium_offset: int = 0
    realized_premium: int = 0

    def is_zero(self) -> bool:
        return not (self.premium_shares or self.premium_offset or self.realized_premium)


# ============================================================================
# REDUCER
# ============================================================================

def blend_risk_premium(
    aggregate: int,
    aggregate_weight: int,
    sample: int,
    sample_weight: int,
) -> int:
    """
    Debt-weighted average of two risk premiums (basis points).

        (aggregate * aggregate_weight + sample * sample_weight)
        / (aggregate_weight + sample_weight)

    Returns the sample unchanged when there is no prior weight, and the
    aggregate unchanged when the sample carries no weight.

    Example:
        blend_risk_premium(1_000, 100, 3_000, 100) == 2_000
    """
    if aggregate_weight == 0:
        return sample
    if sample_weight == 0:
        return aggregate
    total_weight = aggregate_weight + sample_weight
    return mul_div(1, aggregate * aggregate_weight + sample * sample_weight, total_weight)


def effective_borrow_rate(base_rate: int, risk_premium: int) -> int:
    """base_rate + base_rate * risk_premium, RAY-scaled rate and bps premium."""
    return base_rate + percent_mul(base_rate, risk_premium)


# ============================================================================
# PREMIUM STREAM
# ============================================================================

def premium_shares_for(drawn_shares: int, risk_premium: int) -> int:
    """Ghost drawn shares that make premium debt grow at the given premium."""
    return percent_mul(drawn_shares, risk_premium)


def premium_offset_for(premium_shares: int, index: int) -> int:
    """
    Value of freshly based premium shares.

    Rounds down while premium debt rounds up, so accrued premium is never
    negative for a single account nor for the sum of accounts.
    """
    return to_drawn_assets(premium_shares, index, Rounding.FLOOR)


def accrued_premium(premium_shares: int, premium_offset: int, index: int) -> int:
    """
    Premium accrued since the shares were last based.

    Raises:
        ValueError: if the offset exceeds the value of the premium shares,
                    which would mean negative premium debt.
    """
    accrued = to_drawn_assets(premium_shares, index, Rounding.CEIL) - premium_offset
    if accrued < 0:
        raise ValueError(
            f"premium offset {premium_offset} exceeds premium share value at index {index}"
        )
    return accrued


def premium_debt(premium_shares: int, premium_offset: int, realized_premium: int, index: int) -> int:
    return accrued_premium(premium_shares, premium_offset, index) + realized_premium


def rebase_premium(
    premium_shares: int,
    premium_offset: int,
    drawn_shares_after: int,
    risk_premium: int,
    index: int,
    realized_premium_delta: int = 0,
) -> PremiumDelta:
    """
    Realise accrued premium and re-base premium shares on new drawn shares.

    Args:
        premium_shares: Current premium shares of the account
        premium_offset: Current premium offset of the account
        drawn_shares_after: Drawn shares the account holds after the operation
        risk_premium: Risk premium (bps) to base the new premium shares on
        index: Current base debt index
        realized_premium_delta: Extra realised change on top of the accrued
            premium (negative when premium debt is being repaid)

    Returns:
        PremiumDelta to apply to both the spoke account and the asset.
    """
    accrued = accrued_premium(premium_shares, premium_offset, index)
    new_shares = premium_shares_for(drawn_shares_after, risk_premium)
    new_offset = premium_offset_for(new_shares, index)
    return PremiumDelta(
        premium_shares=new_shares - premium_shares,
        premium_offset=new_offset - premium_offset,
        realized_premium=accrued + realized_premium_delta,
    )


def split_restore_amount(amount: int, premium_owed: int) -> Tuple[int, int]:
    """
    Split a repayment into (premium_restored, base_restored).

    Outstanding premium is always consumed first; only the remainder reaches
    base debt.
    """
    if amount <= premium_owed:
        return amount, 0
    return premium_owed, amount - premium_owed


def premium_share_ratio(premium_shares: int, drawn_shares: int) -> int:
    """Implied risk premium (bps) of an account or asset from its share counts."""
    if drawn_shares == 0:
        return 0
    return mul_div(premium_shares, PERCENTAGE_FACTOR, drawn_shares)
