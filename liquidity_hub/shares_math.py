"""
shares_math.py - Conversions between shares and underlying amounts

Two share families live on every asset:

1. SUPPLY SHARES: ownership of the pool. Priced by the ratio
   total_supplied_assets / total_supplied_shares, which only grows as
   interest accrues (existing suppliers earn yield by dilution of debt growth,
   never by minting).

2. DRAWN SHARES: ownership of base debt. Priced by the compounding
   base_debt_index (RAY).

Rounding per operation always favours the pool:

    | Operation       | Converts                       | Rounding |
    |-----------------|--------------------------------|----------|
    | add / supply    | amount -> supply shares minted | FLOOR    |
    | remove/withdraw | amount -> supply shares burned | CEIL     |
    | draw            | amount -> drawn shares minted  | CEIL     |
    | restore         | amount -> drawn shares burned  | FLOOR    |

An empty pool (no supply shares) converts 1:1.
"""

from __future__ import annotations

from .core import Rounding
from .fixed_point import mul_div, ray_mul, ray_div


# ============================================================================
# GENERIC CONVERSIONS
# ============================================================================

def to_supply_shares(
    amount: int,
    total_assets: int,
    total_shares: int,
    rounding: Rounding = Rounding.FLOOR,
) -> int:
    """Convert an underlying amount to supply shares at the pool's ratio."""
    if total_shares == 0 or total_assets == 0:
        return amount
    return mul_div(amount, total_shares, total_assets, rounding)


def to_supply_assets(
    shares: int,
    total_assets: int,
    total_shares: int,
    rounding: Rounding = Rounding.FLOOR,
) -> int:
    """Convert supply shares to the underlying amount they are worth."""
    if total_shares == 0:
        return shares
    return mul_div(shares, total_assets, total_shares, rounding)


def to_drawn_shares(amount: int, index: int, rounding: Rounding = Rounding.FLOOR) -> int:
    return ray_div(amount, index, rounding)


def to_drawn_assets(shares: int, index: int, rounding: Rounding = Rounding.CEIL) -> int:
    """Debt value of drawn shares. Rounds up by default: debt is never under-reported."""
    return ray_mul(shares, index, rounding)


# ============================================================================
# OPERATION-SPECIFIC CONVERSIONS
# ============================================================================

def shares_for_add(amount: int, total_assets: int, total_shares: int) -> int:
    return to_supply_shares(amount, total_assets, total_shares, Rounding.FLOOR)


def shares_for_remove(amount: int, total_assets: int, total_shares: int) -> int:
    return to_supply_shares(amount, total_assets, total_shares, Rounding.CEIL)


def shares_for_draw(amount: int, index: int) -> int:
    return to_drawn_shares(amount, index, Rounding.CEIL)


def shares_for_restore(amount: int, index: int) -> int:
    return to_drawn_shares(amount, index, Rounding.FLOOR)
