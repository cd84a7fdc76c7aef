"""
accounts.py - Asset ledger and spoke account records

Two record kinds hold all mutable hub state:

    Asset         - one per listed asset, the aggregate of every spoke
    SpokeAccount  - one per (asset, spoke), the spoke's slice of the aggregate

Records are created once and never deleted. They are only mutated by
LiquidityHub inside an atomic scope, which snapshots them with clone().

Configuration lives in frozen dataclasses (AssetConfig, SpokeConfig) that are
replaced wholesale on update, never mutated.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from .core import (
    RAY, PERCENTAGE_FACTOR,
    InterestRateStrategy,
    InvalidFeeReceiver, InvalidIrStrategy, InvalidLiquidityFee,
)
from .risk_premium import premium_debt
from .shares_math import to_drawn_assets


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class AssetConfig:
    """
    Governance-controlled settings of an asset.

    Attributes:
        fee_receiver: Spoke account credited with the liquidity fee and
                      liquidation fees
        liquidity_fee: Share of accrued interest paid to fee_receiver (bps)
        ir_strategy: Interest rate strategy collaborator
        active: Inactive assets reject every operation
        paused: Paused assets reject every operation
        frozen: Frozen assets reject add and draw, but allow exits
    """
    fee_receiver: str
    ir_strategy: InterestRateStrategy
    liquidity_fee: int = 0
    active: bool = True
    paused: bool = False
    frozen: bool = False

    def __post_init__(self):
        if not self.fee_receiver or not str(self.fee_receiver).strip():
            raise InvalidFeeReceiver("fee_receiver cannot be empty")
        if not isinstance(self.ir_strategy, InterestRateStrategy):
            raise InvalidIrStrategy(f"invalid interest rate strategy: {self.ir_strategy!r}")
        if not 0 <= self.liquidity_fee <= PERCENTAGE_FACTOR:
            raise InvalidLiquidityFee(
                f"liquidity_fee must be within [0, {PERCENTAGE_FACTOR}], got {self.liquidity_fee}"
            )


@dataclass(frozen=True, slots=True)
class SpokeConfig:
    """
    Per-(asset, spoke) limits.

    Caps are in underlying units and checked against the spoke's own balance
    after the operation, not against the asset total. None means uncapped.
    """
    supply_cap: Optional[int] = None
    draw_cap: Optional[int] = None
    active: bool = True

    def __post_init__(self):
        if self.supply_cap is not None and self.supply_cap < 0:
            raise ValueError(f"supply_cap cannot be negative, got {self.supply_cap}")
        if self.draw_cap is not None and self.draw_cap < 0:
            raise ValueError(f"draw_cap cannot be negative, got {self.draw_cap}")


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(slots=True)
class Asset:
    """
    Aggregate state of one listed asset.

    Value identity:
        total_supplied_assets = available_liquidity + base_debt + premium_debt

    base_debt grows through base_debt_index; premium_debt grows through the
    premium share stream (see risk_premium.py). Neither mints supply shares,
    so the growth lands on existing suppliers.
    """
    asset_id: int
    underlying: str
    decimals: int
    config: AssetConfig
    last_update_timestamp: datetime
    supplied_shares: int = 0
    available_liquidity: int = 0
    base_drawn_shares: int = 0
    base_debt_index: int = RAY
    base_borrow_rate: int = 0
    risk_premium: int = 0
    premium_shares: int = 0
    premium_offset: int = 0
    realized_premium: int = 0

    def base_debt(self) -> int:
        return to_drawn_assets(self.base_drawn_shares, self.base_debt_index)

    def premium_debt(self) -> int:
        return premium_debt(
            self.premium_shares, self.premium_offset, self.realized_premium, self.base_debt_index
        )

    def total_debt(self) -> int:
        return self.base_debt() + self.premium_debt()

    def total_supplied_assets(self) -> int:
        return self.available_liquidity + self.total_debt()

    def clone(self) -> Asset:
        return replace(self)


@dataclass(slots=True)
class SpokeAccount:
    """
    One spoke's slice of an asset.

    risk_premium is the premium (bps) the spoke last drew at; premium shares
    are re-based on it whenever drawn shares change.
    """
    asset_id: int
    spoke: str
    config: SpokeConfig = field(default_factory=SpokeConfig)
    supplied_shares: int = 0
    drawn_shares: int = 0
    premium_shares: int = 0
    premium_offset: int = 0
    realized_premium: int = 0
    risk_premium: int = 0
    last_update_timestamp: Optional[datetime] = None

    def base_debt(self, index: int) -> int:
        return to_drawn_assets(self.drawn_shares, index)

    def premium_debt(self, index: int) -> int:
        return premium_debt(self.premium_shares, self.premium_offset, self.realized_premium, index)

    def clone(self) -> SpokeAccount:
        return replace(self)
