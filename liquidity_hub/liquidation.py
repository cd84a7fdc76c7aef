"""
liquidation.py - Liquidation Sizing and Settlement

This module sizes the liquidation of an unhealthy position and settles it on
the hub, using the same pure function architecture as the rest of the
package.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASSES (explicit inputs):
   - LiquidationConfig: Spoke-wide liquidation settings
   - DynamicReserveConfig: Per-collateral-reserve risk settings
   - DebtToRestoreParams / MaxDebtParams / CollateralParams: one bundle per
     calculation, so no calculation depends on ambient state
   - LiquidationCall: Everything the spoke layer knows about the position

2. PURE CALCULATION FUNCTIONS (calculate_*):
   - Take all inputs explicitly as parameters
   - No hub, no oracle, no hidden state

3. ADAPTER FUNCTIONS (validate_liquidation_call, load_prices):
   - The only places that read from a HubView or a PriceOracle

4. SETTLEMENT FUNCTIONS (liquidate_*):
   - Drive LiquidityHub operations inside one atomic scope spanning both
     the debt asset and the collateral asset

Key Formulas (percentages in bps, health factors in WAD):
    min_bonus   = 100% + (max_bonus - 100%) * (100% - bonus_factor)
    bonus(hf)   = max_bonus                    if hf <= hf_for_max_bonus
                = min_bonus                    if hf >= threshold
                = linear interpolation         otherwise
    debt_to_restore = D * (target - hf) / (target - bonus * cf)
    collateral  = debt * debt_price / collateral_price * bonus
    fee         = (collateral - collateral / bonus) * liquidation_fee
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple

from .core import (
    HEALTH_FACTOR_LIQUIDATION_THRESHOLD, MIN_LEFTOVER_BASE, PERCENTAGE_FACTOR, WAD,
    EventType, HubView, Rounding,
    AssetNotListed, SpokeNotListed,
    InvalidLiquidationConfig,
    MustNotLeaveDust, InvalidDebtToCover, SelfLiquidation, ReserveNotListed,
    ReservePaused, HealthFactorNotBelowThreshold, CollateralCannotBeLiquidated,
    SpecifiedCurrencyNotBorrowedByUser,
)
from .fixed_point import mul_div, percent_div, percent_mul
from .hub import LiquidityHub, RestoreResult
from .oracle import PriceOracle


# ============================================================================
# FROZEN DATACLASSES - Configuration
# ============================================================================

@dataclass(frozen=True, slots=True)
class LiquidationConfig:
    """
    Spoke-wide liquidation settings.

    Attributes:
        close_factor: Health factor (WAD) a liquidation restores the position
                      toward
        health_factor_for_max_bonus: At or below this health factor (WAD) the
                      full max bonus is paid
        liquidation_bonus_factor: Share (bps) of the bonus that decays as the
                      health factor approaches the threshold
        target_health_factor: Optional explicit sizing target (WAD); when
                      unset, close_factor is the target
    """
    close_factor: int
    health_factor_for_max_bonus: int
    liquidation_bonus_factor: int
    target_health_factor: Optional[int] = None

    def __post_init__(self):
        if self.close_factor < HEALTH_FACTOR_LIQUIDATION_THRESHOLD:
            raise InvalidLiquidationConfig(
                f"close_factor must be at least {HEALTH_FACTOR_LIQUIDATION_THRESHOLD}, "
                f"got {self.close_factor}"
            )
        if not 0 <= self.health_factor_for_max_bonus < HEALTH_FACTOR_LIQUIDATION_THRESHOLD:
            raise InvalidLiquidationConfig(
                f"health_factor_for_max_bonus must be below the liquidation threshold, "
                f"got {self.health_factor_for_max_bonus}"
            )
        if not 0 <= self.liquidation_bonus_factor <= PERCENTAGE_FACTOR:
            raise InvalidLiquidationConfig(
                f"liquidation_bonus_factor must be within [0, {PERCENTAGE_FACTOR}], "
                f"got {self.liquidation_bonus_factor}"
            )
        if (self.target_health_factor is not None
                and self.target_health_factor < HEALTH_FACTOR_LIQUIDATION_THRESHOLD):
            raise InvalidLiquidationConfig(
                f"target_health_factor must be at least {HEALTH_FACTOR_LIQUIDATION_THRESHOLD}, "
                f"got {self.target_health_factor}"
            )

    @property
    def target(self) -> int:
        if self.target_health_factor is None:
            return self.close_factor
        return self.target_health_factor


@dataclass(frozen=True, slots=True)
class DynamicReserveConfig:
    """
    Risk settings of a collateral reserve.

    Attributes:
        collateral_factor: Share (bps) of collateral value counted toward the
                           health factor
        max_liquidation_bonus: Largest bonus (bps, >= 100%) paid on seized collateral
        liquidation_fee: Share (bps) of the bonus collateral routed to the
                         fee receiver
    """
    collateral_factor: int
    max_liquidation_bonus: int
    liquidation_fee: int = 0

    def __post_init__(self):
        if not 0 <= self.collateral_factor <= PERCENTAGE_FACTOR:
            raise InvalidLiquidationConfig(
                f"collateral_factor must be within [0, {PERCENTAGE_FACTOR}], "
                f"got {self.collateral_factor}"
            )
        if self.max_liquidation_bonus < PERCENTAGE_FACTOR:
            raise InvalidLiquidationConfig(
                f"max_liquidation_bonus must be at least {PERCENTAGE_FACTOR}, "
                f"got {self.max_liquidation_bonus}"
            )
        if not 0 <= self.liquidation_fee <= PERCENTAGE_FACTOR:
            raise InvalidLiquidationConfig(
                f"liquidation_fee must be within [0, {PERCENTAGE_FACTOR}], "
                f"got {self.liquidation_fee}"
            )


# ============================================================================
# FROZEN DATACLASSES - Calculation inputs and results
# ============================================================================

@dataclass(frozen=True, slots=True)
class DebtToRestoreParams:
    """
    Inputs of calculate_debt_to_restore_close_factor.

    total_debt_in_base is the user's total debt over all reserves in base
    currency (PRICE_DECIMALS); the result is in debt asset units.
    """
    total_debt_in_base: int
    health_factor: int
    target_health_factor: int
    liquidation_bonus: int
    collateral_factor: int
    debt_asset_price: int
    debt_asset_unit: int


@dataclass(frozen=True, slots=True)
class DebtToRestoreResult:
    """
    Tagged result: either a bounded amount or "target unreachable".

    When the effective penalty (bonus * collateral factor) is at or above the
    target health factor, no amount of liquidation reaches the target and the
    close factor places no bound on the liquidation.
    """
    amount: Optional[int]

    @classmethod
    def bounded(cls, amount: int) -> DebtToRestoreResult:
        return cls(amount)

    @classmethod
    def unbounded(cls) -> DebtToRestoreResult:
        return cls(None)

    @property
    def is_unbounded(self) -> bool:
        return self.amount is None

    def cap(self, value: int) -> int:
        """Apply the bound to a candidate amount."""
        if self.amount is None:
            return value
        return min(value, self.amount)


@dataclass(frozen=True, slots=True)
class MaxDebtParams:
    debt_reserve_balance: int
    debt_to_cover: int
    debt_to_restore: DebtToRestoreResult
    debt_asset_price: int
    debt_asset_unit: int
    min_leftover_base: int = MIN_LEFTOVER_BASE


@dataclass(frozen=True, slots=True)
class CollateralParams:
    debt_to_liquidate: int
    collateral_reserve_balance: int
    collateral_asset_price: int
    collateral_asset_unit: int
    debt_asset_price: int
    debt_asset_unit: int
    liquidation_bonus: int
    liquidation_fee: int


@dataclass(frozen=True, slots=True)
class CollateralLiquidation:
    """
    Collateral side of a liquidation.

    Attributes:
        collateral_to_liquidate: Total collateral seized (liquidator + fee)
        collateral_to_liquidator: Collateral paid out to the liquidator
        liquidation_fee_amount: Collateral routed to the fee receiver
        debt_to_liquidate: Debt repaid; lower than requested when the
                           collateral balance capped the seizure
    """
    collateral_to_liquidate: int
    collateral_to_liquidator: int
    liquidation_fee_amount: int
    debt_to_liquidate: int


@dataclass(frozen=True, slots=True)
class LiquidationCall:
    """
    A liquidation request, with the position figures the spoke layer owns.

    Health factor aggregation and collateral flags live in the spoke layer;
    the call carries their results so the sizing stays pure.

    Attributes:
        spoke: Spoke whose hub accounts hold the position
        user / liquidator: Borrower and liquidator addresses
        debt_to_cover: Most the liquidator is willing to repay
        health_factor: User health factor (WAD)
        total_debt_in_base: User debt over all reserves (base currency)
        user_debt_balance: User debt on the debt asset (base + premium)
        user_premium_debt: Premium part of user_debt_balance
        user_collateral_balance: User supply on the collateral asset
        collateral_enabled: Whether the user uses the reserve as collateral
        debt_asset_price / collateral_asset_price: Optional prices; looked
            up in the oracle when missing
        receiver: Where seized collateral goes (default: liquidator)
    """
    collateral_asset_id: int
    debt_asset_id: int
    spoke: str
    user: str
    liquidator: str
    debt_to_cover: int
    health_factor: int
    total_debt_in_base: int
    user_debt_balance: int
    user_premium_debt: int
    user_collateral_balance: int
    liquidation_config: LiquidationConfig
    collateral_reserve_config: DynamicReserveConfig
    collateral_enabled: bool = True
    debt_asset_price: Optional[int] = None
    collateral_asset_price: Optional[int] = None
    receiver: Optional[str] = None

    def __post_init__(self):
        for name in ("debt_to_cover", "health_factor", "total_debt_in_base",
                     "user_debt_balance", "user_premium_debt", "user_collateral_balance"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")
        if self.user_premium_debt > self.user_debt_balance:
            raise ValueError(
                f"user_premium_debt {self.user_premium_debt} exceeds "
                f"user_debt_balance {self.user_debt_balance}"
            )

    @property
    def collateral_receiver(self) -> str:
        return self.receiver or self.liquidator


@dataclass(frozen=True, slots=True)
class LiquidationResult:
    """Outcome of a settled liquidation."""
    debt_liquidated: int
    premium_debt_liquidated: int
    base_debt_liquidated: int
    collateral_liquidated: int
    collateral_to_liquidator: int
    liquidation_fee_amount: int
    liquidation_fee_shares: int
    liquidation_bonus: int
    position_closed: bool
    restore: RestoreResult


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_variable_liquidation_bonus(
    health_factor_for_max_bonus: int,
    liquidation_bonus_factor: int,
    health_factor: int,
    max_liquidation_bonus: int,
    liquidation_threshold: int = HEALTH_FACTOR_LIQUIDATION_THRESHOLD,
) -> int:
    """
    Liquidation bonus (bps) for a position at the given health factor.

    The bonus decays linearly from max_liquidation_bonus at
    health_factor_for_max_bonus down to the minimum bonus at the threshold.

    Example:
        # hf_for_max = 0.8, bonus factor 40%, max bonus 120%
        calculate_variable_liquidation_bonus(8 * WAD // 10, 4_000, WAD, 12_000) == 11_200
    """
    if health_factor <= health_factor_for_max_bonus:
        return max_liquidation_bonus
    min_bonus = PERCENTAGE_FACTOR + percent_mul(
        max_liquidation_bonus - PERCENTAGE_FACTOR,
        PERCENTAGE_FACTOR - liquidation_bonus_factor,
    )
    if health_factor >= liquidation_threshold:
        return min_bonus
    return min_bonus + mul_div(
        max_liquidation_bonus - min_bonus,
        liquidation_threshold - health_factor,
        liquidation_threshold - health_factor_for_max_bonus,
    )


def calculate_debt_to_restore_close_factor(params: DebtToRestoreParams) -> DebtToRestoreResult:
    """
    Debt (in debt asset units) to repay to bring the position to the target.

    Repaying d of base-currency debt seizes d * bonus of collateral, removing
    d * bonus * cf of weighted collateral. Solving

        (hf * D - d * bonus * cf) / (D - d) = target

    gives d = D * (target - hf) / (target - bonus * cf). Rounded up so the
    target is actually reached.
    """
    penalty = mul_div(
        params.liquidation_bonus * params.collateral_factor,
        WAD,
        PERCENTAGE_FACTOR * PERCENTAGE_FACTOR,
        Rounding.CEIL,
    )
    target = params.target_health_factor
    if target <= penalty:
        return DebtToRestoreResult.unbounded()
    if params.health_factor >= target:
        return DebtToRestoreResult.bounded(0)
    amount = mul_div(
        params.total_debt_in_base * params.debt_asset_unit,
        target - params.health_factor,
        (target - penalty) * params.debt_asset_price,
        Rounding.CEIL,
    )
    return DebtToRestoreResult.bounded(amount)


def debt_value_in_base(amount: int, price: int, unit: int) -> int:
    return mul_div(amount, price, unit)


def check_leftover_debt(
    leftover: int,
    debt_asset_price: int,
    debt_asset_unit: int,
    min_leftover_base: int = MIN_LEFTOVER_BASE,
) -> None:
    """
    Raise MustNotLeaveDust when a non-zero leftover is worth less than the minimum.
    """
    if leftover > 0 and debt_value_in_base(leftover, debt_asset_price, debt_asset_unit) < min_leftover_base:
        raise MustNotLeaveDust(
            f"leftover debt {leftover} is below the minimum of {min_leftover_base} in base currency"
        )


def calculate_max_debt_to_liquidate(params: MaxDebtParams) -> int:
    """
    Largest debt amount this liquidation may repay.

    min(balance, debt_to_cover, close factor bound), never leaving a non-zero
    leftover below the minimum: such a result is raised to the full balance
    when debt_to_cover allows it, and refused otherwise. A reserve debt
    already at or below the minimum must be liquidated in full, so
    debt_to_cover has to cover the whole balance.

    Raises:
        MustNotLeaveDust
    """
    balance = params.debt_reserve_balance
    balance_base = debt_value_in_base(balance, params.debt_asset_price, params.debt_asset_unit)
    if balance_base <= params.min_leftover_base:
        if params.debt_to_cover < balance:
            raise MustNotLeaveDust(
                f"debt of {balance} must be liquidated in full, debt_to_cover is {params.debt_to_cover}"
            )
        return balance

    max_debt = params.debt_to_restore.cap(min(balance, params.debt_to_cover))
    leftover = balance - max_debt
    if (leftover > 0
            and debt_value_in_base(leftover, params.debt_asset_price, params.debt_asset_unit)
            < params.min_leftover_base):
        # Close the position instead of stranding dust, if the liquidator covers it.
        if params.debt_to_cover >= balance:
            return balance
        raise MustNotLeaveDust(
            f"leftover debt {leftover} is below the minimum of {params.min_leftover_base} in base currency"
        )
    return max_debt


def calculate_available_collateral_to_liquidate(params: CollateralParams) -> CollateralLiquidation:
    """
    Collateral seized for a debt repayment, and the fee carved out of it.

    When the bonus-scaled collateral exceeds the user's balance, the whole
    balance is seized and the repaid debt is back-solved from it.

    Example:
        # 2.5 debt units at price 2000, collateral at price 1, bonus 120%, fee 10%
        # -> 6000 collateral seized, 5900 to the liquidator, 100 fee
    """
    base_collateral = mul_div(
        params.debt_to_liquidate * params.debt_asset_price,
        params.collateral_asset_unit,
        params.debt_asset_unit * params.collateral_asset_price,
    )
    collateral = percent_mul(base_collateral, params.liquidation_bonus)
    debt = params.debt_to_liquidate

    if collateral > params.collateral_reserve_balance:
        collateral = params.collateral_reserve_balance
        collateral_in_debt = mul_div(
            collateral * params.collateral_asset_price,
            params.debt_asset_unit,
            params.collateral_asset_unit * params.debt_asset_price,
        )
        debt = percent_div(collateral_in_debt, params.liquidation_bonus)

    fee = 0
    if params.liquidation_fee:
        bonus_collateral = collateral - percent_div(collateral, params.liquidation_bonus)
        fee = percent_mul(bonus_collateral, params.liquidation_fee)

    return CollateralLiquidation(
        collateral_to_liquidate=collateral,
        collateral_to_liquidator=collateral - fee,
        liquidation_fee_amount=fee,
        debt_to_liquidate=debt,
    )


def split_liquidated_debt(debt: int, premium_debt: int) -> Tuple[int, int]:
    """(premium, base) parts of a repayment; premium is repaid first."""
    premium = min(debt, premium_debt)
    return premium, debt - premium


# ============================================================================
# ADAPTER FUNCTIONS (read from HubView / PriceOracle)
# ============================================================================

def validate_liquidation_call(view: HubView, call: LiquidationCall) -> None:
    """
    Check a liquidation call before any amount is computed.

    Raises:
        SelfLiquidation, ReserveNotListed, ReservePaused,
        HealthFactorNotBelowThreshold, CollateralCannotBeLiquidated,
        SpecifiedCurrencyNotBorrowedByUser, InvalidDebtToCover
    """
    if call.user == call.liquidator:
        raise SelfLiquidation(f"{call.user} cannot liquidate itself")

    for asset_id in (call.collateral_asset_id, call.debt_asset_id):
        try:
            asset = view.get_asset(asset_id)
            view.get_spoke_account(asset_id, call.spoke)
        except (AssetNotListed, SpokeNotListed) as exc:
            raise ReserveNotListed(f"reserve {asset_id} not listed for {call.spoke}") from exc
        if asset.config.paused or not asset.config.active:
            raise ReservePaused(f"reserve {asset_id} is paused or inactive")

    if call.health_factor >= HEALTH_FACTOR_LIQUIDATION_THRESHOLD:
        raise HealthFactorNotBelowThreshold(
            f"health factor {call.health_factor} is not below {HEALTH_FACTOR_LIQUIDATION_THRESHOLD}"
        )
    if (not call.collateral_enabled
            or call.collateral_reserve_config.collateral_factor == 0
            or call.user_collateral_balance == 0):
        raise CollateralCannotBeLiquidated(
            f"asset {call.collateral_asset_id} is not collateral of {call.user}"
        )
    if call.user_debt_balance == 0:
        raise SpecifiedCurrencyNotBorrowedByUser(
            f"{call.user} has no debt on asset {call.debt_asset_id}"
        )
    if call.debt_to_cover == 0:
        raise InvalidDebtToCover("debt_to_cover must be positive")


def load_prices(call: LiquidationCall, oracle: Optional[PriceOracle] = None) -> Tuple[int, int]:
    """
    (debt_price, collateral_price) from the call, falling back to the oracle.

    Raises:
        ValueError: If a price is missing and no oracle is given
    """
    prices = []
    for asset_id, price in ((call.debt_asset_id, call.debt_asset_price),
                            (call.collateral_asset_id, call.collateral_asset_price)):
        if price is None:
            if oracle is None:
                raise ValueError(f"No price for asset {asset_id} and no oracle given")
            price = oracle.get_price(asset_id)
        if price <= 0:
            raise ValueError(f"Price for asset {asset_id} must be positive, got {price}")
        prices.append(price)
    return prices[0], prices[1]


# ============================================================================
# SETTLEMENT
# ============================================================================

def liquidate_debt(hub: LiquidityHub, call: LiquidationCall, debt_to_liquidate: int) -> RestoreResult:
    """Repay debt on the debt asset with the liquidator's funds."""
    return hub.restore(call.debt_asset_id, debt_to_liquidate, call.spoke, call.liquidator)


def liquidate_collateral(hub: LiquidityHub, call: LiquidationCall, collateral: CollateralLiquidation) -> int:
    """
    Pay seized collateral to the liquidator and route the fee share.

    The fee never leaves the pool: it moves as supply shares to the
    collateral asset's fee receiver.

    Returns:
        Supply shares paid as fee (0 when the fee rounds to no shares)
    """
    if collateral.collateral_to_liquidator > 0:
        hub.remove(
            call.collateral_asset_id,
            collateral.collateral_to_liquidator,
            call.spoke,
            call.collateral_receiver,
        )
    fee_shares = 0
    if collateral.liquidation_fee_amount > 0:
        fee_shares = hub.convert_to_supplied_shares(
            call.collateral_asset_id, collateral.liquidation_fee_amount
        )
        if fee_shares > 0:
            hub.pay_fee(call.collateral_asset_id, fee_shares, call.spoke)
    return fee_shares


def liquidate_user(
    hub: LiquidityHub,
    call: LiquidationCall,
    oracle: Optional[PriceOracle] = None,
) -> LiquidationResult:
    """
    Size and settle a liquidation in one atomic scope.

    Steps:
        1. Validate the call
        2. Compute the bonus, close factor bound and max debt
        3. Compute the collateral (capped at the user's balance)
        4. Restore the debt asset, remove collateral, pay the fee

    Any failure in step 4 rolls back both assets.

    Raises:
        LiquidationError subclasses, and any hub error of the settlement
    """
    validate_liquidation_call(hub, call)
    debt_price, collateral_price = load_prices(call, oracle)
    debt_unit = 10 ** hub.get_asset(call.debt_asset_id).decimals
    collateral_unit = 10 ** hub.get_asset(call.collateral_asset_id).decimals
    config = call.liquidation_config
    reserve = call.collateral_reserve_config

    bonus = calculate_variable_liquidation_bonus(
        config.health_factor_for_max_bonus,
        config.liquidation_bonus_factor,
        call.health_factor,
        reserve.max_liquidation_bonus,
    )
    debt_to_restore = calculate_debt_to_restore_close_factor(DebtToRestoreParams(
        total_debt_in_base=call.total_debt_in_base,
        health_factor=call.health_factor,
        target_health_factor=config.target,
        liquidation_bonus=bonus,
        collateral_factor=reserve.collateral_factor,
        debt_asset_price=debt_price,
        debt_asset_unit=debt_unit,
    ))
    max_debt = calculate_max_debt_to_liquidate(MaxDebtParams(
        debt_reserve_balance=call.user_debt_balance,
        debt_to_cover=call.debt_to_cover,
        debt_to_restore=debt_to_restore,
        debt_asset_price=debt_price,
        debt_asset_unit=debt_unit,
    ))
    collateral = calculate_available_collateral_to_liquidate(CollateralParams(
        debt_to_liquidate=max_debt,
        collateral_reserve_balance=call.user_collateral_balance,
        collateral_asset_price=collateral_price,
        collateral_asset_unit=collateral_unit,
        debt_asset_price=debt_price,
        debt_asset_unit=debt_unit,
        liquidation_bonus=bonus,
        liquidation_fee=reserve.liquidation_fee,
    ))
    debt = collateral.debt_to_liquidate
    if debt == 0:
        raise InvalidDebtToCover("liquidation would repay no debt")
    if debt < max_debt:
        check_leftover_debt(call.user_debt_balance - debt, debt_price, debt_unit)

    premium_part, base_part = split_liquidated_debt(debt, call.user_premium_debt)
    with hub.atomic():
        restore = liquidate_debt(hub, call, debt)
        fee_shares = liquidate_collateral(hub, call, collateral)
        hub.emit(
            EventType.LIQUIDATION, call.debt_asset_id, call.spoke,
            user=call.user,
            liquidator=call.liquidator,
            collateral_asset_id=call.collateral_asset_id,
            debt_liquidated=debt,
            collateral_liquidated=collateral.collateral_to_liquidate,
            liquidation_fee=collateral.liquidation_fee_amount,
            bonus=bonus,
        )

    return LiquidationResult(
        debt_liquidated=debt,
        premium_debt_liquidated=premium_part,
        base_debt_liquidated=base_part,
        collateral_liquidated=collateral.collateral_to_liquidate,
        collateral_to_liquidator=collateral.collateral_to_liquidator,
        liquidation_fee_amount=collateral.liquidation_fee_amount,
        liquidation_fee_shares=fee_shares,
        liquidation_bonus=bonus,
        position_closed=debt == call.user_debt_balance,
        restore=restore,
    )
