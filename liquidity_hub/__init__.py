"""
liquidity_hub - Shared-Liquidity Accounting Core

Multi-asset lending ledger shared by several spokes: supply and debt shares,
lazy interest accrual, risk premium bookkeeping and liquidation sizing.

Usage:
    from liquidity_hub import (
        LiquidityHub, CustodyBook, FixedRateStrategy, RAY,
    )

    custody = CustodyBook()
    hub = LiquidityHub("main", value_transfer=custody)
    usdc = hub.add_asset("USDC", 6, fee_receiver="treasury",
                         ir_strategy=FixedRateStrategy(RAY // 20))
    hub.add_spoke(usdc, "core_spoke")

    custody.mint("USDC", "alice", 1_000_000)
    hub.add(usdc, 1_000_000, "core_spoke", from_address="alice")
    hub.draw(usdc, 400_000, "core_spoke", to_address="bob", risk_premium=1_000)
"""

# Core types
from .core import (
    WAD,
    RAY,
    PERCENTAGE_FACTOR,
    SECONDS_PER_YEAR,
    HEALTH_FACTOR_LIQUIDATION_THRESHOLD,
    PRICE_DECIMALS,
    PRICE_UNIT,
    MIN_LEFTOVER_BASE,
    MAX_ASSET_DECIMALS,
    Rounding,
    EventType,
    HubEvent,
    HubView,
    InterestRateStrategy,
    AccessPolicy,
    ValueTransfer,
    to_decimal,
    format_rate,
    format_bps,
    # Exceptions
    HubError,
    ValidationError,
    InvalidAddAmount,
    InvalidDrawAmount,
    InvalidRestoreAmount,
    InvalidRemoveAmount,
    InvalidWithdrawAmount,
    InvalidSharesAmount,
    InvalidFeeShares,
    InvalidFromAddress,
    InvalidToAddress,
    InvalidAssetDecimals,
    InvalidAssetAddress,
    InvalidIrStrategy,
    InvalidFeeReceiver,
    InvalidLiquidityFee,
    InvalidSpoke,
    InvalidPremiumChange,
    InvalidLiquidationConfig,
    PolicyError,
    SpokeNotActive,
    AssetNotActive,
    AssetPaused,
    AssetFrozen,
    AssetNotListed,
    SpokeNotListed,
    Unauthorized,
    CapacityError,
    SupplyCapExceeded,
    DrawCapExceeded,
    BoundaryError,
    NotAvailableLiquidity,
    SuppliedAmountExceeded,
    SurplusAmountRestored,
    LiquidationError,
    MustNotLeaveDust,
    InvalidDebtToCover,
    SelfLiquidation,
    ReserveNotListed,
    ReservePaused,
    HealthFactorNotBelowThreshold,
    CollateralCannotBeLiquidated,
    SpecifiedCurrencyNotBorrowedByUser,
)

# Arithmetic
from .fixed_point import (
    mul_div,
    ray_mul,
    ray_div,
    wad_mul,
    wad_div,
    percent_mul,
    percent_div,
    bps_to_ray,
)
from .shares_math import (
    to_supply_shares,
    to_supply_assets,
    to_drawn_shares,
    to_drawn_assets,
    shares_for_add,
    shares_for_remove,
    shares_for_draw,
    shares_for_restore,
)

# Records
from .accounts import (
    AssetConfig,
    SpokeConfig,
    Asset,
    SpokeAccount,
)

# Interest and premium
from .interest import (
    AccrualResult,
    calculate_accrual,
    calculate_linear_interest,
    query_borrow_rate,
)
from .risk_premium import (
    PremiumDelta,
    blend_risk_premium,
    effective_borrow_rate,
    rebase_premium,
    split_restore_amount,
)
from .rate_strategy import (
    FixedRateStrategy,
    KinkedRateStrategy,
)

# Collaborators
from .access import (
    ADMIN_OPERATIONS,
    OpenAccessPolicy,
    RoleAccessPolicy,
)
from .transfers import (
    CustodyBook,
    InsufficientBalance,
)
from .oracle import (
    PriceOracle,
    StaticPriceOracle,
)

# Hub
from .hub import (
    LiquidityHub,
    RestoreResult,
    MAX_RISK_PREMIUM,
)

# Liquidation
from .liquidation import (
    LiquidationConfig,
    DynamicReserveConfig,
    DebtToRestoreParams,
    DebtToRestoreResult,
    MaxDebtParams,
    CollateralParams,
    CollateralLiquidation,
    LiquidationCall,
    LiquidationResult,
    calculate_variable_liquidation_bonus,
    calculate_debt_to_restore_close_factor,
    calculate_max_debt_to_liquidate,
    calculate_available_collateral_to_liquidate,
    check_leftover_debt,
    debt_value_in_base,
    split_liquidated_debt,
    validate_liquidation_call,
    load_prices,
    liquidate_debt,
    liquidate_collateral,
    liquidate_user,
)


__all__ = [
    # Constants
    'WAD', 'RAY', 'PERCENTAGE_FACTOR', 'SECONDS_PER_YEAR',
    'HEALTH_FACTOR_LIQUIDATION_THRESHOLD', 'PRICE_DECIMALS', 'PRICE_UNIT',
    'MIN_LEFTOVER_BASE', 'MAX_ASSET_DECIMALS', 'MAX_RISK_PREMIUM',
    # Core types
    'Rounding', 'EventType', 'HubEvent', 'HubView',
    'InterestRateStrategy', 'AccessPolicy', 'ValueTransfer',
    'to_decimal', 'format_rate', 'format_bps',
    # Exceptions
    'HubError', 'ValidationError',
    'InvalidAddAmount', 'InvalidDrawAmount', 'InvalidRestoreAmount',
    'InvalidRemoveAmount', 'InvalidWithdrawAmount', 'InvalidSharesAmount',
    'InvalidFeeShares', 'InvalidFromAddress', 'InvalidToAddress',
    'InvalidAssetDecimals', 'InvalidAssetAddress', 'InvalidIrStrategy',
    'InvalidFeeReceiver', 'InvalidLiquidityFee', 'InvalidSpoke',
    'InvalidPremiumChange', 'InvalidLiquidationConfig',
    'PolicyError', 'SpokeNotActive', 'AssetNotActive', 'AssetPaused',
    'AssetFrozen', 'AssetNotListed', 'SpokeNotListed', 'Unauthorized',
    'CapacityError', 'SupplyCapExceeded', 'DrawCapExceeded',
    'BoundaryError', 'NotAvailableLiquidity', 'SuppliedAmountExceeded',
    'SurplusAmountRestored',
    'LiquidationError', 'MustNotLeaveDust', 'InvalidDebtToCover',
    'SelfLiquidation', 'ReserveNotListed', 'ReservePaused',
    'HealthFactorNotBelowThreshold', 'CollateralCannotBeLiquidated',
    'SpecifiedCurrencyNotBorrowedByUser',
    # Arithmetic
    'mul_div', 'ray_mul', 'ray_div', 'wad_mul', 'wad_div',
    'percent_mul', 'percent_div', 'bps_to_ray',
    'to_supply_shares', 'to_supply_assets', 'to_drawn_shares', 'to_drawn_assets',
    'shares_for_add', 'shares_for_remove', 'shares_for_draw', 'shares_for_restore',
    # Records
    'AssetConfig', 'SpokeConfig', 'Asset', 'SpokeAccount',
    # Interest and premium
    'AccrualResult', 'calculate_accrual', 'calculate_linear_interest', 'query_borrow_rate',
    'PremiumDelta', 'blend_risk_premium', 'effective_borrow_rate',
    'rebase_premium', 'split_restore_amount',
    'FixedRateStrategy', 'KinkedRateStrategy',
    # Collaborators
    'ADMIN_OPERATIONS', 'OpenAccessPolicy', 'RoleAccessPolicy',
    'CustodyBook', 'InsufficientBalance',
    'PriceOracle', 'StaticPriceOracle',
    # Hub
    'LiquidityHub', 'RestoreResult',
    # Liquidation
    'LiquidationConfig', 'DynamicReserveConfig',
    'DebtToRestoreParams', 'DebtToRestoreResult', 'MaxDebtParams',
    'CollateralParams', 'CollateralLiquidation', 'LiquidationCall', 'LiquidationResult',
    'calculate_variable_liquidation_bonus', 'calculate_debt_to_restore_close_factor',
    'calculate_max_debt_to_liquidate', 'calculate_available_collateral_to_liquidate',
    'check_leftover_debt', 'debt_value_in_base', 'split_liquidated_debt',
    'validate_liquidation_call', 'load_prices',
    'liquidate_debt', 'liquidate_collateral', 'liquidate_user',
]

__version__ = '1.0.0'
