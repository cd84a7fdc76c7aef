"""
Core types and constants for the liquidity hub.

This module provides the foundational pieces every other module builds on:
1. Fixed-point scales and protocol-wide constants
2. Rounding directions used by every conversion
3. Exceptions: HubError and the grouped failure families
4. Protocols for the external collaborators (rate strategy, access policy,
   value transfer) and the read-only HubView
5. The immutable HubEvent record emitted for every state change

Amounts and shares are plain ints in the asset's smallest unit. Decimal is
only used when presenting values to humans (see to_decimal).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_EVEN, getcontext
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Decimal is only used for display conversions, but we keep the context
# deterministic so formatted output is identical across runs.
#
_HUB_DECIMAL_CONTEXT = getcontext()
_HUB_DECIMAL_CONTEXT.prec = 50
_HUB_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Fixed-point scales.
WAD = 10 ** 18
RAY = 10 ** 27
PERCENTAGE_FACTOR = 10_000  # 100.00% in basis points

SECONDS_PER_YEAR = 365 * 24 * 60 * 60

# Health factors are WAD-scaled; below 1.0 a position can be liquidated.
HEALTH_FACTOR_LIQUIDATION_THRESHOLD = WAD

# Prices are quoted in base currency with 8 decimals.
PRICE_DECIMALS = 8
PRICE_UNIT = 10 ** PRICE_DECIMALS

# Minimum debt (in base currency) a partial liquidation may leave behind.
MIN_LEFTOVER_BASE = 1_000 * PRICE_UNIT

MAX_ASSET_DECIMALS = 18

# Upper bound accepted for any amount or share value.
MAX_UINT = 2 ** 256 - 1


# ============================================================================
# ENUMS
# ============================================================================

class Rounding(Enum):
    """Rounding direction of an integer division."""
    FLOOR = "floor"
    CEIL = "ceil"


class EventType(Enum):
    """
    Classification of a hub change notification.

    Operation events carry the asset, spoke and amounts; configuration events
    carry the new configuration; index events carry the new index and rate.
    """
    ADD = "Add"
    DRAW = "Draw"
    RESTORE = "Restore"
    REMOVE = "Remove"
    SUPPLY = "Supply"
    WITHDRAW = "Withdraw"
    PAY_FEE = "PayFee"
    REFRESH_PREMIUM = "RefreshPremium"
    ASSET_ADDED = "AssetAdded"
    ASSET_UPDATED = "AssetUpdated"
    ASSET_CONFIG_UPDATED = "AssetConfigUpdated"
    SPOKE_ADDED = "SpokeAdded"
    SPOKE_CONFIG_UPDATED = "SpokeConfigUpdated"
    DRAWN_INDEX_UPDATE = "DrawnIndexUpdate"
    LIQUIDATION = "Liquidation"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class HubError(Exception):
    """Base exception for all hub-related errors."""
    pass


# --- Validation failures: bad input, checked before any mutation -----------

class ValidationError(HubError):
    """Raised when an argument is invalid for the requested operation."""
    pass


class InvalidAddAmount(ValidationError):
    pass


class InvalidDrawAmount(ValidationError):
    pass


class InvalidRestoreAmount(ValidationError):
    pass


class InvalidRemoveAmount(ValidationError):
    pass


class InvalidWithdrawAmount(ValidationError):
    pass


class InvalidSharesAmount(ValidationError):
    """Raised when a non-zero amount would convert to zero shares."""
    pass


class InvalidFeeShares(ValidationError):
    pass


class InvalidFromAddress(ValidationError):
    pass


class InvalidToAddress(ValidationError):
    pass


class InvalidAssetDecimals(ValidationError):
    pass


class InvalidAssetAddress(ValidationError):
    pass


class InvalidIrStrategy(ValidationError):
    pass


class InvalidFeeReceiver(ValidationError):
    pass


class InvalidLiquidityFee(ValidationError):
    pass


class InvalidSpoke(ValidationError):
    pass


class InvalidPremiumChange(ValidationError):
    """Raised when a premium refresh would corrupt the premium debt stream."""
    pass


class InvalidLiquidationConfig(ValidationError):
    pass


# --- Policy failures: the operation is not allowed right now ---------------

class PolicyError(HubError):
    """Raised when flags or permissions forbid an operation."""
    pass


class SpokeNotActive(PolicyError):
    pass


class AssetNotActive(PolicyError):
    pass


class AssetPaused(PolicyError):
    pass


class AssetFrozen(PolicyError):
    pass


class AssetNotListed(PolicyError):
    pass


class SpokeNotListed(PolicyError):
    pass


class Unauthorized(PolicyError):
    pass


# --- Capacity failures: detected after the tentative update ----------------

class CapacityError(HubError):
    """Raised when a spoke cap is exceeded. Carries the violated cap."""

    def __init__(self, cap: int):
        super().__init__(f"{type(self).__name__}(cap={cap})")
        self.cap = cap


class SupplyCapExceeded(CapacityError):
    pass


class DrawCapExceeded(CapacityError):
    pass


# --- Economic boundary failures: surface the exact limit -------------------

class BoundaryError(HubError):
    """Raised when an amount crosses an economic limit. Carries the limit."""

    def __init__(self, boundary: int):
        super().__init__(f"{type(self).__name__}({boundary})")
        self.boundary = boundary


class NotAvailableLiquidity(BoundaryError):
    @property
    def available(self) -> int:
        return self.boundary


class SuppliedAmountExceeded(BoundaryError):
    @property
    def available(self) -> int:
        return self.boundary


class SurplusAmountRestored(BoundaryError):
    @property
    def max_restorable(self) -> int:
        return self.boundary


# --- Liquidation failures --------------------------------------------------

class LiquidationError(HubError):
    """Base exception for liquidation pre-validation and sizing failures."""
    pass


class MustNotLeaveDust(LiquidationError):
    pass


class InvalidDebtToCover(LiquidationError):
    pass


class SelfLiquidation(LiquidationError):
    pass


class ReserveNotListed(LiquidationError):
    pass


class ReservePaused(LiquidationError):
    pass


class HealthFactorNotBelowThreshold(LiquidationError):
    pass


class CollateralCannotBeLiquidated(LiquidationError):
    pass


class SpecifiedCurrencyNotBorrowedByUser(LiquidationError):
    pass


# ============================================================================
# COLLABORATOR PROTOCOLS
# ============================================================================

@runtime_checkable
class InterestRateStrategy(Protocol):
    """
    Maps pool utilisation figures to an annual borrow rate (RAY).

    Must be pure: the hub may call it any number of times per operation.
    """

    def calculate_interest_rate(
        self,
        asset_id: int,
        available_liquidity: int,
        base_debt: int,
        premium_debt: int,
    ) -> int:
        ...


@runtime_checkable
class AccessPolicy(Protocol):
    """Decides whether a caller may run a privileged configuration operation."""

    def is_authorized(self, caller: Optional[str], operation: str) -> bool:
        ...


@runtime_checkable
class ValueTransfer(Protocol):
    """
    Moves underlying value between the hub and external addresses.

    The hub only calls these once an operation has fully succeeded.
    """

    def pull(self, underlying: str, from_address: str, to_address: str, amount: int) -> None:
        ...

    def push(self, underlying: str, from_address: str, to_address: str, amount: int) -> None:
        ...


@runtime_checkable
class HubView(Protocol):
    """
    Read-only interface to hub state.

    Liquidation sizing and other pure helpers accept a HubView to declare
    that they never mutate the hub.
    """

    @property
    def current_time(self) -> datetime:
        ...

    def get_asset(self, asset_id: int) -> Any:
        ...

    def get_spoke_account(self, asset_id: int, spoke: str) -> Any:
        ...

    def get_spoke_debt(self, asset_id: int, spoke: str) -> Tuple[int, int]:
        ...

    def get_spoke_supplied_amount(self, asset_id: int, spoke: str) -> int:
        ...


# ============================================================================
# EVENTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class HubEvent:
    """
    Immutable change notification.

    Attributes:
        event_type: What happened (Add, Draw, AssetUpdated, ...)
        asset_id: Asset concerned (None for hub-wide events)
        spoke: Spoke account concerned, if any
        timestamp: Hub time at emission
        sequence_number: Position in the hub's event log (rolled-back events are discarded)
        data: Operation-specific payload (amounts, shares, index, rate, ...)
    """
    event_type: EventType
    asset_id: Optional[int]
    spoke: Optional[str]
    timestamp: datetime
    sequence_number: int
    data: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        parts = [f"#{self.sequence_number} {self.event_type.value}"]
        if self.asset_id is not None:
            parts.append(f"asset={self.asset_id}")
        if self.spoke:
            parts.append(f"spoke={self.spoke}")
        for key, value in self.data.items():
            parts.append(f"{key}={value}")
        return f"HubEvent({', '.join(parts)})"


# ============================================================================
# DISPLAY HELPERS
# ============================================================================

def to_decimal(amount: int, decimals: int) -> Decimal:
    """
    Convert an integer amount in smallest units to a human-readable Decimal.

    Example:
        to_decimal(2_500_000, 6) == Decimal("2.5")
    """
    return Decimal(amount) / (Decimal(10) ** decimals)


def format_rate(rate: int) -> str:
    """Format a RAY-scaled annual rate as a percentage string."""
    pct = Decimal(rate) * Decimal(100) / Decimal(RAY)
    return f"{pct.quantize(Decimal('0.01'))}%"


def format_bps(value: int) -> str:
    """Format a basis-point value as a percentage string."""
    pct = Decimal(value) * Decimal(100) / Decimal(PERCENTAGE_FACTOR)
    return f"{pct.quantize(Decimal('0.01'))}%"
