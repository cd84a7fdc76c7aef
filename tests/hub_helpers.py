"""
hub_helpers.py - Test helpers for building LiquidityHub scenarios

Plain functions shared by the fixtures in conftest.py and by tests that need
more than one hub (e.g. comparing a committed hub with a rolled-back one).
"""

from __future__ import annotations
from datetime import datetime, timedelta

from liquidity_hub import (
    LiquidityHub, CustodyBook, FixedRateStrategy, SpokeConfig,
    RAY,
)


T0 = datetime(2025, 1, 1)
ONE_DAY = timedelta(days=1)
ONE_YEAR = timedelta(days=365)
TEN_PERCENT = RAY // 10

USERS = ("alice", "bob", "carol", "liquidator")
FUNDING = 10 ** 15


def make_hub(custody: CustodyBook = None, **kwargs) -> LiquidityHub:
    """Quiet hub at T0 with custody tracking."""
    kwargs.setdefault("initial_time", T0)
    kwargs.setdefault("verbose", False)
    return LiquidityHub("test", value_transfer=custody or CustodyBook(), **kwargs)


def list_asset(
    hub: LiquidityHub,
    underlying: str = "USDC",
    decimals: int = 6,
    rate: int = TEN_PERCENT,
    liquidity_fee: int = 0,
    spokes=("spoke_a", "spoke_b"),
    spoke_config: SpokeConfig = None,
    fee_receiver: str = "treasury",
) -> int:
    """List an asset, register spokes and fund every test user."""
    asset_id = hub.add_asset(
        underlying, decimals,
        fee_receiver=fee_receiver,
        ir_strategy=FixedRateStrategy(rate),
        liquidity_fee=liquidity_fee,
    )
    for spoke in spokes:
        hub.add_spoke(asset_id, spoke, spoke_config)
    custody = hub.value_transfer
    if custody is not None:
        for user in USERS:
            if custody.balance_of(user, underlying) == 0:
                custody.mint(underlying, user, FUNDING)
    return asset_id


def assert_accounting(hub: LiquidityHub) -> None:
    """Hub aggregates equal spoke sums and custody equals liquidity."""
    report = hub.verify_accounting()
    assert report['valid'], report['discrepancies']


def hub_state(hub: LiquidityHub) -> dict:
    """Comparable snapshot of every asset and spoke account."""
    return {
        'assets': {asset_id: hub.get_asset(asset_id) for asset_id in hub.list_assets()},
        'accounts': {
            (asset_id, spoke): hub.get_spoke_account(asset_id, spoke)
            for asset_id in hub.list_assets()
            for spoke in hub.list_spokes(asset_id)
        },
        'events': len(hub.event_log),
    }
