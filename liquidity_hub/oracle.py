"""
oracle.py - Price sources for liquidation sizing

Prices are ints in base currency with PRICE_DECIMALS (8) decimals, keyed by
asset id. The hub itself never reads prices; only the liquidation helpers
do, and only when the caller did not already put prices in the call record.

Classes:
- PriceOracle: Protocol defining the price interface
- StaticPriceOracle: Fixed prices, updated by hand
"""

from __future__ import annotations
from typing import Dict, Iterable, Protocol, runtime_checkable


@runtime_checkable
class PriceOracle(Protocol):
    """
    Protocol for price sources.

    Implementations must raise KeyError for assets they cannot price;
    a missing price must never silently become zero.
    """

    def get_price(self, asset_id: int) -> int:
        ...


class StaticPriceOracle:
    """Price oracle with fixed prices."""

    def __init__(self, prices: Dict[int, int]):
        for asset_id, price in prices.items():
            self._check(asset_id, price)
        self.prices = dict(prices)

    @staticmethod
    def _check(asset_id: int, price: int) -> None:
        if price <= 0:
            raise ValueError(f"Price for asset {asset_id} must be positive, got {price}")

    def get_price(self, asset_id: int) -> int:
        if asset_id not in self.prices:
            raise KeyError(f"No price for asset {asset_id}")
        return self.prices[asset_id]

    def get_prices(self, asset_ids: Iterable[int]) -> Dict[int, int]:
        return {asset_id: self.get_price(asset_id) for asset_id in asset_ids}

    def update_price(self, asset_id: int, price: int) -> None:
        self._check(asset_id, price)
        self.prices[asset_id] = price

    def update_prices(self, prices: Dict[int, int]) -> None:
        for asset_id, price in prices.items():
            self.update_price(asset_id, price)

    def __repr__(self):
        return f"StaticPriceOracle({len(self.prices)} prices)"
