"""
conftest.py - Shared pytest fixtures for LiquidityHub tests

Provides common fixtures used across unit, functional and conformance tests:
- Hubs wired to an in-memory CustodyBook
- Listed assets with two spokes and funded users
- A position with outstanding debt
"""

import pytest

from liquidity_hub import CustodyBook

from tests.hub_helpers import make_hub, list_asset


@pytest.fixture
def custody():
    return CustodyBook()


@pytest.fixture
def hub(custody):
    return make_hub(custody)


@pytest.fixture
def usdc(hub):
    """USDC listed at a fixed 10% rate with spoke_a and spoke_b."""
    return list_asset(hub)


@pytest.fixture
def weth(hub):
    """WETH (18 decimals) listed at a fixed 10% rate with spoke_a and spoke_b."""
    return list_asset(hub, underlying="WETH", decimals=18)


@pytest.fixture
def borrowed(hub, usdc):
    """spoke_a supplied 1,000,000 and spoke_b drew 400,000 at a 10% premium."""
    hub.add(usdc, 1_000_000, "spoke_a", "alice")
    hub.draw(usdc, 400_000, "spoke_b", "bob", risk_premium=1_000)
    return usdc
