"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the LiquidityHub.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. test_hub_conservation.py - Aggregates equal spoke sums, custody equals liquidity
2. test_share_value.py - Index and supply share value never decrease
3. test_accrual_idempotency.py - Queries preview accrual, repeated accrual is a no-op
4. test_hub_atomicity.py - All-or-nothing operations and scopes
5. test_liquidation_dust.py - Liquidations never strand dust debt

These tests use hypothesis for property-based testing.
"""
