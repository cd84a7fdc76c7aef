"""
test_hub_operations.py - Unit tests for LiquidityHub ledger operations

Tests:
- add / supply: share minting, caps, flags, address checks
- remove / withdraw: share burning, boundaries
- draw: drawn shares, premium stream, risk premium blending, caps
- restore: premium-first split, full repayment, surplus boundary
- pay_fee: internal share transfer to the fee receiver
- refresh_premium: authorization and debt-preservation checks
- accrue: index growth and liquidity fee
"""

import pytest
from dataclasses import replace

from liquidity_hub import (
    RAY, EventType, SpokeConfig,
    InvalidAddAmount, InvalidDrawAmount, InvalidRestoreAmount, InvalidRemoveAmount,
    InvalidWithdrawAmount, InvalidSharesAmount, InvalidFeeShares,
    InvalidFromAddress, InvalidToAddress, InvalidPremiumChange,
    SpokeNotActive, AssetNotActive, AssetPaused, AssetFrozen,
    AssetNotListed, SpokeNotListed, Unauthorized,
    SupplyCapExceeded, DrawCapExceeded,
    NotAvailableLiquidity, SuppliedAmountExceeded, SurplusAmountRestored,
    InsufficientBalance,
    blend_risk_premium, mul_div,
)

from tests.hub_helpers import (
    T0, ONE_DAY, ONE_YEAR, FUNDING, list_asset, assert_accounting,
)


def set_flags(hub, asset_id, **flags):
    hub.update_asset_config(asset_id, replace(hub.get_asset(asset_id).config, **flags))


# ============================================================================
# ADD / SUPPLY
# ============================================================================

class TestAdd:

    def test_first_add_is_one_to_one(self, hub, usdc):
        shares = hub.add(usdc, 100, "spoke_a", "alice")

        asset = hub.get_asset(usdc)
        assert shares == 100
        assert asset.supplied_shares == 100
        assert asset.available_liquidity == 100
        assert hub.get_spoke_account(usdc, "spoke_a").supplied_shares == 100

    def test_add_pulls_underlying(self, hub, usdc, custody):
        hub.add(usdc, 100, "spoke_a", "alice")
        assert custody.balance_of("alice", "USDC") == FUNDING - 100
        assert custody.balance_of(hub.address, "USDC") == 100
        assert_accounting(hub)

    def test_supply_cap_exceeded(self, hub, usdc):
        amount = 5_000
        hub.update_spoke_config(usdc, "spoke_a", SpokeConfig(supply_cap=amount - 1))

        with pytest.raises(SupplyCapExceeded) as exc_info:
            hub.add(usdc, amount, "spoke_a", "alice")

        assert exc_info.value.cap == amount - 1
        assert hub.get_asset(usdc).supplied_shares == 0
        assert hub.get_asset(usdc).available_liquidity == 0

    def test_supply_cap_is_per_spoke(self, hub, usdc):
        hub.update_spoke_config(usdc, "spoke_a", SpokeConfig(supply_cap=1_000))
        hub.add(usdc, 5_000, "spoke_b", "bob")
        hub.add(usdc, 1_000, "spoke_a", "alice")
        assert hub.get_spoke_supplied_amount(usdc, "spoke_a") == 1_000

    def test_zero_amount(self, hub, usdc):
        with pytest.raises(InvalidAddAmount):
            hub.add(usdc, 0, "spoke_a", "alice")

    def test_non_int_amount(self, hub, usdc):
        with pytest.raises(InvalidAddAmount):
            hub.add(usdc, 1.5, "spoke_a", "alice")

    def test_from_hub_itself(self, hub, usdc):
        with pytest.raises(InvalidFromAddress):
            hub.add(usdc, 100, "spoke_a", hub.address)

    def test_unknown_asset(self, hub):
        with pytest.raises(AssetNotListed):
            hub.add(7, 100, "spoke_a", "alice")

    def test_unknown_spoke(self, hub, usdc):
        with pytest.raises(SpokeNotListed):
            hub.add(usdc, 100, "spoke_z", "alice")

    def test_frozen_asset_rejects_add(self, hub, usdc):
        set_flags(hub, usdc, frozen=True)
        with pytest.raises(AssetFrozen):
            hub.add(usdc, 100, "spoke_a", "alice")

    def test_paused_asset_rejects_add(self, hub, usdc):
        set_flags(hub, usdc, paused=True)
        with pytest.raises(AssetPaused):
            hub.add(usdc, 100, "spoke_a", "alice")

    def test_inactive_asset_rejects_add(self, hub, usdc):
        set_flags(hub, usdc, active=False)
        with pytest.raises(AssetNotActive):
            hub.add(usdc, 100, "spoke_a", "alice")

    def test_inactive_spoke_rejects_add(self, hub, usdc):
        hub.update_spoke_config(usdc, "spoke_a", SpokeConfig(active=False))
        with pytest.raises(SpokeNotActive):
            hub.add(usdc, 100, "spoke_a", "alice")

    def test_amount_worth_zero_shares(self, hub, borrowed):
        hub.advance_time(T0 + ONE_YEAR)
        with pytest.raises(InvalidSharesAmount):
            hub.add(borrowed, 1, "spoke_a", "alice")

    def test_supply_emits_supply_event(self, hub, usdc):
        hub.supply(usdc, 100, "spoke_a", "alice")
        assert hub.event_log[-1].event_type == EventType.SUPPLY
        assert hub.event_log[-1].data['amount'] == 100

    def test_unfunded_sender_leaves_no_trace(self, hub, usdc):
        events_before = len(hub.event_log)
        with pytest.raises(InsufficientBalance):
            hub.add(usdc, 100, "spoke_a", "dave")
        assert hub.get_asset(usdc).supplied_shares == 0
        assert len(hub.event_log) == events_before
        assert_accounting(hub)


# ============================================================================
# REMOVE / WITHDRAW
# ============================================================================

class TestRemove:

    def test_partial_remove(self, hub, usdc, custody):
        hub.add(usdc, 1_000, "spoke_a", "alice")
        burned = hub.remove(usdc, 400, "spoke_a", "alice")

        assert burned == 400
        assert hub.get_spoke_account(usdc, "spoke_a").supplied_shares == 600
        assert hub.get_asset(usdc).available_liquidity == 600
        assert custody.balance_of("alice", "USDC") == FUNDING - 600
        assert_accounting(hub)

    def test_more_than_supplied(self, hub, usdc):
        hub.add(usdc, 1_000, "spoke_a", "alice")
        with pytest.raises(SuppliedAmountExceeded) as exc_info:
            hub.remove(usdc, 1_001, "spoke_a", "alice")
        assert exc_info.value.available == 1_000

    def test_more_than_liquidity(self, hub, borrowed):
        with pytest.raises(NotAvailableLiquidity) as exc_info:
            hub.remove(borrowed, 700_000, "spoke_a", "alice")
        assert exc_info.value.available == 600_000

    def test_remove_to_hub_itself(self, hub, usdc):
        hub.add(usdc, 1_000, "spoke_a", "alice")
        with pytest.raises(InvalidToAddress):
            hub.remove(usdc, 100, "spoke_a", hub.address)

    def test_zero_amount(self, hub, usdc):
        with pytest.raises(InvalidRemoveAmount):
            hub.remove(usdc, 0, "spoke_a", "alice")

    def test_withdraw_zero_amount(self, hub, usdc):
        with pytest.raises(InvalidWithdrawAmount):
            hub.withdraw(usdc, 0, "spoke_a", "alice")

    def test_frozen_asset_allows_remove(self, hub, usdc):
        hub.add(usdc, 1_000, "spoke_a", "alice")
        set_flags(hub, usdc, frozen=True)
        assert hub.remove(usdc, 1_000, "spoke_a", "alice") == 1_000

    def test_paused_asset_rejects_remove(self, hub, usdc):
        hub.add(usdc, 1_000, "spoke_a", "alice")
        set_flags(hub, usdc, paused=True)
        with pytest.raises(AssetPaused):
            hub.remove(usdc, 1_000, "spoke_a", "alice")

    def test_supplier_earns_interest(self, hub, borrowed):
        hub.advance_time(T0 + ONE_YEAR)
        # 600_000 idle + 440_000 base + 4_000 premium
        assert hub.get_spoke_supplied_amount(borrowed, "spoke_a") == 1_044_000

    def test_withdraw_emits_withdraw_event(self, hub, usdc):
        hub.add(usdc, 1_000, "spoke_a", "alice")
        hub.withdraw(usdc, 500, "spoke_a", "alice")
        assert hub.event_log[-1].event_type == EventType.WITHDRAW


# ============================================================================
# DRAW
# ============================================================================

class TestDraw:

    def test_draw_mints_drawn_shares(self, hub, borrowed, custody):
        asset = hub.get_asset(borrowed)
        account = hub.get_spoke_account(borrowed, "spoke_b")

        assert asset.base_drawn_shares == 400_000
        assert asset.available_liquidity == 600_000
        assert account.drawn_shares == 400_000
        assert custody.balance_of("bob", "USDC") == FUNDING + 400_000
        assert_accounting(hub)

    def test_draw_opens_premium_stream(self, hub, borrowed):
        account = hub.get_spoke_account(borrowed, "spoke_b")
        assert account.risk_premium == 1_000
        assert account.premium_shares == 40_000
        assert account.premium_offset == 40_000
        assert hub.get_asset(borrowed).risk_premium == 1_000

    def test_risk_premium_is_debt_weighted(self, hub, borrowed):
        hub.draw(borrowed, 400_000, "spoke_a", "alice", risk_premium=3_000)
        assert hub.get_asset(borrowed).risk_premium == 2_000
        assert blend_risk_premium(1_000, 400_000, 3_000, 400_000) == 2_000

    def test_redraw_rebases_whole_account_premium(self, hub, usdc):
        hub.add(usdc, 1_000_000, "spoke_a", "alice")
        hub.draw(usdc, 100_000, "spoke_b", "bob", risk_premium=10_000)
        hub.draw(usdc, 1, "spoke_b", "bob", risk_premium=0)

        asset = hub.get_asset(usdc)
        assert asset.premium_shares == 0
        assert asset.risk_premium == 0
        assert hub.effective_borrow_rate(usdc) == asset.base_borrow_rate

    def test_more_than_available(self, hub, borrowed):
        with pytest.raises(NotAvailableLiquidity) as exc_info:
            hub.draw(borrowed, 600_001, "spoke_a", "alice")
        assert exc_info.value.available == 600_000

    def test_draw_cap_exceeded(self, hub, usdc):
        hub.add(usdc, 1_000, "spoke_a", "alice")
        hub.update_spoke_config(usdc, "spoke_b", SpokeConfig(draw_cap=100))
        with pytest.raises(DrawCapExceeded) as exc_info:
            hub.draw(usdc, 101, "spoke_b", "bob")
        assert exc_info.value.cap == 100
        assert hub.get_asset(usdc).base_drawn_shares == 0

    def test_zero_amount(self, hub, usdc):
        with pytest.raises(InvalidDrawAmount):
            hub.draw(usdc, 0, "spoke_a", "alice")

    def test_draw_to_hub_itself(self, hub, usdc):
        hub.add(usdc, 1_000, "spoke_a", "alice")
        with pytest.raises(InvalidToAddress):
            hub.draw(usdc, 100, "spoke_b", hub.address)

    def test_negative_risk_premium(self, hub, usdc):
        hub.add(usdc, 1_000, "spoke_a", "alice")
        with pytest.raises(InvalidPremiumChange):
            hub.draw(usdc, 100, "spoke_b", "bob", risk_premium=-1)

    def test_frozen_asset_rejects_draw(self, hub, usdc):
        hub.add(usdc, 1_000, "spoke_a", "alice")
        set_flags(hub, usdc, frozen=True)
        with pytest.raises(AssetFrozen):
            hub.draw(usdc, 100, "spoke_b", "bob")

    def test_first_draw_starts_accrual_clock(self, hub, usdc):
        hub.add(usdc, 1_000_000, "spoke_a", "alice")
        hub.advance_time(T0 + 30 * ONE_DAY)
        hub.draw(usdc, 400_000, "spoke_b", "bob")
        assert hub.get_asset(usdc).last_update_timestamp == T0 + 30 * ONE_DAY

        hub.advance_time(T0 + 30 * ONE_DAY + ONE_YEAR)
        assert hub.get_spoke_debt(usdc, "spoke_b") == (440_000, 0)

    def test_debt_grows_with_premium(self, hub, borrowed):
        hub.advance_time(T0 + ONE_YEAR)
        assert hub.get_spoke_debt(borrowed, "spoke_b") == (440_000, 4_000)
        assert hub.get_asset_debt(borrowed) == (440_000, 4_000)


# ============================================================================
# RESTORE
# ============================================================================

class TestRestore:

    def test_restore_below_premium_only_reduces_premium(self, hub, borrowed):
        hub.advance_time(T0 + ONE_YEAR)
        result = hub.restore(borrowed, 2_000, "spoke_b", "bob")

        assert result.premium_restored == 2_000
        assert result.base_restored == 0
        assert result.shares_burned == 0
        assert hub.get_spoke_debt(borrowed, "spoke_b") == (440_000, 2_000)
        assert hub.get_spoke_account(borrowed, "spoke_b").drawn_shares == 400_000

    def test_restore_spills_into_base(self, hub, borrowed):
        hub.advance_time(T0 + ONE_YEAR)
        result = hub.restore(borrowed, 14_000, "spoke_b", "bob")

        assert result.premium_restored == 4_000
        assert result.base_restored == 10_000
        assert result.shares_burned == 10_000 * 10 // 11
        base, premium = hub.get_spoke_debt(borrowed, "spoke_b")
        assert 430_000 <= base <= 430_001
        assert premium <= 1
        assert_accounting(hub)

    def test_full_restore_clears_debt(self, hub, borrowed, custody):
        hub.advance_time(T0 + ONE_YEAR)
        result = hub.restore(borrowed, 444_000, "spoke_b", "bob")

        account = hub.get_spoke_account(borrowed, "spoke_b")
        assert result.total_restored == 444_000
        assert result.shares_burned == 400_000
        assert account.drawn_shares == 0
        assert account.premium_shares == 0
        assert account.premium_offset == 0
        assert account.realized_premium == 0
        assert hub.get_asset_debt(borrowed) == (0, 0)
        assert custody.balance_of("bob", "USDC") == FUNDING + 400_000 - 444_000
        assert_accounting(hub)

    def test_surplus_restore(self, hub, borrowed):
        hub.advance_time(T0 + ONE_YEAR)
        with pytest.raises(SurplusAmountRestored) as exc_info:
            hub.restore(borrowed, 444_001, "spoke_b", "bob")
        assert exc_info.value.max_restorable == 444_000

    def test_restore_without_debt(self, hub, borrowed):
        with pytest.raises(SurplusAmountRestored) as exc_info:
            hub.restore(borrowed, 1, "spoke_a", "alice")
        assert exc_info.value.max_restorable == 0

    def test_zero_amount(self, hub, borrowed):
        with pytest.raises(InvalidRestoreAmount):
            hub.restore(borrowed, 0, "spoke_b", "bob")

    def test_restore_from_hub_itself(self, hub, borrowed):
        with pytest.raises(InvalidFromAddress):
            hub.restore(borrowed, 100, "spoke_b", hub.address)

    def test_frozen_asset_allows_restore(self, hub, borrowed):
        set_flags(hub, borrowed, frozen=True)
        result = hub.restore(borrowed, 100_000, "spoke_b", "bob")
        assert result.base_restored == 100_000

    def test_restore_re_weights_risk_premium(self, hub, borrowed):
        hub.draw(borrowed, 100_000, "spoke_a", "alice", risk_premium=5_000)
        assert hub.get_asset(borrowed).risk_premium == 1_800

        hub.restore(borrowed, 100_000, "spoke_a", "alice")
        assert hub.get_asset(borrowed).risk_premium == 1_000

    def test_base_part_too_small_for_a_share(self, hub, borrowed, custody):
        hub.advance_time(T0 + ONE_YEAR)
        account = hub.get_spoke_account(borrowed, "spoke_b")
        balance = custody.balance_of("bob", "USDC")

        # 4_000 premium first, then 1 unit of base at index 1.1 burns 0 shares
        with pytest.raises(InvalidSharesAmount):
            hub.restore(borrowed, 4_001, "spoke_b", "bob")

        assert hub.get_spoke_account(borrowed, "spoke_b") == account
        assert hub.get_spoke_debt(borrowed, "spoke_b") == (440_000, 4_000)
        assert custody.balance_of("bob", "USDC") == balance


# ============================================================================
# PAY FEE
# ============================================================================

class TestPayFee:

    def test_moves_shares_to_fee_receiver(self, hub, usdc):
        hub.add(usdc, 1_000, "spoke_a", "alice")
        hub.pay_fee(usdc, 100, "spoke_a")

        assert hub.get_spoke_account(usdc, "spoke_a").supplied_shares == 900
        assert hub.get_spoke_account(usdc, "treasury").supplied_shares == 100
        assert hub.get_asset(usdc).available_liquidity == 1_000
        assert_accounting(hub)

    def test_zero_shares(self, hub, usdc):
        with pytest.raises(InvalidFeeShares):
            hub.pay_fee(usdc, 0, "spoke_a")

    def test_more_than_held(self, hub, usdc):
        hub.add(usdc, 1_000, "spoke_a", "alice")
        with pytest.raises(SuppliedAmountExceeded) as exc_info:
            hub.pay_fee(usdc, 1_001, "spoke_a")
        assert exc_info.value.available == 1_000


# ============================================================================
# REFRESH PREMIUM
# ============================================================================

class TestRefreshPremium:

    def test_only_spoke_itself(self, hub, borrowed):
        with pytest.raises(Unauthorized):
            hub.refresh_premium(borrowed, "spoke_b", 0, 0, 0, caller="spoke_a")

    def test_realize_accrued_premium(self, hub, borrowed):
        hub.advance_time(T0 + ONE_YEAR)
        hub.refresh_premium(borrowed, "spoke_b", 0, 4_000, 4_000, caller="spoke_b")

        account = hub.get_spoke_account(borrowed, "spoke_b")
        assert account.premium_offset == 44_000
        assert account.realized_premium == 4_000
        assert hub.get_spoke_debt(borrowed, "spoke_b") == (440_000, 4_000)
        assert hub.event_log[-1].event_type == EventType.REFRESH_PREMIUM
        assert_accounting(hub)

    def test_debt_increase_rejected(self, hub, borrowed):
        hub.advance_time(T0 + ONE_YEAR)
        with pytest.raises(InvalidPremiumChange):
            hub.refresh_premium(borrowed, "spoke_b", 0, 0, 10, caller="spoke_b")
        assert hub.get_spoke_account(borrowed, "spoke_b").realized_premium == 0

    def test_negative_shares_rejected(self, hub, borrowed):
        with pytest.raises(InvalidPremiumChange):
            hub.refresh_premium(borrowed, "spoke_b", -50_000, 0, 0, caller="spoke_b")

    def test_offset_above_value_rejected(self, hub, borrowed):
        hub.advance_time(T0 + ONE_YEAR)
        with pytest.raises(InvalidPremiumChange):
            hub.refresh_premium(borrowed, "spoke_b", 0, 5_000, 5_000, caller="spoke_b")

    def test_offset_above_asset_share_value_rejected(self, hub, borrowed):
        hub.advance_time(T0 + ONE_YEAR)
        # 40_001 premium shares are worth 44_001.1, the offset takes the rounded-up 44_002
        hub.refresh_premium(borrowed, "spoke_b", 1, 4_002, 4_000, caller="spoke_b")
        assert hub.get_spoke_debt(borrowed, "spoke_b") == (440_000, 4_000)

        # 1 share is worth 1.1 and takes an offset of 2, but 40_002 shares round up to 44_003
        with pytest.raises(InvalidPremiumChange):
            hub.refresh_premium(borrowed, "spoke_a", 1, 2, 0, caller="spoke_a")

        assert hub.get_spoke_account(borrowed, "spoke_a").premium_shares == 0
        assert hub.get_asset_debt(borrowed) == (440_000, 4_000)
        assert_accounting(hub)


# ============================================================================
# ACCRUE
# ============================================================================

class TestAccrue:

    def test_accrue_updates_index(self, hub, borrowed):
        hub.advance_time(T0 + ONE_YEAR)
        result = hub.accrue(borrowed)

        assert result.accrued
        assert hub.get_asset(borrowed).base_debt_index == RAY * 11 // 10
        assert hub.get_asset(borrowed).last_update_timestamp == T0 + ONE_YEAR
        assert hub.event_log[-1].event_type == EventType.DRAWN_INDEX_UPDATE

    def test_second_accrue_is_noop(self, hub, borrowed):
        hub.advance_time(T0 + ONE_YEAR)
        hub.accrue(borrowed)
        before = hub.get_asset(borrowed)
        events = len(hub.event_log)

        result = hub.accrue(borrowed)
        assert not result.accrued
        assert hub.get_asset(borrowed) == before
        assert len(hub.event_log) == events

    @pytest.mark.parametrize("draws", [
        [("spoke_b", 100_000, 10_000), ("spoke_b", 1, 0)],
        [("spoke_a", 100_000, 10_000), ("spoke_b", 50_000, 2_000)],
        [("spoke_a", 100_000, 0), ("spoke_b", 100_000, 5_000)],
    ])
    def test_growth_follows_effective_rate(self, hub, usdc, draws):
        hub.add(usdc, 1_000_000, "spoke_a", "alice")
        for spoke, amount, risk_premium in draws:
            hub.draw(usdc, amount, spoke, "bob", risk_premium=risk_premium)
        rate = hub.effective_borrow_rate(usdc)
        debt = sum(hub.get_asset_debt(usdc))

        hub.advance_time(T0 + ONE_YEAR)
        growth = sum(hub.get_asset_debt(usdc)) - debt
        assert abs(growth - mul_div(debt, rate, RAY)) <= 2

    def test_idle_pool_does_not_accrue(self, hub, usdc):
        hub.add(usdc, 1_000, "spoke_a", "alice")
        hub.advance_time(T0 + ONE_YEAR)
        assert not hub.accrue(usdc).accrued
        assert hub.get_asset(usdc).last_update_timestamp == T0

    def test_liquidity_fee_goes_to_fee_receiver(self, hub):
        asset_id = list_asset(hub, liquidity_fee=1_000)
        hub.add(asset_id, 1_000_000, "spoke_a", "alice")
        hub.draw(asset_id, 400_000, "spoke_b", "bob")
        hub.advance_time(T0 + ONE_YEAR)

        previewed = hub.get_spoke_supplied_amount(asset_id, "treasury")
        result = hub.accrue(asset_id)

        # 40_000 growth, 4_000 fee priced against 1_036_000 pool value
        assert result.fee_amount == 4_000
        assert result.fee_shares == 4_000 * 1_000_000 // 1_036_000
        assert hub.get_spoke_account(asset_id, "treasury").supplied_shares == result.fee_shares
        assert hub.get_spoke_supplied_amount(asset_id, "treasury") == previewed
        assert 3_998 <= previewed <= 4_000
        assert_accounting(hub)
