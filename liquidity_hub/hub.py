"""
hub.py - Stateful Shared-Liquidity Hub

LiquidityHub is the central state manager of the lending ledger. It is the
only module that mutates asset and spoke records, so every change goes
through the same pipeline:

    validate flags -> accrue -> convert (operation rounding) -> mutate asset
    and spoke account -> check caps -> re-cache rate -> emit events

Key responsibilities:
    - Implements the HubView protocol for safe read-only access
    - Executes every operation atomically (all writes succeed or none do)
    - Keeps the asset aggregate and the spoke accounts in lockstep
    - Accrues interest lazily at the start of every mutating call
    - Records every change notification in the event log
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from .access import OpenAccessPolicy
from .accounts import Asset, AssetConfig, SpokeAccount, SpokeConfig
from .core import (
    MAX_ASSET_DECIMALS, MAX_UINT, PERCENTAGE_FACTOR, Rounding,
    EventType, HubEvent,
    AccessPolicy, InterestRateStrategy, ValueTransfer,
    # Exceptions
    InvalidAddAmount, InvalidDrawAmount, InvalidRestoreAmount, InvalidRemoveAmount,
    InvalidWithdrawAmount, InvalidSharesAmount, InvalidFeeShares,
    InvalidFromAddress, InvalidToAddress, InvalidAssetDecimals, InvalidAssetAddress,
    InvalidFeeReceiver, InvalidSpoke, InvalidPremiumChange,
    SpokeNotActive, AssetNotActive, AssetPaused, AssetFrozen,
    AssetNotListed, SpokeNotListed, Unauthorized,
    SupplyCapExceeded, DrawCapExceeded,
    NotAvailableLiquidity, SuppliedAmountExceeded, SurplusAmountRestored,
)
from .interest import AccrualResult, calculate_accrual, query_borrow_rate
from .risk_premium import (
    PremiumDelta, effective_borrow_rate, premium_share_ratio,
    rebase_premium, split_restore_amount,
)
from .shares_math import (
    shares_for_add, shares_for_draw, shares_for_remove, shares_for_restore,
    to_drawn_assets, to_drawn_shares, to_supply_assets, to_supply_shares,
)

# Highest risk premium a spoke may draw at (1000%).
MAX_RISK_PREMIUM = 10 * PERCENTAGE_FACTOR


@dataclass(frozen=True, slots=True)
class RestoreResult:
    """How a restore was split between premium and base debt."""
    premium_restored: int
    base_restored: int
    shares_burned: int

    @property
    def total_restored(self) -> int:
        return self.premium_restored + self.base_restored


@dataclass(frozen=True, slots=True)
class _Transfer:
    direction: str  # "pull" into the hub, "push" out of it
    underlying: str
    from_address: str
    to_address: str
    amount: int


@dataclass(slots=True)
class _Snapshot:
    assets: Dict[int, Asset]
    spoke_accounts: Dict[int, Dict[str, SpokeAccount]]
    event_count: int
    next_sequence: int
    next_asset_id: int


class LiquidityHub:
    """
    Multi-asset liquidity hub shared by several spokes.

    Implements the HubView protocol, so the hub can be passed to pure
    functions that only read from it.

    Design Principles:
        - Pull accrual: no background process; accrue() runs inline at the
          start of every mutating operation.
        - All-or-nothing: every operation runs in an atomic scope. Any
          exception restores all records touched so far, including records
          of a second asset touched by the same liquidation, also when the
          operation fails inside a caller's open scope.
        - Transfers last: underlying value moves only after the scope has
          succeeded.

    Thread Safety:
        Not thread-safe. A hub is a single writer; callers must serialise
        access (one hub per thread, or one lock around the hub).

    Example:
        hub = LiquidityHub("main", verbose=False)
        usdc = hub.add_asset("USDC", 6, fee_receiver="treasury",
                             ir_strategy=FixedRateStrategy(RAY // 20))
        hub.add_spoke(usdc, "spoke_a")
        hub.add(usdc, 1_000_000, "spoke_a", from_address="alice")
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        access_policy: Optional[AccessPolicy] = None,
        value_transfer: Optional[ValueTransfer] = None,
        address: Optional[str] = None,
    ):
        """
        Create a hub.

        Args:
            name: Hub identifier
            initial_time: Starting time (default: 1970-01-01)
            verbose: Print registrations, events and rejections (default: True)
            access_policy: Gate for configuration calls (default: open)
            value_transfer: Custody collaborator; None disables transfers
            address: Address the hub holds custody under (default: "hub:<name>")
        """
        self.name = name
        self.address = address or f"hub:{name}"
        self.verbose = verbose
        self.access_policy: AccessPolicy = access_policy or OpenAccessPolicy()
        self.value_transfer = value_transfer
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)

        self.assets: Dict[int, Asset] = {}
        self.spoke_accounts: Dict[int, Dict[str, SpokeAccount]] = {}
        self.event_log: List[HubEvent] = []
        self._listeners: List[Callable[[HubEvent], None]] = []
        self._next_sequence = 0
        self._next_asset_id = 0

        self._scope_depth = 0
        self._pending_transfers: List[_Transfer] = []

    # ========================================================================
    # HubView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the hub."""
        return self._current_time

    def get_asset(self, asset_id: int) -> Asset:
        """
        Return a copy of the stored asset record.

        The copy reflects the last accrual; use the debt/supply queries for
        values as of current_time.

        Raises:
            AssetNotListed: If the asset does not exist
        """
        return self._require_asset(asset_id).clone()

    def get_spoke_account(self, asset_id: int, spoke: str) -> SpokeAccount:
        """Return a copy of the stored spoke account record."""
        return self._require_spoke(asset_id, spoke).clone()

    def get_spoke_debt(self, asset_id: int, spoke: str) -> Tuple[int, int]:
        """Return (base_debt, premium_debt) of a spoke as of current_time."""
        asset, _ = self._preview(asset_id)
        account = self._require_spoke(asset_id, spoke)
        index = asset.base_debt_index
        return account.base_debt(index), account.premium_debt(index)

    def get_spoke_supplied_amount(self, asset_id: int, spoke: str) -> int:
        """Underlying value of a spoke's supply shares as of current_time (rounded down)."""
        asset, accrual = self._preview(asset_id)
        account = self._require_spoke(asset_id, spoke)
        shares = account.supplied_shares
        if spoke == asset.config.fee_receiver:
            shares += accrual.fee_shares
        return to_supply_assets(shares, asset.total_supplied_assets(), asset.supplied_shares)

    # ========================================================================
    # QUERIES
    # ========================================================================

    def list_assets(self) -> List[int]:
        return sorted(self.assets.keys())

    def list_spokes(self, asset_id: int) -> List[str]:
        self._require_asset(asset_id)
        return sorted(self.spoke_accounts[asset_id].keys())

    def is_spoke_listed(self, asset_id: int, spoke: str) -> bool:
        return spoke in self.spoke_accounts.get(asset_id, {})

    def get_spoke_total_debt(self, asset_id: int, spoke: str) -> int:
        base, premium = self.get_spoke_debt(asset_id, spoke)
        return base + premium

    def get_asset_debt(self, asset_id: int) -> Tuple[int, int]:
        """Return (base_debt, premium_debt) of an asset as of current_time."""
        asset, _ = self._preview(asset_id)
        return asset.base_debt(), asset.premium_debt()

    def total_supplied_assets(self, asset_id: int) -> int:
        asset, _ = self._preview(asset_id)
        return asset.total_supplied_assets()

    def supply_exchange_ratio(self, asset_id: int) -> Tuple[int, int]:
        """Return (total_supplied_assets, total_supplied_shares) as of current_time."""
        asset, _ = self._preview(asset_id)
        return asset.total_supplied_assets(), asset.supplied_shares

    def convert_to_supplied_assets(self, asset_id: int, shares: int) -> int:
        asset, _ = self._preview(asset_id)
        return to_supply_assets(shares, asset.total_supplied_assets(), asset.supplied_shares)

    def convert_to_supplied_shares(self, asset_id: int, amount: int) -> int:
        asset, _ = self._preview(asset_id)
        return to_supply_shares(amount, asset.total_supplied_assets(), asset.supplied_shares)

    def convert_to_drawn_assets(self, asset_id: int, shares: int) -> int:
        asset, _ = self._preview(asset_id)
        return to_drawn_assets(shares, asset.base_debt_index, Rounding.CEIL)

    def convert_to_drawn_shares(self, asset_id: int, amount: int) -> int:
        asset, _ = self._preview(asset_id)
        return to_drawn_shares(amount, asset.base_debt_index, Rounding.FLOOR)

    def effective_borrow_rate(self, asset_id: int) -> int:
        """Base rate plus the blended risk premium on top of it (RAY)."""
        asset = self._require_asset(asset_id)
        return effective_borrow_rate(asset.base_borrow_rate, asset.risk_premium)

    def utilization(self, asset_id: int) -> Tuple[int, int]:
        """Return (total_debt, total_supplied_assets) as of current_time."""
        asset, _ = self._preview(asset_id)
        return asset.total_debt(), asset.total_supplied_assets()

    def verify_accounting(self) -> Dict[str, Any]:
        """
        Verify that the hub aggregate equals the sum of its spoke accounts.

        For every asset checks supplied shares, drawn shares and the premium
        triple. When the value transfer collaborator exposes balance_of(),
        also checks that the hub's custody of each underlying equals the
        available liquidity of the assets using it.

        Returns:
            Dict with keys:
            - 'valid': bool - True if every check holds
            - 'discrepancies': List[Dict] - one entry per failed check

        Example:
            result = hub.verify_accounting()
            assert result['valid'], result['discrepancies']
        """
        discrepancies = []
        pairs = (
            ("supplied_shares", "supplied_shares"),
            ("base_drawn_shares", "drawn_shares"),
            ("premium_shares", "premium_shares"),
            ("premium_offset", "premium_offset"),
            ("realized_premium", "realized_premium"),
        )
        liquidity_by_underlying: Dict[str, int] = {}
        for asset_id in sorted(self.assets):
            asset = self.assets[asset_id]
            accounts = self.spoke_accounts[asset_id].values()
            for asset_field, account_field in pairs:
                expected = getattr(asset, asset_field)
                actual = sum(getattr(a, account_field) for a in accounts)
                if expected != actual:
                    discrepancies.append({
                        'asset_id': asset_id,
                        'field': asset_field,
                        'asset': expected,
                        'spokes': actual,
                    })
            for account in accounts:
                for _, account_field in pairs:
                    if getattr(account, account_field) < 0:
                        discrepancies.append({
                            'asset_id': asset_id,
                            'spoke': account.spoke,
                            'field': account_field,
                            'error': 'negative',
                        })
            liquidity_by_underlying[asset.underlying] = (
                liquidity_by_underlying.get(asset.underlying, 0) + asset.available_liquidity
            )

        balance_of = getattr(self.value_transfer, "balance_of", None)
        if balance_of is not None:
            for underlying, liquidity in sorted(liquidity_by_underlying.items()):
                held = balance_of(self.address, underlying)
                if held != liquidity:
                    discrepancies.append({
                        'underlying': underlying,
                        'field': 'custody',
                        'asset': liquidity,
                        'custody': held,
                    })

        return {
            'valid': len(discrepancies) == 0,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the hub's logical clock. Time can only move forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # NOTIFICATIONS
    # ========================================================================

    def subscribe(self, listener: Callable[[HubEvent], None]) -> None:
        """Register a callback invoked with every committed event."""
        self._listeners.append(listener)

    def emit(
        self,
        event_type: EventType,
        asset_id: Optional[int] = None,
        spoke: Optional[str] = None,
        **data: Any,
    ) -> HubEvent:
        """
        Append an event to the log.

        Inside an atomic scope the event is discarded again if the scope
        fails; listeners only see it once the scope commits.
        """
        event = HubEvent(
            event_type=event_type,
            asset_id=asset_id,
            spoke=spoke,
            timestamp=self._current_time,
            sequence_number=self._next_sequence,
            data=data,
        )
        self._next_sequence += 1
        self.event_log.append(event)
        if self._scope_depth == 0:
            self._publish([event])
        return event

    def _publish(self, events: Sequence[HubEvent]) -> None:
        for event in events:
            if self.verbose:
                print(f"✓ {event!r}")
            for listener in self._listeners:
                listener(event)

    # ========================================================================
    # ATOMIC SCOPE
    # ========================================================================

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """
        Run a block of hub operations as one all-or-nothing unit.

        Scopes nest: an inner scope joins the outermost one, so a
        liquidation touching two assets commits or rolls back as a whole.
        An inner scope that raises is rolled back on its own, so a caller
        that catches the error keeps a consistent hub inside its scope.
        Queued value transfers are executed when the outermost scope
        succeeds; if one of them fails, those already executed are reversed
        and the hub state is rolled back.
        """
        if self._scope_depth > 0:
            snapshot = self._take_snapshot()
            pending = len(self._pending_transfers)
            self._scope_depth += 1
            try:
                yield
            except Exception:
                self._restore_snapshot(snapshot)
                del self._pending_transfers[pending:]
                raise
            finally:
                self._scope_depth -= 1
            return

        snapshot = self._take_snapshot()
        self._scope_depth = 1
        self._pending_transfers = []
        try:
            yield
            self._flush_transfers()
        except Exception as exc:
            self._restore_snapshot(snapshot)
            if self.verbose:
                print(f"✗ REJECTED: {exc!r}")
            raise
        finally:
            self._scope_depth = 0
            self._pending_transfers = []
        self._publish(self.event_log[snapshot.event_count:])

    def _take_snapshot(self) -> _Snapshot:
        return _Snapshot(
            assets={asset_id: asset.clone() for asset_id, asset in self.assets.items()},
            spoke_accounts={
                asset_id: {spoke: account.clone() for spoke, account in accounts.items()}
                for asset_id, accounts in self.spoke_accounts.items()
            },
            event_count=len(self.event_log),
            next_sequence=self._next_sequence,
            next_asset_id=self._next_asset_id,
        )

    def _restore_snapshot(self, snapshot: _Snapshot) -> None:
        self.assets = snapshot.assets
        self.spoke_accounts = snapshot.spoke_accounts
        del self.event_log[snapshot.event_count:]
        self._next_sequence = snapshot.next_sequence
        self._next_asset_id = snapshot.next_asset_id

    def _queue_transfer(
        self, direction: str, underlying: str, from_address: str, to_address: str, amount: int
    ) -> None:
        if self.value_transfer is None:
            return
        self._pending_transfers.append(
            _Transfer(direction, underlying, from_address, to_address, amount)
        )

    def _flush_transfers(self) -> None:
        done: List[_Transfer] = []
        try:
            for transfer in self._pending_transfers:
                self._run_transfer(transfer)
                done.append(transfer)
        except Exception:
            for transfer in reversed(done):
                self._run_transfer(replace(
                    transfer,
                    direction="push" if transfer.direction == "pull" else "pull",
                    from_address=transfer.to_address,
                    to_address=transfer.from_address,
                ))
            raise

    def _run_transfer(self, transfer: _Transfer) -> None:
        move = self.value_transfer.pull if transfer.direction == "pull" else self.value_transfer.push
        move(transfer.underlying, transfer.from_address, transfer.to_address, transfer.amount)

    # ========================================================================
    # ADMINISTRATION (privileged)
    # ========================================================================

    def _authorize(self, caller: Optional[str], operation: str) -> None:
        if not self.access_policy.is_authorized(caller, operation):
            raise Unauthorized(f"{caller!r} may not call {operation}")

    def add_asset(
        self,
        underlying: str,
        decimals: int,
        fee_receiver: str,
        ir_strategy: InterestRateStrategy,
        liquidity_fee: int = 0,
        caller: Optional[str] = None,
    ) -> int:
        """
        List a new asset and open its fee receiver account.

        Returns:
            The new asset id (ids start at 0 and are never reused)

        Raises:
            InvalidAssetAddress, InvalidAssetDecimals, InvalidFeeReceiver,
            InvalidIrStrategy, InvalidLiquidityFee, Unauthorized
        """
        with self.atomic():
            self._authorize(caller, "add_asset")
            if not underlying or not str(underlying).strip() or underlying == self.address:
                raise InvalidAssetAddress(f"invalid underlying: {underlying!r}")
            if not isinstance(decimals, int) or not 0 <= decimals <= MAX_ASSET_DECIMALS:
                raise InvalidAssetDecimals(
                    f"decimals must be within [0, {MAX_ASSET_DECIMALS}], got {decimals!r}"
                )
            if fee_receiver == self.address:
                raise InvalidFeeReceiver("fee receiver cannot be the hub itself")
            config = AssetConfig(
                fee_receiver=fee_receiver,
                ir_strategy=ir_strategy,
                liquidity_fee=liquidity_fee,
            )

            asset_id = self._next_asset_id
            self._next_asset_id += 1
            asset = Asset(
                asset_id=asset_id,
                underlying=underlying,
                decimals=decimals,
                config=config,
                last_update_timestamp=self._current_time,
            )
            self.assets[asset_id] = asset
            self.spoke_accounts[asset_id] = {}
            asset.base_borrow_rate = query_borrow_rate(asset)

            self.emit(EventType.ASSET_ADDED, asset_id, underlying=underlying, decimals=decimals)
            self._ensure_fee_account(asset)
            self.emit(EventType.ASSET_CONFIG_UPDATED, asset_id, config=config)
            self._update_rate(asset)
        return asset_id

    def add_spoke(
        self,
        asset_id: int,
        spoke: str,
        config: Optional[SpokeConfig] = None,
        caller: Optional[str] = None,
    ) -> None:
        """
        Open an account for a spoke on an asset.

        Raises:
            AssetNotListed, InvalidSpoke, ValueError (already listed), Unauthorized
        """
        with self.atomic():
            self._authorize(caller, "add_spoke")
            self._add_spoke(asset_id, spoke, config or SpokeConfig())

    def add_spokes(
        self,
        asset_ids: Sequence[int],
        spoke: str,
        configs: Sequence[SpokeConfig],
        caller: Optional[str] = None,
    ) -> None:
        """Open accounts for one spoke on several assets at once."""
        if len(asset_ids) != len(configs):
            raise ValueError("asset_ids and configs must have the same length")
        with self.atomic():
            self._authorize(caller, "add_spokes")
            for asset_id, config in zip(asset_ids, configs):
                self._add_spoke(asset_id, spoke, config)

    def _add_spoke(self, asset_id: int, spoke: str, config: SpokeConfig) -> SpokeAccount:
        self._require_asset(asset_id)
        if not spoke or not str(spoke).strip() or spoke == self.address:
            raise InvalidSpoke(f"invalid spoke: {spoke!r}")
        if spoke in self.spoke_accounts[asset_id]:
            raise ValueError(f"Spoke {spoke} already listed on asset {asset_id}")
        account = SpokeAccount(
            asset_id=asset_id,
            spoke=spoke,
            config=config,
            last_update_timestamp=self._current_time,
        )
        self.spoke_accounts[asset_id][spoke] = account
        self.emit(EventType.SPOKE_ADDED, asset_id, spoke)
        self.emit(EventType.SPOKE_CONFIG_UPDATED, asset_id, spoke, config=config)
        return account

    def update_asset_config(
        self,
        asset_id: int,
        config: AssetConfig,
        caller: Optional[str] = None,
    ) -> None:
        """
        Replace an asset's configuration.

        Interest is accrued under the old configuration first, then the rate
        is re-queried from the (possibly new) strategy.
        """
        with self.atomic():
            self._authorize(caller, "update_asset_config")
            asset = self._require_asset(asset_id)
            if config.fee_receiver == self.address:
                raise InvalidFeeReceiver("fee receiver cannot be the hub itself")
            self._accrue(asset)
            asset.config = config
            self._ensure_fee_account(asset)
            self.emit(EventType.ASSET_CONFIG_UPDATED, asset_id, config=config)
            self._update_rate(asset)

    def update_asset_fees(
        self,
        asset_id: int,
        liquidity_fee: int,
        fee_receiver: Optional[str] = None,
        caller: Optional[str] = None,
    ) -> None:
        """Change the liquidity fee and optionally the fee receiver."""
        with self.atomic():
            self._authorize(caller, "update_asset_fees")
            asset = self._require_asset(asset_id)
            if fee_receiver == self.address:
                raise InvalidFeeReceiver("fee receiver cannot be the hub itself")
            self._accrue(asset)
            asset.config = replace(
                asset.config,
                liquidity_fee=liquidity_fee,
                fee_receiver=fee_receiver or asset.config.fee_receiver,
            )
            self._ensure_fee_account(asset)
            self.emit(EventType.ASSET_CONFIG_UPDATED, asset_id, config=asset.config)
            self._update_rate(asset)

    def update_spoke_config(
        self,
        asset_id: int,
        spoke: str,
        config: SpokeConfig,
        caller: Optional[str] = None,
    ) -> None:
        with self.atomic():
            self._authorize(caller, "update_spoke_config")
            account = self._require_spoke(asset_id, spoke)
            account.config = config
            self.emit(EventType.SPOKE_CONFIG_UPDATED, asset_id, spoke, config=config)

    # ========================================================================
    # LEDGER OPERATIONS (caller-facing)
    # ========================================================================

    def add(self, asset_id: int, amount: int, spoke: str, from_address: str) -> int:
        """
        Supply liquidity on behalf of a spoke.

        Mints supply shares (rounded down) and increases available liquidity.

        Returns:
            Supply shares minted

        Raises:
            InvalidAddAmount, InvalidFromAddress, InvalidSharesAmount,
            SupplyCapExceeded, flag and listing errors
        """
        return self._add(asset_id, amount, spoke, from_address, EventType.ADD, InvalidAddAmount)

    def supply(self, asset_id: int, amount: int, spoke: str, from_address: str) -> int:
        """Legacy entry point for add(); emits Supply instead of Add."""
        return self._add(asset_id, amount, spoke, from_address, EventType.SUPPLY, InvalidAddAmount)

    def remove(self, asset_id: int, amount: int, spoke: str, to_address: str) -> int:
        """
        Withdraw liquidity from a spoke's supply.

        Burns supply shares (rounded up) and decreases available liquidity.

        Returns:
            Supply shares burned

        Raises:
            InvalidRemoveAmount, InvalidToAddress, SuppliedAmountExceeded,
            NotAvailableLiquidity, flag and listing errors
        """
        return self._remove(asset_id, amount, spoke, to_address, EventType.REMOVE, InvalidRemoveAmount)

    def withdraw(self, asset_id: int, amount: int, spoke: str, to_address: str) -> int:
        """Legacy entry point for remove(); emits Withdraw instead of Remove."""
        return self._remove(
            asset_id, amount, spoke, to_address, EventType.WITHDRAW, InvalidWithdrawAmount
        )

    def draw(
        self,
        asset_id: int,
        amount: int,
        spoke: str,
        to_address: str,
        risk_premium: int = 0,
    ) -> int:
        """
        Borrow liquidity on behalf of a spoke.

        Mints drawn shares (rounded up), realises the spoke's accrued premium,
        re-bases its premium shares at risk_premium and re-weights the asset's
        risk premium to its premium shares over its drawn shares.

        Args:
            risk_premium: Premium (bps) the spoke's borrowers pay on top of the base rate

        Returns:
            Drawn shares minted

        Raises:
            InvalidDrawAmount, InvalidToAddress, NotAvailableLiquidity,
            DrawCapExceeded, flag and listing errors
        """
        with self.atomic():
            asset = self._require_asset(asset_id)
            self._check_amount(amount, InvalidDrawAmount)
            self._check_to(to_address)
            if not isinstance(risk_premium, int) or not 0 <= risk_premium <= MAX_RISK_PREMIUM:
                raise InvalidPremiumChange(
                    f"risk premium must be within [0, {MAX_RISK_PREMIUM}], got {risk_premium!r}"
                )
            account = self._require_spoke(asset_id, spoke)
            self._check_flags(asset, account, entering=True)

            self._accrue(asset)
            if amount > asset.available_liquidity:
                raise NotAvailableLiquidity(asset.available_liquidity)
            if asset.base_drawn_shares == 0:
                # First debt starts the accrual clock.
                asset.last_update_timestamp = self._current_time

            index = asset.base_debt_index
            shares = shares_for_draw(amount, index)

            asset.base_drawn_shares += shares
            asset.available_liquidity -= amount
            account.drawn_shares += shares
            account.last_update_timestamp = self._current_time

            delta = rebase_premium(
                account.premium_shares, account.premium_offset,
                account.drawn_shares, risk_premium, index,
            )
            self._apply_premium_delta(asset, account, delta)
            account.risk_premium = risk_premium

            cap = account.config.draw_cap
            if cap is not None:
                spoke_debt = account.base_debt(index) + account.premium_debt(index)
                if spoke_debt > cap:
                    raise DrawCapExceeded(cap)

            self._update_rate(asset)
            self._queue_transfer("push", asset.underlying, self.address, to_address, amount)
            self.emit(
                EventType.DRAW, asset_id, spoke,
                amount=amount, shares=shares, to=to_address, risk_premium=risk_premium,
            )
        return shares

    def restore(self, asset_id: int, amount: int, spoke: str, from_address: str) -> RestoreResult:
        """
        Repay a spoke's debt.

        Outstanding premium debt is consumed first; any remainder repays base
        debt, burning drawn shares (rounded down). Repaying the whole base
        debt burns every drawn share of the spoke.

        Raises:
            InvalidRestoreAmount, InvalidFromAddress,
            InvalidSharesAmount (base part too small to burn a drawn share),
            SurplusAmountRestored (carries the maximum restorable amount),
            flag and listing errors
        """
        with self.atomic():
            asset = self._require_asset(asset_id)
            self._check_amount(amount, InvalidRestoreAmount)
            self._check_from(from_address)
            account = self._require_spoke(asset_id, spoke)
            self._check_flags(asset, account, entering=False)

            self._accrue(asset)
            index = asset.base_debt_index
            base_owed = account.base_debt(index)
            premium_owed = account.premium_debt(index)
            if amount > base_owed + premium_owed:
                raise SurplusAmountRestored(base_owed + premium_owed)

            premium_restored, base_restored = split_restore_amount(amount, premium_owed)
            if base_restored == base_owed:
                shares = account.drawn_shares
            else:
                shares = shares_for_restore(base_restored, index)
                if base_restored > 0 and shares == 0:
                    raise InvalidSharesAmount(
                        f"restoring {base_restored} burns zero drawn shares"
                    )

            asset.base_drawn_shares -= shares
            account.drawn_shares -= shares
            asset.available_liquidity += amount
            account.last_update_timestamp = self._current_time

            delta = rebase_premium(
                account.premium_shares, account.premium_offset,
                account.drawn_shares, account.risk_premium, index,
                realized_premium_delta=-premium_restored,
            )
            self._apply_premium_delta(asset, account, delta)

            self._update_rate(asset)
            self._queue_transfer("pull", asset.underlying, from_address, self.address, amount)
            self.emit(
                EventType.RESTORE, asset_id, spoke,
                amount=amount, base_restored=base_restored,
                premium_restored=premium_restored, shares=shares, from_=from_address,
            )
        return RestoreResult(
            premium_restored=premium_restored,
            base_restored=base_restored,
            shares_burned=shares,
        )

    def pay_fee(self, asset_id: int, fee_shares: int, spoke: str) -> None:
        """
        Move supply shares from a spoke to the asset's fee receiver.

        Internal share transfer only: available liquidity and custody are
        untouched.

        Raises:
            InvalidFeeShares, SuppliedAmountExceeded (carries the spoke's shares)
        """
        with self.atomic():
            asset = self._require_asset(asset_id)
            self._check_amount(fee_shares, InvalidFeeShares)
            account = self._require_spoke(asset_id, spoke)
            self._check_flags(asset, account, entering=False)

            self._accrue(asset)
            if fee_shares > account.supplied_shares:
                raise SuppliedAmountExceeded(account.supplied_shares)
            receiver = self._ensure_fee_account(asset)
            account.supplied_shares -= fee_shares
            receiver.supplied_shares += fee_shares
            account.last_update_timestamp = self._current_time
            receiver.last_update_timestamp = self._current_time
            self.emit(
                EventType.PAY_FEE, asset_id, spoke,
                shares=fee_shares, fee_receiver=receiver.spoke,
            )

    def refresh_premium(
        self,
        asset_id: int,
        spoke: str,
        premium_shares_delta: int,
        premium_offset_delta: int,
        realized_premium_delta: int,
        caller: Optional[str],
    ) -> None:
        """
        Directly adjust a spoke's premium triple.

        Only the spoke itself may adjust its own account. The adjustment may
        re-distribute premium debt between accrued and realised, but may
        never raise the spoke's total debt by more than one unit of rounding.

        Raises:
            Unauthorized, InvalidPremiumChange
        """
        with self.atomic():
            if caller != spoke:
                raise Unauthorized(f"{caller!r} may not refresh premium of {spoke!r}")
            asset = self._require_asset(asset_id)
            account = self._require_spoke(asset_id, spoke)
            self._check_flags(asset, account, entering=False)

            self._accrue(asset)
            index = asset.base_debt_index
            debt_before = account.premium_debt(index)
            delta = PremiumDelta(
                premium_shares=premium_shares_delta,
                premium_offset=premium_offset_delta,
                realized_premium=realized_premium_delta,
            )
            new_shares = account.premium_shares + delta.premium_shares
            new_offset = account.premium_offset + delta.premium_offset
            new_realized = account.realized_premium + delta.realized_premium
            if min(new_shares, new_offset, new_realized) < 0:
                raise InvalidPremiumChange("premium values cannot become negative")
            if to_drawn_assets(new_shares, index) < new_offset:
                raise InvalidPremiumChange("premium offset exceeds premium share value")
            # Offsets rounded up per spoke can outgrow the value of the summed shares.
            asset_shares = asset.premium_shares + delta.premium_shares
            asset_offset = asset.premium_offset + delta.premium_offset
            if to_drawn_assets(asset_shares, index) < asset_offset:
                raise InvalidPremiumChange("asset premium offset exceeds premium share value")
            self._apply_premium_delta(asset, account, delta)
            if account.premium_debt(index) > debt_before + 1:
                raise InvalidPremiumChange("premium refresh may not increase debt")

            account.last_update_timestamp = self._current_time
            self._update_rate(asset)
            self.emit(
                EventType.REFRESH_PREMIUM, asset_id, spoke,
                premium_shares_delta=premium_shares_delta,
                premium_offset_delta=premium_offset_delta,
                realized_premium_delta=realized_premium_delta,
            )

    def accrue(self, asset_id: int) -> AccrualResult:
        """Accrue interest on an asset up to current_time."""
        with self.atomic():
            asset = self._require_asset(asset_id)
            return self._accrue(asset)

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _add(self, asset_id, amount, spoke, from_address, event_type, amount_error) -> int:
        with self.atomic():
            asset = self._require_asset(asset_id)
            self._check_amount(amount, amount_error)
            self._check_from(from_address)
            account = self._require_spoke(asset_id, spoke)
            self._check_flags(asset, account, entering=True)

            self._accrue(asset)
            shares = shares_for_add(amount, asset.total_supplied_assets(), asset.supplied_shares)
            if shares == 0:
                raise InvalidSharesAmount(f"{amount} converts to zero shares")

            asset.supplied_shares += shares
            asset.available_liquidity += amount
            account.supplied_shares += shares
            account.last_update_timestamp = self._current_time

            cap = account.config.supply_cap
            if cap is not None:
                supplied = to_supply_assets(
                    account.supplied_shares, asset.total_supplied_assets(), asset.supplied_shares
                )
                if supplied > cap:
                    raise SupplyCapExceeded(cap)

            self._update_rate(asset)
            self._queue_transfer("pull", asset.underlying, from_address, self.address, amount)
            self.emit(event_type, asset_id, spoke, amount=amount, shares=shares, from_=from_address)
        return shares

    def _remove(self, asset_id, amount, spoke, to_address, event_type, amount_error) -> int:
        with self.atomic():
            asset = self._require_asset(asset_id)
            self._check_amount(amount, amount_error)
            self._check_to(to_address)
            account = self._require_spoke(asset_id, spoke)
            self._check_flags(asset, account, entering=False)

            self._accrue(asset)
            total_assets = asset.total_supplied_assets()
            supplied = to_supply_assets(account.supplied_shares, total_assets, asset.supplied_shares)
            if amount > supplied:
                raise SuppliedAmountExceeded(supplied)
            if amount > asset.available_liquidity:
                raise NotAvailableLiquidity(asset.available_liquidity)
            shares = shares_for_remove(amount, total_assets, asset.supplied_shares)

            asset.supplied_shares -= shares
            asset.available_liquidity -= amount
            account.supplied_shares -= shares
            account.last_update_timestamp = self._current_time

            self._update_rate(asset)
            self._queue_transfer("push", asset.underlying, self.address, to_address, amount)
            self.emit(event_type, asset_id, spoke, amount=amount, shares=shares, to=to_address)
        return shares

    def _accrue(self, asset: Asset) -> AccrualResult:
        result = calculate_accrual(asset, self._current_time)
        if not result.accrued:
            return result
        asset.base_debt_index = result.new_index
        asset.last_update_timestamp = result.timestamp
        if result.fee_shares:
            receiver = self._ensure_fee_account(asset)
            asset.supplied_shares += result.fee_shares
            receiver.supplied_shares += result.fee_shares
        asset.base_borrow_rate = query_borrow_rate(asset)
        self.emit(
            EventType.DRAWN_INDEX_UPDATE, asset.asset_id,
            index=result.new_index,
            elapsed=result.elapsed,
            base_growth=result.base_growth,
            premium_growth=result.premium_growth,
            fee_amount=result.fee_amount,
            fee_shares=result.fee_shares,
        )
        return result

    def _update_rate(self, asset: Asset) -> None:
        asset.base_borrow_rate = query_borrow_rate(asset)
        self.emit(
            EventType.ASSET_UPDATED, asset.asset_id,
            index=asset.base_debt_index,
            rate=asset.base_borrow_rate,
            timestamp=self._current_time,
        )

    def _preview(self, asset_id: int) -> Tuple[Asset, AccrualResult]:
        """Copy of the asset advanced to current_time, without touching the hub."""
        asset = self._require_asset(asset_id).clone()
        result = calculate_accrual(asset, self._current_time)
        if result.accrued:
            asset.base_debt_index = result.new_index
            asset.last_update_timestamp = result.timestamp
            asset.supplied_shares += result.fee_shares
        return asset, result

    def _apply_premium_delta(self, asset: Asset, account: SpokeAccount, delta: PremiumDelta) -> None:
        for target in (account, asset):
            target.premium_shares += delta.premium_shares
            target.premium_offset += delta.premium_offset
            target.realized_premium += delta.realized_premium
        # The aggregate premium is whatever the premium shares accrue at.
        asset.risk_premium = premium_share_ratio(asset.premium_shares, asset.base_drawn_shares)

    def _ensure_fee_account(self, asset: Asset) -> SpokeAccount:
        fee_receiver = asset.config.fee_receiver
        accounts = self.spoke_accounts[asset.asset_id]
        if fee_receiver not in accounts:
            self._add_spoke(asset.asset_id, fee_receiver, SpokeConfig())
        return accounts[fee_receiver]

    def _require_asset(self, asset_id: int) -> Asset:
        if asset_id not in self.assets:
            raise AssetNotListed(f"Asset {asset_id} not listed")
        return self.assets[asset_id]

    def _require_spoke(self, asset_id: int, spoke: str) -> SpokeAccount:
        self._require_asset(asset_id)
        account = self.spoke_accounts[asset_id].get(spoke)
        if account is None:
            raise SpokeNotListed(f"Spoke {spoke} not listed on asset {asset_id}")
        return account

    @staticmethod
    def _check_amount(amount: int, error: type) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise error(f"amount must be an int, got {type(amount).__name__}")
        if amount <= 0 or amount > MAX_UINT:
            raise error(f"invalid amount: {amount}")

    def _check_from(self, from_address: str) -> None:
        if not from_address or from_address == self.address:
            raise InvalidFromAddress(f"invalid from address: {from_address!r}")

    def _check_to(self, to_address: str) -> None:
        if not to_address or to_address == self.address:
            raise InvalidToAddress(f"invalid to address: {to_address!r}")

    @staticmethod
    def _check_flags(asset: Asset, account: SpokeAccount, entering: bool) -> None:
        """Frozen assets only block operations that grow supply or debt."""
        if not asset.config.active:
            raise AssetNotActive(f"Asset {asset.asset_id} is not active")
        if asset.config.paused:
            raise AssetPaused(f"Asset {asset.asset_id} is paused")
        if entering and asset.config.frozen:
            raise AssetFrozen(f"Asset {asset.asset_id} is frozen")
        if not account.config.active:
            raise SpokeNotActive(f"Spoke {account.spoke} is not active on asset {asset.asset_id}")

    # ========================================================================
    # CLONING
    # ========================================================================

    def clone(self) -> LiquidityHub:
        """
        Create an independent copy of this hub.

        Useful to preview operations (e.g. a liquidation) without touching
        the real hub. Collaborators are shared; the event log is copied and
        the clone has no listeners or value transfer.
        """
        cloned = LiquidityHub(
            name=self.name,
            initial_time=self._current_time,
            verbose=self.verbose,
            access_policy=self.access_policy,
            value_transfer=None,
            address=self.address,
        )
        snapshot = self._take_snapshot()
        cloned.assets = snapshot.assets
        cloned.spoke_accounts = snapshot.spoke_accounts
        cloned.event_log = list(self.event_log)
        cloned._next_sequence = self._next_sequence
        cloned._next_asset_id = self._next_asset_id
        return cloned

    def __repr__(self) -> str:
        return f"LiquidityHub({self.name!r}, {len(self.assets)} assets, t={self._current_time})"
