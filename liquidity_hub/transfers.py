"""
transfers.py - Underlying value custody

The hub does not move tokens itself; it asks a ValueTransfer collaborator
once an operation has committed. CustodyBook is an in-memory implementation
that keeps balances per (address, underlying), so simulations can check that
the hub's custody always equals its available liquidity.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Dict, Tuple


class InsufficientBalance(Exception):
    """Raised when an address cannot cover a transfer."""
    pass


class CustodyBook:
    """
    Balance book for underlying tokens.

    Addresses may be funded with mint(); every other change is a transfer
    between two addresses, so the total of each underlying is conserved.
    """

    def __init__(self):
        self.balances: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))

    def mint(self, underlying: str, to_address: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"Cannot mint a negative amount: {amount}")
        self.balances[to_address][underlying] += amount

    def balance_of(self, address: str, underlying: str) -> int:
        return self.balances.get(address, {}).get(underlying, 0)

    def total_supply(self, underlying: str) -> int:
        return sum(bals.get(underlying, 0) for bals in self.balances.values())

    def _transfer(self, underlying: str, from_address: str, to_address: str, amount: int) -> None:
        available = self.balance_of(from_address, underlying)
        if available < amount:
            raise InsufficientBalance(
                f"{from_address} holds {available} {underlying}, needs {amount}"
            )
        self.balances[from_address][underlying] -= amount
        self.balances[to_address][underlying] += amount

    # ValueTransfer protocol

    def pull(self, underlying: str, from_address: str, to_address: str, amount: int) -> None:
        self._transfer(underlying, from_address, to_address, amount)

    def push(self, underlying: str, from_address: str, to_address: str, amount: int) -> None:
        self._transfer(underlying, from_address, to_address, amount)

    def snapshot(self) -> Dict[Tuple[str, str], int]:
        return {
            (address, underlying): qty
            for address, bals in self.balances.items()
            for underlying, qty in bals.items()
            if qty
        }

    def __repr__(self):
        return f"CustodyBook({len(self.balances)} addresses)"
