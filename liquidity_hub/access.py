"""
access.py - Authorization policies for privileged configuration calls

The hub never hardcodes who may list assets or change configuration; it asks
an injected AccessPolicy. Operation names are the hub method names
(e.g. "add_asset", "update_spoke_config").
"""

from __future__ import annotations
from typing import Dict, Iterable, Optional, Set

ADMIN_OPERATIONS = frozenset({
    "add_asset",
    "add_spoke",
    "add_spokes",
    "update_asset_config",
    "update_spoke_config",
    "update_asset_fees",
})


class OpenAccessPolicy:
    """Authorizes every caller. Suitable for simulations and tests."""

    def is_authorized(self, caller: Optional[str], operation: str) -> bool:
        return True

    def __repr__(self):
        return "OpenAccessPolicy()"


class RoleAccessPolicy:
    """
    Authorizes admins for every operation and grants extra callers
    individual operations.

    Example:
        policy = RoleAccessPolicy(admins={"governance"})
        policy.grant("risk_council", "update_spoke_config")
    """

    def __init__(self, admins: Iterable[str] = ()):
        self.admins: Set[str] = set(admins)
        self.grants: Dict[str, Set[str]] = {}

    def grant(self, caller: str, operation: str) -> None:
        if operation not in ADMIN_OPERATIONS:
            raise ValueError(f"Unknown privileged operation: {operation}")
        self.grants.setdefault(caller, set()).add(operation)

    def revoke(self, caller: str, operation: str) -> None:
        self.grants.get(caller, set()).discard(operation)

    def is_authorized(self, caller: Optional[str], operation: str) -> bool:
        if caller is None:
            return False
        if caller in self.admins:
            return True
        return operation in self.grants.get(caller, set())

    def __repr__(self):
        return f"RoleAccessPolicy(admins={sorted(self.admins)})"
