"""
Per-user reserved-account records shared by the classifier and the settler.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Optional

from tokenmigration.core.exceptions import AlreadyMigrated, ExceedsReserved


@dataclass
class ReservedAccount:
    migrated_amount: int = 0
    reserved_amount: int = 0
    locked_rate: int = 0

    @property
    def is_classified(self) -> bool:
        return self.locked_rate != 0


class ReservedAccountBook:
    """
    Lazily created ReservedAccount records.

    The book enforces the account invariants: the locked rate is written exactly once,
    migrated amounts only grow and reserved amounts only shrink after classification.
    """

    def __init__(self):
        self._accounts: Dict[str, ReservedAccount] = {}

    def get(self, user: str) -> Optional[ReservedAccount]:
        account = self._accounts.get(user)
        return replace(account) if account else None

    def view(self, user: str) -> ReservedAccount:
        """Copy of the user's record, zeroed when the user was never touched."""
        return self.get(user) or ReservedAccount()

    def _account(self, user: str) -> ReservedAccount:
        return self._accounts.setdefault(user, ReservedAccount())

    def classify(self, user: str, migrated: int, reserved: int, rate: int) -> ReservedAccount:
        account = self._account(user)
        if account.is_classified:
            raise AlreadyMigrated(
                f"{user} has already been classified at rate {account.locked_rate}.",
                details={"user": user, "locked_rate": account.locked_rate},
            )
        if rate <= 0:
            raise ValueError("Locked rate must be positive.")
        account.migrated_amount += migrated
        account.reserved_amount += reserved
        account.locked_rate = rate
        return replace(account)

    def consume_reserved(self, user: str, amount: int) -> ReservedAccount:
        """Move ``amount`` from reserved to migrated for ``user``."""
        account = self._account(user)
        if amount > account.reserved_amount:
            raise ExceedsReserved(
                f"Cannot settle {amount}: only {account.reserved_amount} reserved for {user}.",
                details={"user": user, "reserved": account.reserved_amount, "amount": amount},
            )
        account.reserved_amount -= amount
        account.migrated_amount += amount
        return replace(account)

    def __len__(self) -> int:
        return len(self._accounts)

    def snapshot(self) -> Dict[str, ReservedAccount]:
        return {user: replace(account) for user, account in self._accounts.items()}

    def restore(self, state: Dict[str, ReservedAccount]) -> None:
        self._accounts = {user: replace(account) for user, account in state.items()}
