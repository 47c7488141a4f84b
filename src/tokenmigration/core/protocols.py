"""
Collaborator Protocol interfaces.

The ledger never inherits behaviour from its collaborators; it receives them by
composition and relies only on the structural contracts below. Any object with the
right methods (an in-memory TokenLedger, a chain client, a test double) can be wired in.

Thread Safety: the campaign serialises every public operation behind one RLock, so
implementations are only ever called by a single mutator at a time.
"""

from __future__ import annotations

from typing import Any, Protocol, Tuple, runtime_checkable


@runtime_checkable
class SourceToken(Protocol):
    """A legacy token that is debited on migration-in and credited on refunds."""

    address: str

    def burn_from(self, holder: str, amount: int) -> None:
        """Destroy ``amount`` from ``holder``. Raises on insufficient balance."""
        ...

    def transfer_from(self, spender: str, sender: str, recipient: str, amount: int) -> None:
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        ...

    def balance_of(self, holder: str) -> int:
        ...

    def mint(self, recipient: str, amount: int) -> None:
        ...


@runtime_checkable
class StakingPositionProvider(Protocol):
    """Read-only view of a user's position in an external staking contract."""

    def position_of(self, user: str) -> Tuple[int, int]:
        """
        Returns:
            ``(amount, lock_end)`` where ``lock_end`` is a unix timestamp, or 0 when
            the position has no lock.
        """
        ...


@runtime_checkable
class LegacyLedger(Protocol):
    """A previous deployment whose reserved-account records can be adopted once."""

    def reserved_state(self, user: str) -> Tuple[int, int, int]:
        """
        Returns:
            ``(migrated_amount, reserved_amount, rate)`` for ``user``; all zero when
            the legacy ledger never saw the user.
        """
        ...


@runtime_checkable
class VestingSink(Protocol):
    """The single destination for every converted amount."""

    def allocate(self, caller: str, beneficiary: str, amount: int) -> None:
        ...


@runtime_checkable
class AccessGate(Protocol):
    """Capability check used by every configuration mutator."""

    def is_admin(self, caller: str) -> bool:
        ...


@runtime_checkable
class Snapshottable(Protocol):
    """State holder that can be captured and restored for all-or-nothing operations."""

    def snapshot(self) -> Any:
        ...

    def restore(self, state: Any) -> None:
        ...
