"""
Migration-specific exception hierarchy.

Every failure raised by the ledger, the classifier, the settler or the vesting
schedule derives from MigrationError so callers can catch the whole family while
still matching on the precise kind. None of these are retried by the ledger itself.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class MigrationError(Exception):
    """Base exception for all migration and vesting errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the ledger could retry the operation (always False here)
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Campaign State Errors ====================


class CampaignStateError(MigrationError):
    """Raised when the campaign is not in a state that accepts migrations."""
    pass


class MigrationNotStarted(CampaignStateError):
    """Raised when a migration is attempted before the campaign start time."""
    pass


class MigrationPaused(CampaignStateError):
    """Raised when a migration is attempted while the campaign is paused."""
    pass


class MigrationFinished(CampaignStateError):
    """Raised when the clock is past the last tier boundary and no further tier exists."""
    pass


# ==================== Account Errors ====================


class AlreadyMigrated(MigrationError):
    """Raised when a user's staking snapshot has already been classified."""
    pass


class ReservedBalanceError(MigrationError):
    """Raised for reconciliation requests that do not fit the reserved balance."""
    pass


class NoReservedBalance(ReservedBalanceError):
    """Raised when a user with nothing reserved tries to settle."""
    pass


class ExceedsReserved(ReservedBalanceError):
    """Raised when consuming more than the remaining reserved amount."""
    pass


class NoUnlockedTokens(MigrationError):
    """Raised when a vesting claim has nothing unlocked to pay."""
    pass


class InsufficientBalance(MigrationError):
    """Raised when a token account lacks the balance for a debit."""
    pass


# ==================== Input and Access Errors ====================


class Unauthorized(MigrationError, PermissionError):
    """Raised when a caller lacks the role required for an operation."""

    def __init__(self, message: str, caller: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.caller = caller


class ZeroAmount(MigrationError, ValueError):
    """Raised when an amount that must be positive is zero."""
    pass


class InvalidRateTier(MigrationError, ValueError):
    """Raised when a rate tier has a non-positive rate or an out-of-range index."""
    pass


# ==================== Collaborator Errors ====================


class CollaboratorCallFailed(MigrationError):
    """Raised when an external read or transfer fails mid-operation.

    The original exception is chained as ``__cause__``; ledger state is rolled back
    before this is raised.
    """

    def __init__(self, message: str, collaborator: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.collaborator = collaborator
