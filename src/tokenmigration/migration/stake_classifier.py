"""
Staking snapshot classification.

A staked user does not hand over legacy tokens; instead the classifier surveys the
user's positions in a fixed set of external staking providers, splits them into an
amount that converts right away and an amount that stays reserved until the user
later sends the unlocked tokens in for reconciliation, and freezes the rate used for
that reserved part.

Classification rule for each surveyed position ``(amount, lock_end)``:

* ``lock_end > closure_boundary``             -> migratable now
* ``lock_end == 0`` and not the first provider -> migratable now
* anything else                                -> reserved

The ``lock_end == 0`` branch depends on the provider's position in the survey order,
so reordering or extending the provider list changes outcomes.

A user whose survey comes back empty is rejected with ``ZeroAmount`` and no rate is
locked, so the call can be repeated once the user opens a position; only a recorded
classification makes later calls fail ``AlreadyMigrated``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from tokenmigration.core.atomic import atomic_operation, guarded_call
from tokenmigration.core.exceptions import AlreadyMigrated, ZeroAmount
from tokenmigration.core.protocols import LegacyLedger, StakingPositionProvider
from tokenmigration.migration.ledger import ConversionRecord, MigrationLedger
from tokenmigration.migration.rate_table import SourceKind
from tokenmigration.migration.reserved_accounts import ReservedAccount, ReservedAccountBook

logger = logging.getLogger("tokenmigration.migration.stake_classifier")


@dataclass(frozen=True)
class Classification:
    migratable: int
    reserved: int


@dataclass(frozen=True)
class ClassificationResult:
    user: str
    account: ReservedAccount
    adopted_from_legacy: bool
    conversion: Optional[ConversionRecord]


def classify_positions(
    positions: Sequence[Tuple[int, int]], closure_boundary: int
) -> Classification:
    """Split surveyed ``(amount, lock_end)`` positions into migratable and reserved sums."""
    migratable = 0
    reserved = 0
    for provider_index, (amount, lock_end) in enumerate(positions):
        if lock_end > closure_boundary or (lock_end == 0 and provider_index != 0):
            migratable += amount
        else:
            reserved += amount
    return Classification(migratable=migratable, reserved=reserved)


class StakeSnapshotClassifier:
    def __init__(
        self,
        ledger: MigrationLedger,
        accounts: ReservedAccountBook,
        providers: Sequence[StakingPositionProvider],
        closure_boundary: int,
        legacy_ledger: Optional[LegacyLedger] = None,
    ):
        if not providers:
            raise ValueError("At least one staking position provider is required.")
        self.ledger = ledger
        self.accounts = accounts
        self.providers: List[StakingPositionProvider] = list(providers)
        self.closure_boundary = closure_boundary
        self.legacy_ledger = legacy_ledger

    def _survey(self, user: str) -> List[Tuple[int, int]]:
        positions = []
        for index, provider in enumerate(self.providers):
            amount, lock_end = guarded_call(f"staking provider {index}", provider.position_of, user)
            positions.append((int(amount), int(lock_end)))
        return positions

    def _legacy_state(self, user: str) -> Optional[Tuple[int, int, int]]:
        if self.legacy_ledger is None:
            return None
        migrated, reserved, rate = guarded_call("legacy ledger", self.legacy_ledger.reserved_state, user)
        return int(migrated), int(reserved), int(rate)

    def classify_and_migrate(self, user: str) -> ClassificationResult:
        """
        Classify ``user``'s staking positions, freeze their rate and convert the
        migratable part.

        Raises:
            AlreadyMigrated: the user was classified before, here or on the legacy ledger
            ZeroAmount: the user has no staking positions at all
        """
        participants = [*self.ledger.participants(), self.accounts]
        with atomic_operation(self.ledger.lock, participants, "classify_and_migrate"):
            now = self.ledger.current_time()
            existing = self.accounts.view(user)
            if existing.is_classified:
                raise AlreadyMigrated(
                    f"{user} has already migrated their staking positions.",
                    details={"user": user, "locked_rate": existing.locked_rate},
                )
            tier_index = self.ledger.ensure_active(now)

            legacy = self._legacy_state(user)
            if legacy is not None and legacy[2] != 0:
                legacy_migrated, legacy_reserved, legacy_rate = legacy
                if legacy_reserved == 0:
                    raise AlreadyMigrated(
                        f"{user} was fully settled on the legacy ledger.",
                        details={"user": user, "legacy_rate": legacy_rate},
                    )
                account = self.accounts.classify(user, legacy_migrated, legacy_reserved, legacy_rate)
                logger.info(
                    "Adopted legacy record for %s: migrated %s, reserved %s at rate %s",
                    user,
                    legacy_migrated,
                    legacy_reserved,
                    legacy_rate,
                    extra={"event": "classification.legacy_adopted", "user": user},
                )
                return ClassificationResult(user, account, True, None)

            split = classify_positions(self._survey(user), self.closure_boundary)
            if split.migratable + split.reserved == 0:
                raise ZeroAmount(f"{user} has no staking positions to migrate.", details={"user": user})

            rate = self.ledger.rate_table[tier_index].rate_for(SourceKind.STAKED)
            account = self.accounts.classify(user, split.migratable, split.reserved, rate)
            logger.info(
                "Classified %s: %s migratable, %s reserved at rate %s",
                user,
                split.migratable,
                split.reserved,
                rate,
                extra={
                    "event": "classification.recorded",
                    "user": user,
                    "migratable": split.migratable,
                    "reserved": split.reserved,
                    "rate": rate,
                },
            )

            conversion = None
            if split.migratable:
                conversion = self.ledger.convert(
                    user, split.migratable, SourceKind.STAKED, rate, tier_index, now
                )
            return ClassificationResult(user, account, False, conversion)
