"""
Migration campaign composition root.

One MigrationCampaign instance owns the whole ledger for the lifetime of the process:
it seeds the rate tiers and the admin from configuration, wires the collaborators
together and shares a single lock between every component so that each public call
runs alone.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from tokenmigration.core.config import CampaignConfig, load_config
from tokenmigration.core.protocols import LegacyLedger, SourceToken, StakingPositionProvider
from tokenmigration.migration.ledger import ConversionRecord, MigrationLedger
from tokenmigration.migration.pause import PauseSwitch
from tokenmigration.migration.rate_table import PeriodClock, RateTable, RateTier, SourceKind
from tokenmigration.migration.reconciliation import ReconciliationSettler
from tokenmigration.migration.reserved_accounts import ReservedAccount, ReservedAccountBook
from tokenmigration.migration.stake_classifier import ClassificationResult, StakeSnapshotClassifier
from tokenmigration.security.access_gate import ADMIN_ROLE, DEPOSITOR_ROLE, AccessGate, require_role
from tokenmigration.vesting.schedule import ClaimResult, VestingSchedule

logger = logging.getLogger("tokenmigration.campaign")

LEDGER_ADDRESS = "0xMigrationLedger"
VESTING_ADDRESS = "0xVestingSchedule"


class MigrationCampaign:
    def __init__(
        self,
        config: CampaignConfig,
        legacy_token: SourceToken,
        staked_token: SourceToken,
        destination_token: Any,
        providers: Sequence[StakingPositionProvider],
        legacy_ledger: Optional[LegacyLedger] = None,
        time_provider: Callable[[], int] | None = None,
        ledger_address: str = LEDGER_ADDRESS,
        vesting_address: str = VESTING_ADDRESS,
    ):
        self.config = config
        self._time_provider = time_provider or (lambda: int(time.time()))
        self.lock = threading.RLock()

        self.access_gate = AccessGate(admins=[config.admin])
        self.rate_table = RateTable(
            [RateTier(tier.period_end, tier.rate_a, tier.rate_b) for tier in config.tiers]
        )
        self.clock = PeriodClock(self.rate_table, config.start_time)
        self.pause_switch = PauseSwitch(self.access_gate, self._time_provider)

        self.vesting = VestingSchedule(
            vesting_address,
            destination_token,
            self.access_gate,
            config.vesting,
            time_provider=self._time_provider,
            lock=self.lock,
        )
        self.ledger = MigrationLedger(
            ledger_address,
            self.rate_table,
            self.clock,
            self.pause_switch,
            self.access_gate,
            self.vesting,
            {SourceKind.LEGACY: legacy_token, SourceKind.STAKED: staked_token},
            time_provider=self._time_provider,
            lock=self.lock,
        )
        self.access_gate.assign_role(config.admin, ledger_address, DEPOSITOR_ROLE)

        self.accounts = ReservedAccountBook()
        self.classifier = StakeSnapshotClassifier(
            self.ledger,
            self.accounts,
            providers,
            config.closure_boundary,
            legacy_ledger=legacy_ledger,
        )
        self.settler = ReconciliationSettler(self.ledger, self.accounts, staked_token)
        self.retired_vesting: List[VestingSchedule] = []
        logger.info(
            "Migration campaign initialized: %s tiers, start %s, admin %s",
            len(self.rate_table),
            config.start_time,
            config.admin,
            extra={"event": "campaign.initialized"},
        )

    @classmethod
    def from_config_file(cls, path: str | Path, **collaborators: Any) -> "MigrationCampaign":
        return cls(load_config(path), **collaborators)

    @require_role(ADMIN_ROLE)
    def set_vesting_sink(self, caller: str, vesting: VestingSchedule) -> None:
        """
        Route every later conversion, and every claim made through the campaign, to
        ``vesting``.

        The ledger is granted the depositor role when the new schedule shares the
        campaign's gate; a schedule behind a foreign gate must already trust the ledger.
        Allocations on the replaced schedule stay there and remain claimable on it.
        """
        with self.lock:
            gate = getattr(vesting, "access_gate", None)
            if gate is self.access_gate:
                if not gate.has_role(self.ledger.address, DEPOSITOR_ROLE):
                    gate.assign_role(caller, self.ledger.address, DEPOSITOR_ROLE)
            elif gate is None or not gate.has_role(self.ledger.address, DEPOSITOR_ROLE):
                raise ValueError(
                    f"Vesting schedule at {getattr(vesting, 'address', vesting)} "
                    f"does not accept deposits from {self.ledger.address}."
                )
            self.ledger.set_vesting_sink(caller, vesting)
            if vesting is not self.vesting:
                self.retired_vesting.append(self.vesting)
                self.vesting = vesting

    def migrate(self, user: str, amount: int, kind: SourceKind = SourceKind.LEGACY) -> ConversionRecord:
        return self.ledger.migrate(user, amount, kind)

    def classify_and_migrate(self, user: str) -> ClassificationResult:
        return self.classifier.classify_and_migrate(user)

    def reconcile(self, user: str, amount: int) -> None:
        """Send ``amount`` staked tokens from ``user`` through the reconciliation hook."""
        self.settler.reconciliation_token.transfer_and_call(user, self.settler, amount)

    def claim(self, beneficiary: str) -> ClaimResult:
        return self.vesting.claim(beneficiary)

    def reserved_account(self, user: str) -> ReservedAccount:
        return self.accounts.view(user)

    def status(self) -> Dict[str, Any]:
        now = int(self._time_provider())
        rate_a, rate_b = self.clock.current_rates(now)
        return {
            "now": now,
            "started": self.clock.has_started(now),
            "paused": self.pause_switch.is_paused(),
            "current_tier": self.clock.current_index,
            "current_rates": {SourceKind.LEGACY.name: rate_a, SourceKind.STAKED.name: rate_b},
            "audit": self.ledger.get_audit_totals(),
            "classified_users": len(self.accounts),
            "vesting_custody": self.vesting.custody_balance(),
        }
