"""
Reconciliation of reserved staking balances.

Users whose positions were reserved at classification time later send the unlocked
legacy tokens to the ledger through the reconciliation token's ``transfer_and_call``.
The tokens are converted at the rate frozen for that user when they were classified,
whatever the rate table says today; anything beyond the remaining reserved balance is
sent straight back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from tokenmigration.core import metrics
from tokenmigration.core.atomic import atomic_operation, guarded_call
from tokenmigration.core.exceptions import NoReservedBalance, Unauthorized
from tokenmigration.core.protocols import SourceToken
from tokenmigration.migration.ledger import ConversionRecord, MigrationLedger, validate_amount
from tokenmigration.migration.rate_table import SourceKind
from tokenmigration.migration.reserved_accounts import ReservedAccountBook

logger = logging.getLogger("tokenmigration.migration.reconciliation")


@dataclass(frozen=True)
class SettlementResult:
    user: str
    settled: int
    refunded: int
    conversion: ConversionRecord


class ReconciliationSettler:
    def __init__(
        self,
        ledger: MigrationLedger,
        accounts: ReservedAccountBook,
        reconciliation_token: SourceToken,
    ):
        self.ledger = ledger
        self.accounts = accounts
        self.reconciliation_token = reconciliation_token
        self.settlements: list[SettlementResult] = []

    @property
    def address(self) -> str:
        """Tokens sent for reconciliation are held in the ledger's custody."""
        return self.ledger.address

    def _is_trusted(self, token: Any) -> bool:
        return token is self.reconciliation_token or (
            getattr(token, "address", None) == self.reconciliation_token.address
        )

    def on_token_transfer(self, token: Any, sender: str, amount: int, data: Any = None) -> SettlementResult:
        """
        Notification hook called by the reconciliation token after it credited
        ``amount`` from ``sender`` to the ledger.
        """
        if not self._is_trusted(token):
            raise Unauthorized(
                f"Token {getattr(token, 'address', token)} is not the reconciliation token.",
                caller=getattr(token, "address", None),
            )
        return self._settle_reserved(sender, amount)

    def _settle_reserved(self, user: str, amount: int) -> SettlementResult:
        participants = [*self.ledger.participants(), self.accounts, self.reconciliation_token]
        with atomic_operation(self.ledger.lock, participants, "settle_reserved"):
            now = self.ledger.current_time()
            amount = validate_amount(amount)
            self.ledger.pause_switch.ensure_running()

            account = self.accounts.view(user)
            if account.reserved_amount == 0:
                raise NoReservedBalance(
                    f"{user} has no reserved balance to settle.",
                    details={"user": user, "amount": amount},
                )

            settled = min(amount, account.reserved_amount)
            refunded = amount - settled
            self.accounts.consume_reserved(user, settled)

            if refunded:
                guarded_call(
                    "reconciliation token",
                    self.reconciliation_token.transfer,
                    self.address,
                    user,
                    refunded,
                )
                logger.info(
                    "Refunded %s excess reconciliation units to %s",
                    refunded,
                    user,
                    extra={"event": "reconciliation.refunded", "user": user, "amount": refunded},
                )

            conversion = self.ledger.convert(
                user, settled, SourceKind.STAKED, account.locked_rate, None, now
            )
            metrics.record_refund(refunded)
            result = SettlementResult(user=user, settled=settled, refunded=refunded, conversion=conversion)
            self.settlements.append(result)
            return result

    def reserved_balance(self, user: str) -> int:
        return self.accounts.view(user).reserved_amount

    def last_settlement(self, user: str) -> Optional[SettlementResult]:
        for result in reversed(self.settlements):
            if result.user == user:
                return result
        return None
