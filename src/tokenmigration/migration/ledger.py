"""
Migration ledger: converts legacy token amounts into vesting allocations.

Every mutating call reads the clock once, checks the campaign guards (started, not
paused, a tier covers ``now``), and only then touches collaborators. The converted
amount is never minted here; it is forwarded to the vesting sink, which owns issuance.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from tokenmigration.core import metrics
from tokenmigration.core.atomic import atomic_operation, guarded_call
from tokenmigration.core.exceptions import (
    InvalidRateTier,
    MigrationNotStarted,
    ZeroAmount,
)
from tokenmigration.core.protocols import AccessGate, SourceToken, VestingSink
from tokenmigration.migration.pause import PauseSwitch
from tokenmigration.migration.rate_table import PeriodClock, RateTable, RateTier, SourceKind
from tokenmigration.security.access_gate import ADMIN_ROLE, require_role

logger = logging.getLogger("tokenmigration.migration.ledger")


@dataclass(frozen=True)
class ConversionRecord:
    user: str
    kind: SourceKind
    source_amount: int
    dest_amount: int
    rate: int
    tier_index: Optional[int]
    timestamp: int


def validate_amount(amount: Any) -> int:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise ValueError("Amount must be a non-negative integer.")
    if amount == 0:
        raise ZeroAmount("Amount must be greater than zero.")
    return amount


class MigrationLedger:
    def __init__(
        self,
        address: str,
        rate_table: RateTable,
        clock: PeriodClock,
        pause_switch: PauseSwitch,
        access_gate: AccessGate,
        vesting_sink: VestingSink,
        source_tokens: Dict[SourceKind, SourceToken],
        time_provider: Callable[[], int] | None = None,
        lock: Any = None,
    ):
        if not address:
            raise ValueError("Ledger address cannot be empty.")
        self.address = address
        self.rate_table = rate_table
        self.clock = clock
        self.pause_switch = pause_switch
        self.access_gate = access_gate
        self.vesting_sink = vesting_sink
        self.source_tokens: Dict[SourceKind, SourceToken] = dict(source_tokens)
        self._time_provider = time_provider or (lambda: int(time.time()))
        self.lock = lock or threading.RLock()

        # Audit totals: observability only, never read by business logic
        self.total_minted = 0
        self.total_migrated: Dict[SourceKind, int] = {kind: 0 for kind in SourceKind}
        self.conversions: List[ConversionRecord] = []

    def current_time(self) -> int:
        timestamp = self._time_provider()
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise ValueError("time_provider must return an integer timestamp") from exc

    def participants(self) -> List[Any]:
        return [
            self,
            self.rate_table,
            self.clock,
            self.pause_switch,
            self.vesting_sink,
            *self.source_tokens.values(),
        ]

    def ensure_active(self, now: int) -> int:
        """Apply the campaign guards and return the current tier index."""
        if not self.clock.has_started(now):
            raise MigrationNotStarted(
                "Migration has not started yet.",
                details={"now": now, "start_time": self.clock.start_time},
            )
        self.pause_switch.ensure_running()
        return self.clock.advance(now)

    def migrate(self, user: str, source_amount: int, kind: SourceKind) -> ConversionRecord:
        """
        Burn ``source_amount`` of the kind's legacy token from ``user`` and allocate
        the converted amount on the vesting schedule.
        """
        with atomic_operation(self.lock, self.participants(), "migrate"):
            now = self.current_time()
            source_amount = validate_amount(source_amount)
            tier_index = self.ensure_active(now)
            token = self.source_tokens.get(kind)
            if token is None:
                raise ValueError(f"No source token registered for {kind.name}.")
            rate = self.rate_table[tier_index].rate_for(kind)
            guarded_call("source token", token.burn_from, user, source_amount)
            return self.convert(user, source_amount, kind, rate, tier_index, now)

    def convert(
        self,
        user: str,
        source_amount: int,
        kind: SourceKind,
        rate: int,
        tier_index: Optional[int],
        now: int,
    ) -> ConversionRecord:
        """
        Apply ``floor(source_amount / rate)`` and forward the result to the vesting sink.

        Callers hold the ledger lock and have already debited (or otherwise accounted
        for) the source side. An amount below the rate converts to zero: the source
        side is still consumed and recorded, but nothing is allocated.
        """
        if rate <= 0:
            raise InvalidRateTier(f"Conversion rate must be positive, got {rate}.")
        dest_amount = source_amount // rate

        self.total_migrated[kind] += source_amount
        self.total_minted += dest_amount
        if dest_amount:
            guarded_call("vesting sink", self.vesting_sink.allocate, self.address, user, dest_amount)

        record = ConversionRecord(
            user=user,
            kind=kind,
            source_amount=source_amount,
            dest_amount=dest_amount,
            rate=rate,
            tier_index=tier_index,
            timestamp=now,
        )
        self.conversions.append(record)
        metrics.record_conversion(kind.name.lower(), source_amount, dest_amount)
        logger.info(
            "Converted %s %s units to %s for %s at rate %s",
            source_amount,
            kind.name,
            dest_amount,
            user,
            rate,
            extra={
                "event": "migration.converted",
                "user": user,
                "kind": kind.name,
                "source_amount": source_amount,
                "dest_amount": dest_amount,
                "rate": rate,
            },
        )
        return record

    def quote(self, source_amount: int, kind: SourceKind, now: Optional[int] = None) -> int:
        """Destination amount ``source_amount`` would convert to at ``now``; 0 outside the campaign."""
        when = self.current_time() if now is None else now
        rate = self.clock.current_rate(when, kind)
        if rate <= 0:
            return 0
        return source_amount // rate

    # ==================== Administration ====================

    @require_role(ADMIN_ROLE)
    def set_tier(self, caller: str, index: int, period_end: int, rate_a: int, rate_b: int) -> RateTier:
        with atomic_operation(self.lock, self.participants(), "set_tier"):
            tier = self.rate_table.set_tier(index, period_end, rate_a, rate_b)
            logger.info(
                "Tier %s set by %s: ends %s, rates %s/%s",
                index,
                caller,
                period_end,
                rate_a,
                rate_b,
                extra={"event": "tier.set", "index": index, "caller": caller},
            )
            return tier

    def pause(self, caller: str, reason: str = "Manual pause") -> None:
        with self.lock:
            self.pause_switch.pause(caller, reason)

    def unpause(self, caller: str, reason: str = "Manual unpause") -> None:
        with self.lock:
            self.pause_switch.unpause(caller, reason)

    @require_role(ADMIN_ROLE)
    def set_vesting_sink(self, caller: str, vesting_sink: VestingSink) -> None:
        if vesting_sink is None:
            raise ValueError("Vesting sink cannot be empty.")
        with self.lock:
            self.vesting_sink = vesting_sink
            logger.warning(
                "Vesting sink replaced by %s",
                caller,
                extra={"event": "vesting_sink.replaced", "caller": caller},
            )

    def is_protected(self, token: Any) -> bool:
        return any(
            token is source or getattr(token, "address", None) == source.address
            for source in self.source_tokens.values()
        )

    @require_role(ADMIN_ROLE)
    def rescue_tokens(self, caller: str, token: SourceToken, destination: str, amount: int) -> None:
        """Send a stray token balance held by the ledger to ``destination``."""
        with atomic_operation(self.lock, [*self.participants(), token], "rescue_tokens"):
            amount = validate_amount(amount)
            if not destination:
                raise ValueError("Rescue destination cannot be empty.")
            if self.is_protected(token):
                raise ValueError("Legacy source tokens held by the ledger cannot be rescued.")
            guarded_call("rescued token", token.transfer, self.address, destination, amount)
            logger.warning(
                "Rescued %s of %s to %s",
                amount,
                getattr(token, "address", token),
                destination,
                extra={"event": "tokens.rescued", "caller": caller, "destination": destination},
            )

    def get_audit_totals(self) -> Dict[str, Any]:
        return {
            "total_minted": self.total_minted,
            "total_migrated": {kind.name: amount for kind, amount in self.total_migrated.items()},
            "conversions": len(self.conversions),
        }

    def snapshot(self) -> Dict[str, Any]:
        return {
            "total_minted": self.total_minted,
            "total_migrated": dict(self.total_migrated),
            "conversions": len(self.conversions),
        }

    def restore(self, state: Dict[str, Any]) -> None:
        self.total_minted = state["total_minted"]
        self.total_migrated = dict(state["total_migrated"])
        del self.conversions[state["conversions"]:]
