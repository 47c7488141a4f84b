"""
Rate tiers and the period clock that walks them.

A campaign is a sequence of time windows, each with its own conversion rate per source
kind. The table is edited in place or appended to by the administrator; the clock only
ever moves its index forward, lazily, whenever a migration touches it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

from tokenmigration.core.exceptions import InvalidRateTier, MigrationFinished

logger = logging.getLogger("tokenmigration.migration.rate_table")


class SourceKind(Enum):
    """Legacy token kinds, each mapped to a rate-table column."""

    LEGACY = "rate_a"
    STAKED = "rate_b"


@dataclass(frozen=True)
class RateTier:
    period_end: int
    rate_a: int
    rate_b: int

    def rate_for(self, kind: SourceKind) -> int:
        return getattr(self, kind.value)


class RateTable:
    def __init__(self, tiers: List[RateTier] | None = None):
        self._tiers: List[RateTier] = []
        for index, tier in enumerate(tiers or []):
            self.set_tier(index, tier.period_end, tier.rate_a, tier.rate_b)

    def __len__(self) -> int:
        return len(self._tiers)

    def __getitem__(self, index: int) -> RateTier:
        return self._tiers[index]

    def tiers(self) -> Tuple[RateTier, ...]:
        return tuple(self._tiers)

    def set_tier(self, index: int, period_end: int, rate_a: int, rate_b: int) -> RateTier:
        """
        Overwrite the tier at ``index`` or append when ``index`` equals the length.

        Rates are validated here so conversions never divide by zero.
        """
        if not isinstance(index, int) or index < 0 or index > len(self._tiers):
            raise InvalidRateTier(
                f"Tier index {index} is out of range (table has {len(self._tiers)} tiers).",
                details={"index": index},
            )
        for name, rate in (("rate_a", rate_a), ("rate_b", rate_b)):
            if not isinstance(rate, int) or isinstance(rate, bool) or rate <= 0:
                raise InvalidRateTier(
                    f"{name} must be a positive integer, got {rate!r}.",
                    details={"index": index, name: rate},
                )
        if not isinstance(period_end, int) or period_end < 0:
            raise InvalidRateTier(f"period_end must be a unix timestamp, got {period_end!r}.")

        tier = RateTier(period_end=period_end, rate_a=rate_a, rate_b=rate_b)
        if index < len(self._tiers):
            self._tiers[index] = tier
        else:
            self._tiers.append(tier)
        return tier

    def snapshot(self) -> List[RateTier]:
        return list(self._tiers)

    def restore(self, state: List[RateTier]) -> None:
        self._tiers = list(state)


class PeriodClock:
    """Tracks the current tier index; the index never decreases."""

    def __init__(self, rate_table: RateTable, start_time: int):
        self.rate_table = rate_table
        self.start_time = start_time
        self.current_index = 0

    def has_started(self, now: int) -> bool:
        return now >= self.start_time

    def _scan(self, now: int) -> int | None:
        tiers = self.rate_table
        index = self.current_index
        while index < len(tiers) and now > tiers[index].period_end:
            index += 1
        return index if index < len(tiers) else None

    def advance(self, now: int) -> int:
        """
        Move past every elapsed tier and return the current index.

        Raises:
            MigrationFinished: when ``now`` is past the last tier's end
        """
        index = self._scan(now)
        if index is None:
            raise MigrationFinished(
                "Migration campaign has finished: no tier covers the current time.",
                details={"now": now, "tiers": len(self.rate_table)},
            )
        if index != self.current_index:
            logger.info(
                "Period advanced from tier %s to tier %s",
                self.current_index,
                index,
                extra={"event": "period.advanced", "from_tier": self.current_index, "to_tier": index},
            )
            self.current_index = index
        return index

    def current_rates(self, now: int) -> Tuple[int, int]:
        """Rates in force at ``now`` without moving the index; (0, 0) outside the campaign."""
        if not self.has_started(now):
            return (0, 0)
        index = self._scan(now)
        if index is None:
            return (0, 0)
        tier = self.rate_table[index]
        return (tier.rate_a, tier.rate_b)

    def current_rate(self, now: int, kind: SourceKind) -> int:
        rate_a, rate_b = self.current_rates(now)
        return rate_a if kind is SourceKind.LEGACY else rate_b

    def snapshot(self) -> int:
        return self.current_index

    def restore(self, state: int) -> None:
        self.current_index = state
