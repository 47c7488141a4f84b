"""
Prometheus instrumentation for the migration campaign.

These counters mirror the ledger's audit totals for dashboards; the ledger's own
counters stay authoritative and nothing reads these back.
"""

from __future__ import annotations

from prometheus_client import Counter

source_migrated_counter = Counter(
    "tokenmigration_source_migrated_total",
    "Total legacy token units accepted for migration",
    ["kind"],
)

dest_minted_counter = Counter(
    "tokenmigration_dest_minted_total",
    "Total destination token units forwarded to the vesting sink",
)

refunded_counter = Counter(
    "tokenmigration_refunded_total",
    "Total legacy token units refunded during reconciliation",
)

vesting_claimed_counter = Counter(
    "tokenmigration_vesting_claimed_total",
    "Total destination token units paid out by vesting claims",
    ["component"],
)


def record_conversion(kind: str, source_amount: int, dest_amount: int) -> None:
    """Increment the conversion counters for one migration."""
    if source_amount > 0:
        source_migrated_counter.labels(kind=kind).inc(source_amount)
    if dest_amount > 0:
        dest_minted_counter.inc(dest_amount)


def record_refund(amount: int) -> None:
    if amount > 0:
        refunded_counter.inc(amount)


def record_claim(principal: int, reward: int) -> None:
    """Record a vesting payout split into released principal and minted interest."""
    if principal > 0:
        vesting_claimed_counter.labels(component="principal").inc(principal)
    if reward > 0:
        vesting_claimed_counter.labels(component="reward").inc(reward)
