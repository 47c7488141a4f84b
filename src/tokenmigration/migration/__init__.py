"""
Migration components:
- Rate tiers and the period clock
- Conversion ledger with audit totals
- Staking snapshot classification and reserved-balance reconciliation
"""

from tokenmigration.migration.ledger import ConversionRecord, MigrationLedger
from tokenmigration.migration.rate_table import PeriodClock, RateTable, RateTier, SourceKind

__all__ = [
    "ConversionRecord",
    "MigrationLedger",
    "PeriodClock",
    "RateTable",
    "RateTier",
    "SourceKind",
]
