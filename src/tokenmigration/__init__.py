"""
tokenmigration - tiered token migration and vesting ledger

Main Components:
- Migration: rate tiers, the period clock, conversion, staking classification
  and reconciliation of reserved balances
- Vesting: cliff plus linear unlock ladder with simple-interest rewards
- Security: role-based access gate for administrative entry points
- Core: configuration, exceptions, structured logging and metrics
"""

__version__ = "0.1.0"
__author__ = "tokenmigration developers"

__all__ = []
