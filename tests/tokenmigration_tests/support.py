"""Shared constants and collaborator doubles for the test suite."""

from tokenmigration.core.config import SECONDS_PER_DAY, parse_config

T0 = 1_700_000_000
ADMIN = "0xAdmin"
DAY = SECONDS_PER_DAY


class ManualClock:
    def __init__(self, start_time: int):
        self.current_time = start_time

    def now(self) -> int:
        return self.current_time

    def advance(self, seconds: int):
        self.current_time += seconds

    def set(self, timestamp: int):
        self.current_time = timestamp


class StaticPositionProvider:
    """Staking provider double returning fixed (amount, lock_end) positions."""

    def __init__(self, positions=None):
        self.positions = dict(positions or {})
        self.calls = 0

    def position_of(self, user):
        self.calls += 1
        return self.positions.get(user, (0, 0))


class FailingPositionProvider:
    def position_of(self, user):
        raise ConnectionError("staking provider unreachable")


class StaticLegacyLedger:
    def __init__(self, records=None):
        self.records = dict(records or {})

    def reserved_state(self, user):
        return self.records.get(user, (0, 0, 0))


def campaign_settings(**overrides):
    raw = {
        "start_time": T0,
        "closure_boundary": T0 + 1_000,
        "admin": ADMIN,
        "tiers": [
            {"period_end": T0 + 10, "rate_a": 10, "rate_b": 10},
            {"period_end": T0 + 20, "rate_a": 5, "rate_b": 4},
        ],
        "vesting": {
            "cliff_period": 90 * DAY,
            "unlock_interval": 30 * DAY,
            "unlock_percent": 5,
            "annual_interest_percent": 10,
            "reward_expiry": T0 + 730 * DAY,
        },
    }
    raw.update(overrides)
    return parse_config(raw, apply_env=False)


CONFIG_YAML = f"""
start_time: {T0}
closure_boundary: {T0 + 1000}
admin: "{ADMIN}"
tiers:
  - {{period_end: {T0 + 10}, rate_a: 10, rate_b: 8}}
  - {{period_end: {T0 + 20}, rate_a: 5, rate_b: 4}}
vesting:
  cliff_period: {90 * DAY}
  unlock_interval: {30 * DAY}
  unlock_percent: 5
  annual_interest_percent: 10
  reward_expiry: {T0 + 730 * DAY}
"""
