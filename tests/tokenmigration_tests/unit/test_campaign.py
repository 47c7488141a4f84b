import pytest

from support import ADMIN, DAY, T0
from tokenmigration.core.exceptions import Unauthorized
from tokenmigration.security.access_gate import AccessGate
from tokenmigration.tokens.token_ledger import TokenLedger
from tokenmigration.vesting.schedule import VestingSchedule


def _replacement_schedule(campaign, clock, gate=None):
    return VestingSchedule(
        "0xVestingV2",
        TokenLedger("0xNewTokenV2", "NEW2"),
        gate or campaign.access_gate,
        campaign.config.vesting,
        time_provider=clock.now,
        lock=campaign.lock,
    )


def test_replaced_sink_receives_conversions_and_pays_claims(campaign, clock, legacy_token):
    legacy_token.mint("0xalice", 20_000)
    clock.set(T0 + 5)
    campaign.migrate("0xalice", 10_000)
    old = campaign.vesting

    replacement = _replacement_schedule(campaign, clock)
    campaign.set_vesting_sink(ADMIN, replacement)
    campaign.migrate("0xalice", 10_000)

    assert campaign.vesting is replacement
    assert campaign.ledger.vesting_sink is replacement
    assert campaign.retired_vesting == [old]
    assert replacement.allocation_of("0xalice").principal == 1_000
    assert old.allocation_of("0xalice").principal == 1_000
    assert campaign.status()["vesting_custody"] == 1_000

    clock.set(T0 + 5 + 95 * DAY)
    result = campaign.claim("0xalice")
    assert (result.unlocked, result.reward) == (50, 26)
    assert replacement.token.balance_of("0xalice") == 76
    # The retired schedule still pays out on its own
    assert old.claim("0xalice").unlocked == 50


def test_sink_behind_a_foreign_gate_must_trust_the_ledger(campaign, clock):
    foreign = _replacement_schedule(campaign, clock, gate=AccessGate(admins=["0xOtherAdmin"]))
    with pytest.raises(ValueError):
        campaign.set_vesting_sink(ADMIN, foreign)
    assert campaign.ledger.vesting_sink is campaign.vesting
    assert campaign.retired_vesting == []


def test_only_admins_replace_the_sink(campaign, clock):
    with pytest.raises(Unauthorized):
        campaign.set_vesting_sink("0xmallory", _replacement_schedule(campaign, clock))
