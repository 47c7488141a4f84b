import pytest

from support import ADMIN, FailingPositionProvider, T0
from tokenmigration.core.exceptions import (
    AlreadyMigrated,
    CollaboratorCallFailed,
    MigrationPaused,
    ZeroAmount,
)
from tokenmigration.migration.rate_table import SourceKind
from tokenmigration.migration.reserved_accounts import ReservedAccountBook
from tokenmigration.migration.stake_classifier import (
    Classification,
    StakeSnapshotClassifier,
    classify_positions,
)

CLOSURE = T0 + 1_000


@pytest.mark.parametrize(
    "positions, expected",
    [
        # Unlocked position in the first provider stays reserved
        ([(100, 0), (0, 0)], Classification(migratable=0, reserved=100)),
        # The same position in a later provider migrates
        ([(0, 0), (100, 0)], Classification(migratable=100, reserved=0)),
        ([(100, CLOSURE + 1), (0, 0)], Classification(migratable=100, reserved=0)),
        ([(100, CLOSURE), (50, CLOSURE)], Classification(migratable=0, reserved=150)),
        ([(100, CLOSURE - 1), (50, CLOSURE + 5)], Classification(migratable=50, reserved=100)),
    ],
)
def test_classify_positions(positions, expected):
    assert classify_positions(positions, CLOSURE) == expected


def test_positions_split_and_migratable_part_converts(campaign, clock, providers):
    providers[0].positions["0xalice"] = (100, 0)
    providers[1].positions["0xalice"] = (200, 0)
    clock.set(T0 + 5)

    result = campaign.classify_and_migrate("0xalice")

    assert result.adopted_from_legacy is False
    assert result.account.migrated_amount == 200
    assert result.account.reserved_amount == 100
    assert result.account.locked_rate == 10
    assert result.conversion.dest_amount == 20
    assert result.conversion.kind is SourceKind.STAKED
    assert campaign.vesting.allocation_of("0xalice").principal == 20
    assert campaign.ledger.total_migrated[SourceKind.STAKED] == 200


def test_second_classification_is_rejected_without_side_effects(campaign, clock, providers):
    providers[1].positions["0xalice"] = (200, 0)
    clock.set(T0 + 5)
    campaign.classify_and_migrate("0xalice")
    calls_before = providers[1].calls

    with pytest.raises(AlreadyMigrated):
        campaign.classify_and_migrate("0xalice")

    assert providers[1].calls == calls_before
    assert campaign.vesting.allocation_of("0xalice").principal == 20
    assert campaign.ledger.get_audit_totals()["conversions"] == 1


def test_rate_is_taken_from_the_current_tier(campaign, clock, providers):
    providers[0].positions["0xbob"] = (80, 0)
    providers[1].positions["0xbob"] = (40, CLOSURE + 1)
    clock.set(T0 + 15)

    result = campaign.classify_and_migrate("0xbob")

    assert result.account.locked_rate == 4
    assert result.conversion.dest_amount == 10
    assert result.conversion.tier_index == 1


def test_legacy_record_is_adopted_without_moving_funds(campaign, clock, providers, legacy_ledger):
    legacy_ledger.records["0xcarol"] = (70, 40, 8)
    clock.set(T0 + 5)

    result = campaign.classify_and_migrate("0xcarol")

    assert result.adopted_from_legacy is True
    assert result.conversion is None
    account = campaign.reserved_account("0xcarol")
    assert (account.migrated_amount, account.reserved_amount, account.locked_rate) == (70, 40, 8)
    assert campaign.vesting.allocation_of("0xcarol") is None
    assert all(provider.calls == 0 for provider in providers)


def test_fully_settled_legacy_record_counts_as_migrated(campaign, clock, providers, legacy_ledger):
    legacy_ledger.records["0xcarol"] = (70, 0, 8)
    providers[1].positions["0xcarol"] = (500, 0)
    clock.set(T0 + 5)

    with pytest.raises(AlreadyMigrated):
        campaign.classify_and_migrate("0xcarol")

    assert campaign.reserved_account("0xcarol").is_classified is False
    assert all(provider.calls == 0 for provider in providers)


def test_user_without_positions_is_rejected_until_one_appears(campaign, clock, providers):
    clock.set(T0 + 5)
    for _ in range(2):
        with pytest.raises(ZeroAmount):
            campaign.classify_and_migrate("0xnobody")
    assert len(campaign.accounts) == 0

    providers[1].positions["0xnobody"] = (30, 0)
    result = campaign.classify_and_migrate("0xnobody")
    assert result.account.locked_rate == 10
    with pytest.raises(AlreadyMigrated):
        campaign.classify_and_migrate("0xnobody")


def test_only_reserved_positions_still_lock_the_rate(campaign, clock, providers):
    providers[0].positions["0xdave"] = (300, 0)
    clock.set(T0 + 5)

    result = campaign.classify_and_migrate("0xdave")

    assert result.conversion is None
    assert result.account.reserved_amount == 300
    assert result.account.locked_rate == 10


def test_migratable_amount_below_the_rate_converts_to_nothing(campaign, clock, providers):
    providers[1].positions["0xerin"] = (5, 0)
    clock.set(T0 + 5)

    result = campaign.classify_and_migrate("0xerin")

    assert result.conversion.dest_amount == 0
    assert campaign.ledger.total_migrated[SourceKind.STAKED] == 5
    assert result.account.migrated_amount == 5
    assert campaign.vesting.allocation_of("0xerin") is None


def test_unreachable_provider_aborts_classification(campaign, clock):
    accounts = ReservedAccountBook()
    classifier = StakeSnapshotClassifier(
        campaign.ledger, accounts, [FailingPositionProvider()], CLOSURE
    )
    clock.set(T0 + 5)

    with pytest.raises(CollaboratorCallFailed) as excinfo:
        classifier.classify_and_migrate("0xalice")

    assert isinstance(excinfo.value.__cause__, ConnectionError)
    assert len(accounts) == 0


def test_paused_campaign_rejects_classification(campaign, clock, providers):
    providers[1].positions["0xalice"] = (200, 0)
    clock.set(T0 + 5)
    campaign.ledger.pause(ADMIN, "provider audit")

    with pytest.raises(MigrationPaused):
        campaign.classify_and_migrate("0xalice")
    assert campaign.reserved_account("0xalice").is_classified is False


def test_classifier_requires_providers(campaign):
    with pytest.raises(ValueError):
        StakeSnapshotClassifier(campaign.ledger, ReservedAccountBook(), [], CLOSURE)
