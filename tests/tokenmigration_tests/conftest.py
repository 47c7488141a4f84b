"""
Test configuration and fixtures
"""
import sys
from pathlib import Path

# Ensure the src directory (for `tokenmigration.*`) and this directory (for the
# shared `support` helpers) are on the Python path before collection runs.
project_root = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(project_root / "src"))
sys.path.insert(0, str(Path(__file__).resolve().parent))

import pytest

from support import (
    ManualClock,
    StaticLegacyLedger,
    StaticPositionProvider,
    T0,
    campaign_settings,
)
from tokenmigration.campaign import MigrationCampaign
from tokenmigration.tokens.token_ledger import TokenLedger


@pytest.fixture
def clock():
    return ManualClock(T0)


@pytest.fixture
def legacy_token():
    return TokenLedger("0xLegacyToken", "OLD")


@pytest.fixture
def staked_token():
    return TokenLedger("0xStakedToken", "sOLD")


@pytest.fixture
def new_token():
    return TokenLedger("0xNewToken", "NEW")


@pytest.fixture
def providers():
    return [StaticPositionProvider(), StaticPositionProvider()]


@pytest.fixture
def legacy_ledger():
    return StaticLegacyLedger()


@pytest.fixture
def campaign(clock, legacy_token, staked_token, new_token, providers, legacy_ledger):
    return MigrationCampaign(
        campaign_settings(),
        legacy_token=legacy_token,
        staked_token=staked_token,
        destination_token=new_token,
        providers=providers,
        legacy_ledger=legacy_ledger,
        time_provider=clock.now,
    )
