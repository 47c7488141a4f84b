import pytest

from support import ADMIN, CONFIG_YAML, DAY, T0, campaign_settings
from tokenmigration.core.config import ConfigurationError, load_config, parse_config


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "campaign.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    return path


def test_load_config_from_yaml(config_file):
    config = load_config(config_file, apply_env=False)
    assert config.start_time == T0
    assert config.admin == ADMIN
    assert [tier.rate_b for tier in config.tiers] == [8, 4]
    assert config.vesting.annual_interest_percent == 10
    assert config.log_level == "INFO"


def test_vesting_defaults_apply_when_omitted():
    config = parse_config(
        {"start_time": T0, "admin": ADMIN, "tiers": [{"period_end": T0 + 1, "rate_a": 1, "rate_b": 1}]},
        apply_env=False,
    )
    assert config.vesting.cliff_period == 90 * DAY
    assert config.vesting.unlock_percent == 5


@pytest.mark.parametrize(
    "overrides",
    [
        {"tiers": []},
        {"tiers": [{"period_end": T0 + 20, "rate_a": 5, "rate_b": 4},
                   {"period_end": T0 + 10, "rate_a": 5, "rate_b": 4}]},
        {"tiers": [{"period_end": T0, "rate_a": 5, "rate_b": 4}]},
        {"tiers": [{"period_end": T0 + 10, "rate_a": 0, "rate_b": 4}]},
        {"admin": ""},
        {"vesting": {"unlock_percent": 101}},
        {"vesting": {"unlock_interval": 0}},
    ],
)
def test_invalid_settings_are_rejected(overrides):
    with pytest.raises(ConfigurationError):
        campaign_settings(**overrides)


def test_environment_overrides_file_values(config_file, monkeypatch):
    monkeypatch.setenv("TOKENMIGRATION_ADMIN", "0xOps")
    monkeypatch.setenv("TOKENMIGRATION_UNLOCK_PERCENT", "10")
    monkeypatch.setenv("TOKENMIGRATION_LOG_LEVEL", "DEBUG")

    config = load_config(config_file)

    assert config.admin == "0xOps"
    assert config.vesting.unlock_percent == 10
    assert config.log_level == "DEBUG"


def test_non_integer_environment_override_fails(config_file, monkeypatch):
    monkeypatch.setenv("TOKENMIGRATION_CLIFF_PERIOD", "ninety days")
    with pytest.raises(ConfigurationError):
        load_config(config_file)


def test_missing_and_malformed_files(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / "absent.yaml")

    broken = tmp_path / "broken.yaml"
    broken.write_text("tiers: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(broken)

    scalar = tmp_path / "scalar.yaml"
    scalar.write_text("just a string", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(scalar)
