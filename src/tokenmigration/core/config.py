"""
Migration Campaign Configuration

A campaign is described by a YAML file (seed tiers, campaign boundaries, vesting
curve, seed admin). Individual values can be overridden from the environment with
TOKENMIGRATION_* variables, which is how deployments tweak a shared file.

Example:

    start_time: 1700000000
    closure_boundary: 1710000000
    admin: "0xAdmin"
    tiers:
      - {period_end: 1700864000, rate_a: 10, rate_b: 8}
      - {period_end: 1701728000, rate_a: 20, rate_b: 16}
    vesting:
      cliff_period: 7776000
      unlock_interval: 2592000
      unlock_percent: 5
      annual_interest_percent: 10
      reward_expiry: 1800000000
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, conint, model_validator

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86_400
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY

ENV_PREFIX = "TOKENMIGRATION_"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


class TierConfig(BaseModel):
    period_end: conint(ge=0)
    rate_a: conint(gt=0)
    rate_b: conint(gt=0)


class VestingConfig(BaseModel):
    cliff_period: conint(ge=0) = 90 * SECONDS_PER_DAY
    unlock_interval: conint(gt=0) = 30 * SECONDS_PER_DAY
    unlock_percent: conint(gt=0, le=100) = 5
    annual_interest_percent: conint(ge=0) = 0
    reward_expiry: conint(ge=0) = 0


class CampaignConfig(BaseModel):
    start_time: conint(ge=0)
    closure_boundary: conint(ge=0) = 0
    admin: str = Field(min_length=1)
    tiers: List[TierConfig] = Field(min_length=1)
    vesting: VestingConfig = Field(default_factory=VestingConfig)
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @model_validator(mode="after")
    def _tiers_ordered(self) -> "CampaignConfig":
        previous = self.start_time
        for index, tier in enumerate(self.tiers):
            if tier.period_end <= previous:
                raise ValueError(
                    f"tier {index} ends at {tier.period_end}, not after {previous}"
                )
            previous = tier.period_end
        return self


_INT_OVERRIDES = {
    "START_TIME": ("start_time",),
    "CLOSURE_BOUNDARY": ("closure_boundary",),
    "CLIFF_PERIOD": ("vesting", "cliff_period"),
    "UNLOCK_INTERVAL": ("vesting", "unlock_interval"),
    "UNLOCK_PERCENT": ("vesting", "unlock_percent"),
    "ANNUAL_INTEREST_PERCENT": ("vesting", "annual_interest_percent"),
    "REWARD_EXPIRY": ("vesting", "reward_expiry"),
}

_STR_OVERRIDES = {
    "ADMIN": ("admin",),
    "LOG_LEVEL": ("log_level",),
    "LOG_FILE": ("log_file",),
}


def _apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay TOKENMIGRATION_* environment variables onto the raw mapping."""
    for suffix, path in {**_INT_OVERRIDES, **_STR_OVERRIDES}.items():
        value = os.getenv(ENV_PREFIX + suffix, "").strip()
        if not value:
            continue
        if suffix in _INT_OVERRIDES:
            try:
                value = int(value)
            except ValueError as exc:
                raise ConfigurationError(
                    f"{ENV_PREFIX + suffix} must be an integer, got {value!r}"
                ) from exc
        target = raw
        for key in path[:-1]:
            target = target.setdefault(key, {})
        target[path[-1]] = value
        logger.info(
            "Configuration override from environment: %s",
            ENV_PREFIX + suffix,
            extra={"event": "config.env_override", "env_var": ENV_PREFIX + suffix},
        )
    return raw


def parse_config(raw: Dict[str, Any], apply_env: bool = True) -> CampaignConfig:
    """Validate a raw mapping into a CampaignConfig."""
    if not isinstance(raw, dict):
        raise ConfigurationError("Campaign configuration must be a mapping.")
    if apply_env:
        raw = _apply_env_overrides(copy.deepcopy(raw))
    try:
        return CampaignConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid campaign configuration: {exc}") from exc


def load_config(path: str | Path, apply_env: bool = True) -> CampaignConfig:
    """Load and validate a campaign configuration file."""
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")
    with open(config_path, "r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Could not parse {config_path}: {exc}") from exc
    return parse_config(raw, apply_env=apply_env)
