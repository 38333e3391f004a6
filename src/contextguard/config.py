"""
Engine configuration.

Settings come from an optional YAML file, then environment overrides:

    CONTEXTGUARD_CONFIG    path to the YAML file
    CONTEXTGUARD_STRATEGY  risk_score | gate
    CONTEXTGUARD_TIMEZONE  IANA zone used to read the time of day
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

ENV_CONFIG_PATH = "CONTEXTGUARD_CONFIG"
ENV_STRATEGY = "CONTEXTGUARD_STRATEGY"
ENV_TIMEZONE = "CONTEXTGUARD_TIMEZONE"


class Strategy(str, Enum):
    RISK_SCORE = "risk_score"  # Weighted 0-100 score, tri-state verdict
    GATE = "gate"  # Any violation denies


@dataclass(frozen=True)
class EngineConfig:
    """Evaluation settings. Defaults are the system of record."""
    strategy: Strategy = Strategy.RISK_SCORE
    country_weight: int = 40
    device_weight: int = 40
    time_weight: int = 20
    high_trust_threshold: int = 80  # Scores above this need no step-up
    step_up_threshold: int = 50  # Scores at or above this are allowed
    timezone: str | None = None
    otp_ttl_seconds: float = 300.0
    otp_sweep_interval: float = 60.0

    def validate(self) -> EngineConfig:
        weights = (self.country_weight, self.device_weight, self.time_weight)
        if any(w < 0 for w in weights):
            raise ConfigError("Check weights must be non-negative")
        if sum(weights) != 100:
            raise ConfigError(f"Check weights must sum to 100, got {sum(weights)}")
        if not 0 <= self.step_up_threshold <= self.high_trust_threshold <= 100:
            raise ConfigError(
                "Thresholds must satisfy 0 <= step_up_threshold "
                "<= high_trust_threshold <= 100"
            )
        if self.otp_ttl_seconds <= 0 or self.otp_sweep_interval <= 0:
            raise ConfigError("OTP ttl and sweep interval must be positive")
        if self.timezone:
            self.zone()
        return self

    def zone(self) -> ZoneInfo | None:
        if not self.timezone:
            return None
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(f"Unknown timezone: {self.timezone!r}") from exc

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["strategy"] = self.strategy.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EngineConfig:
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        values = dict(data)
        if "strategy" in values:
            values["strategy"] = parse_strategy(values["strategy"])
        try:
            return cls(**values).validate()
        except TypeError as exc:
            raise ConfigError(str(exc)) from exc


def parse_strategy(value: Any) -> Strategy:
    try:
        return Strategy(str(value).strip().lower().replace("-", "_"))
    except ValueError as exc:
        choices = ", ".join(s.value for s in Strategy)
        raise ConfigError(f"Unknown strategy {value!r} (expected one of: {choices})") from exc


def load_config(path: str | Path | None = None) -> EngineConfig:
    """Load config from YAML (if any) and apply environment overrides."""
    path = path or os.environ.get(ENV_CONFIG_PATH)
    data: dict[str, Any] = {}

    if path:
        try:
            raw = Path(path).read_text()
        except OSError as exc:
            raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
        try:
            loaded = yaml.safe_load(raw) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        data.update(loaded)
        logger.debug("Loaded config from %s", path)

    if os.environ.get(ENV_STRATEGY):
        data["strategy"] = os.environ[ENV_STRATEGY]
    if os.environ.get(ENV_TIMEZONE):
        data["timezone"] = os.environ[ENV_TIMEZONE]

    return EngineConfig.from_dict(data)
