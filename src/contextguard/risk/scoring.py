"""
Trust bands and risk score summaries.

Scores run from 0 (no trust) to 100 (every check satisfied). The band a
score falls into decides the verdict: high trust is allowed outright,
medium trust is allowed after step-up, low trust is denied.

With the default thresholds a score of exactly 80 (only the time window
missed) is medium trust: any failed check short of a deny asks for step-up.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

import numpy as np

from ..config import EngineConfig


class TrustBand(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class RiskWeights:
    """Points each passed check contributes to the score."""
    country: int = 40
    device: int = 40
    time: int = 20

    @classmethod
    def from_config(cls, config: EngineConfig) -> RiskWeights:
        return cls(config.country_weight, config.device_weight, config.time_weight)

    def weight(self, check: str) -> int:
        return getattr(self, check)

    @property
    def total(self) -> int:
        return self.country + self.device + self.time


def band_for(score: int, config: EngineConfig | None = None) -> TrustBand:
    config = config or EngineConfig()
    if score > config.high_trust_threshold:
        return TrustBand.HIGH
    if score >= config.step_up_threshold:
        return TrustBand.MEDIUM
    return TrustBand.LOW


def summarize_scores(
    scores: Iterable[int], config: EngineConfig | None = None
) -> dict[str, Any]:
    """Aggregate statistics over a batch of risk scores."""
    values = [s for s in scores if s is not None]
    if not values:
        return {"count": 0}

    arr = np.array(values, dtype=float)
    distribution = {band.value: 0 for band in TrustBand}
    for s in values:
        distribution[band_for(s, config).value] += 1

    return {
        "count": len(values),
        "mean": round(float(arr.mean()), 2),
        "min": int(arr.min()),
        "max": int(arr.max()),
        "std": round(float(arr.std()), 2),
        "band_distribution": distribution,
    }
