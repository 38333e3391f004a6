"""
Policy evaluator.

Turns (AccessContext, AccessPolicy) into a ValidationResult. Evaluation is
pure: no I/O, no clock reads beyond the context timestamp, and nothing is
remembered between calls, so one evaluator can be shared across threads.

Two strategies exist and exactly one is configured:

- risk_score (default): country 40 + device 40 + time 20 points; the total
  decides the verdict (> 80 allow, >= 50 allow with step-up, else deny).
- gate: any violation denies; an untrusted device forces step-up on allow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..config import EngineConfig, Strategy
from ..policy.models import AccessPolicy
from ..risk.scoring import RiskWeights, TrustBand, band_for
from .context import AccessContext, clock_minutes, format_clock

logger = logging.getLogger(__name__)


class Verdict(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"
    STEP_UP_REQUIRED = "step-up-required"


class Check(str, Enum):
    COUNTRY = "country"
    TIME = "time"
    DEVICE = "device"


@dataclass(frozen=True)
class CheckOutcome:
    check: Check
    passed: bool
    restricted: bool  # False when the policy field is the unrestricted sentinel
    violation: str | None = None


@dataclass(frozen=True)
class ValidationResult:
    """The decision for one access attempt."""
    allowed: bool
    require_step_up: bool
    reason: str = ""
    violations: tuple[str, ...] = field(default_factory=tuple)
    risk_score: int | None = None

    @property
    def verdict(self) -> Verdict:
        if not self.allowed:
            return Verdict.DENIED
        if self.require_step_up:
            return Verdict.STEP_UP_REQUIRED
        return Verdict.ALLOWED

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "require_step_up": self.require_step_up,
            "verdict": self.verdict.value,
            "reason": self.reason,
            "violations": list(self.violations),
            "risk_score": self.risk_score,
        }


class PolicyEvaluator:
    """
    Context-aware access decision engine.

    Holds only its configuration; every call reads its own arguments and
    allocates its own result.
    """

    def __init__(self, config: EngineConfig | None = None):
        self.config = (config or EngineConfig()).validate()
        self._zone = self.config.zone()
        self.weights = RiskWeights.from_config(self.config)

    @property
    def strategy(self) -> Strategy:
        return self.config.strategy

    def evaluate(self, context: AccessContext, policy: AccessPolicy) -> ValidationResult:
        """Evaluate an access attempt against a resource policy."""
        outcomes = self.run_checks(context, policy)
        if self.config.strategy is Strategy.GATE:
            result = self._gate(outcomes, policy)
        else:
            result = self._risk_score(outcomes)

        logger.debug(
            "Verdict %s for device=%s country=%s (strategy=%s, score=%s, violations=%d)",
            result.verdict.value, context.device_id, context.country,
            self.config.strategy.value, result.risk_score, len(result.violations),
        )
        return result

    def score(self, context: AccessContext, policy: AccessPolicy) -> int:
        """Weighted trust score 0-100 for a context under a policy."""
        return self._score(self.run_checks(context, policy))

    def run_checks(
        self, context: AccessContext, policy: AccessPolicy
    ) -> list[CheckOutcome]:
        """Run every check; none short-circuits the others."""
        return [
            self._check_country(context, policy),
            self._check_time(context, policy),
            self._check_device(context, policy),
        ]

    # --- Checks ---

    def _check_country(self, ctx: AccessContext, policy: AccessPolicy) -> CheckOutcome:
        if policy.countries_unrestricted:
            return CheckOutcome(Check.COUNTRY, passed=True, restricted=False)
        if ctx.country in policy.allowed_countries:
            return CheckOutcome(Check.COUNTRY, passed=True, restricted=True)
        return CheckOutcome(
            Check.COUNTRY, passed=False, restricted=True,
            violation=f"Access from {ctx.country} is not allowed",
        )

    def _check_time(self, ctx: AccessContext, policy: AccessPolicy) -> CheckOutcome:
        window = policy.time_window()
        if window is None:
            problems = policy.problems()
            if problems:
                logger.warning(
                    "Malformed time window treated as unrestricted: %s", "; ".join(problems)
                )
            return CheckOutcome(Check.TIME, passed=True, restricted=False)

        if window.empty:
            logger.warning(
                "Time window %s-%s starts after it ends and admits no time",
                policy.allowed_time_start, policy.allowed_time_end,
            )
        minutes = clock_minutes(ctx.timestamp, self._zone)
        if minutes is not None and window.contains(minutes):
            return CheckOutcome(Check.TIME, passed=True, restricted=True)

        if minutes is None:
            logger.warning("Unreadable context timestamp %r; time check fails closed", ctx.timestamp)
        return CheckOutcome(
            Check.TIME, passed=False, restricted=True,
            violation=(
                f"Access allowed only between {format_clock(window.start)} "
                f"and {format_clock(window.end)}"
            ),
        )

    def _check_device(self, ctx: AccessContext, policy: AccessPolicy) -> CheckOutcome:
        if policy.devices_unrestricted:
            return CheckOutcome(Check.DEVICE, passed=True, restricted=False)
        # The unknown-device sentinel is simply never in the trusted list
        if not ctx.is_unknown_device and ctx.device_id in policy.trusted_devices:
            return CheckOutcome(Check.DEVICE, passed=True, restricted=True)
        return CheckOutcome(
            Check.DEVICE, passed=False, restricted=True,
            violation="Device not recognized as trusted",
        )

    # --- Strategies ---

    def _score(self, outcomes: list[CheckOutcome]) -> int:
        return sum(self.weights.weight(o.check.value) for o in outcomes if o.passed)

    def _risk_score(self, outcomes: list[CheckOutcome]) -> ValidationResult:
        score = self._score(outcomes)
        violations = tuple(o.violation for o in outcomes if o.violation)
        band = band_for(score, self.config)

        if band is TrustBand.HIGH:
            return ValidationResult(
                allowed=True, require_step_up=False,
                reason=f"High trust (score {score}/100)",
                violations=violations, risk_score=score,
            )
        if band is TrustBand.MEDIUM:
            return ValidationResult(
                allowed=True, require_step_up=True,
                reason=f"Medium trust (score {score}/100): step-up authentication required",
                violations=violations, risk_score=score,
            )
        return ValidationResult(
            allowed=False, require_step_up=False,
            reason=f"Low trust (score {score}/100): access denied",
            violations=violations, risk_score=score,
        )

    def _gate(self, outcomes: list[CheckOutcome], policy: AccessPolicy) -> ValidationResult:
        violations = tuple(o.violation for o in outcomes if o.violation)
        device_forced = any(o.check is Check.DEVICE and not o.passed for o in outcomes)
        allowed = not violations

        return ValidationResult(
            allowed=allowed,
            # Step-up is never signalled on an outright deny
            require_step_up=allowed and (policy.require_step_up or device_forced),
            reason="; ".join(violations),
            violations=violations,
        )


def evaluate(
    context: AccessContext,
    policy: AccessPolicy,
    config: EngineConfig | None = None,
) -> ValidationResult:
    """Evaluate one access attempt with a throwaway evaluator."""
    return PolicyEvaluator(config).evaluate(context, policy)
