"""Shared test fixtures for ContextGuard."""

from datetime import datetime, timezone

import pytest

from contextguard.access import AccessContext, PolicyEvaluator
from contextguard.access.gateway import AccessGateway
from contextguard.audit import AuditLog
from contextguard.config import EngineConfig, Strategy
from contextguard.policy import AccessPolicy
from contextguard.resources import demo_catalog
from contextguard.stepup import OTPStore, StepUpService


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSender:
    def __init__(self, fail: bool = False):
        self.sent: list[tuple[str, str]] = []
        self.fail = fail

    def send(self, destination: str, code: str, ttl: float) -> None:
        if self.fail:
            raise ConnectionError("smtp unavailable")
        self.sent.append((destination, code))


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("CONTEXTGUARD_CONFIG", "CONTEXTGUARD_STRATEGY", "CONTEXTGUARD_TIMEZONE"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def make_context():
    def _make(country="India", device_id="device-123", hour=10, minute=0, **kwargs):
        return AccessContext(
            device_id=device_id,
            ip_address=kwargs.pop("ip_address", "103.45.67.89"),
            country=country,
            timestamp=kwargs.pop(
                "timestamp", datetime(2025, 10, 30, hour, minute, tzinfo=timezone.utc)
            ),
            **kwargs,
        )
    return _make


@pytest.fixture
def scenario_policy():
    return AccessPolicy(
        allowed_countries=["India"],
        allowed_time_start="09:00",
        allowed_time_end="18:00",
        trusted_devices=["device-123"],
        require_step_up=True,
    )


@pytest.fixture
def risk_evaluator():
    return PolicyEvaluator(EngineConfig(strategy=Strategy.RISK_SCORE))


@pytest.fixture
def gate_evaluator():
    return PolicyEvaluator(EngineConfig(strategy=Strategy.GATE))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def otp_store(clock):
    return OTPStore(ttl=300, clock=clock)


@pytest.fixture
def gateway(otp_store, sender):
    config = EngineConfig()
    return AccessGateway(
        catalog=demo_catalog(),
        evaluator=PolicyEvaluator(config),
        audit=AuditLog(config),
        step_up=StepUpService(otp_store, sender),
    )


@pytest.fixture
def failing_sender():
    return RecordingSender(fail=True)
