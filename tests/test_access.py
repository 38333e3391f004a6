"""Tests for context-aware access evaluation."""

import json

import pytest

from contextguard.access import AccessContext, PolicyEvaluator, UNKNOWN_DEVICE, Verdict, evaluate
from contextguard.access.context import clock_minutes
from contextguard.access.gateway import AccessGateway
from contextguard.audit import AuditAction
from contextguard.config import EngineConfig, Strategy
from contextguard.exceptions import ResourceConflictError, ResourceNotFoundError
from contextguard.policy import AccessPolicy
from contextguard.stepup import StepUpService


class TestAccessContext:
    def test_time_of_day_zero_padded(self, make_context):
        ctx = make_context(hour=3, minute=5)
        assert ctx.time_of_day() == "03:05"

    def test_time_of_day_from_iso_string(self):
        ctx = AccessContext(timestamp="2025-10-30T10:15:00Z")
        assert ctx.time_of_day() == "10:15"

    def test_time_of_day_uses_own_offset(self):
        ctx = AccessContext(timestamp="2025-10-30T10:15:00+05:30")
        assert ctx.time_of_day() == "10:15"

    def test_time_of_day_converted_to_zone(self):
        from zoneinfo import ZoneInfo
        ctx = AccessContext(timestamp="2025-10-30T03:00:00+00:00")
        assert ctx.time_of_day(ZoneInfo("Asia/Kolkata")) == "08:30"

    def test_best_effort_clock_fragment(self):
        assert clock_minutes("sometime around 7:45 local") == 7 * 60 + 45

    def test_clock_fragment_clamped(self):
        assert clock_minutes("at 99:99") == 23 * 60 + 59

    def test_unreadable_timestamp(self):
        assert AccessContext(timestamp="garbage").time_of_day() is None

    def test_unknown_device_sentinel(self):
        assert AccessContext().is_unknown_device
        assert AccessContext().device_id == UNKNOWN_DEVICE

    def test_immutable(self, make_context):
        ctx = make_context()
        with pytest.raises(AttributeError):
            ctx.country = "Russia"

    def test_from_dict_camel_case(self):
        ctx = AccessContext.from_dict({
            "deviceId": "device-123",
            "ipAddress": "10.0.0.1",
            "country": "India",
            "timestamp": "2025-10-30T10:00:00Z",
            "userAgent": "curl/8.0",
        })
        assert ctx.device_id == "device-123"
        assert ctx.ip_address == "10.0.0.1"
        assert ctx.user_agent == "curl/8.0"

    def test_from_dict_empty_device_is_unknown(self):
        ctx = AccessContext.from_dict({"device_id": "", "timestamp": "2025-10-30T10:00:00Z"})
        assert ctx.is_unknown_device

    def test_to_dict(self, make_context):
        d = make_context().to_dict()
        assert d["country"] == "India"
        assert d["timestamp"].startswith("2025-10-30T10:00:00")


class TestRiskScoreStrategy:
    def test_scenario_all_checks_pass(self, risk_evaluator, scenario_policy, make_context):
        result = risk_evaluator.evaluate(make_context(), scenario_policy)
        assert result.risk_score == 100
        assert result.allowed
        assert not result.require_step_up
        assert result.violations == ()
        assert "high trust" in result.reason.lower()
        assert result.verdict == Verdict.ALLOWED

    def test_scenario_outside_time_window(self, risk_evaluator, scenario_policy, make_context):
        result = risk_evaluator.evaluate(make_context(hour=3), scenario_policy)
        assert result.risk_score == 80
        assert result.allowed
        assert result.require_step_up
        assert "medium trust" in result.reason.lower()
        assert result.violations == ("Access allowed only between 09:00 and 18:00",)

    def test_scenario_foreign_country(self, risk_evaluator, scenario_policy, make_context):
        result = risk_evaluator.evaluate(make_context(country="Russia"), scenario_policy)
        assert result.risk_score == 60
        assert result.allowed
        assert result.require_step_up
        assert result.violations == ("Access from Russia is not allowed",)

    def test_scenario_country_and_device_fail(self, risk_evaluator, scenario_policy, make_context):
        ctx = make_context(country="Russia", device_id="device-999")
        result = risk_evaluator.evaluate(ctx, scenario_policy)
        assert result.risk_score == 20
        assert not result.allowed
        assert not result.require_step_up
        assert len(result.violations) == 2
        assert "low trust" in result.reason.lower()
        assert result.verdict == Verdict.DENIED

    def test_everything_fails(self, risk_evaluator, scenario_policy, make_context):
        ctx = make_context(country="Russia", device_id="device-999", hour=23)
        result = risk_evaluator.evaluate(ctx, scenario_policy)
        assert result.risk_score == 0
        assert result.violations == (
            "Access from Russia is not allowed",
            "Access allowed only between 09:00 and 18:00",
            "Device not recognized as trusted",
        )

    def test_policy_step_up_flag_ignored(self, risk_evaluator, make_context):
        policy = AccessPolicy(allowed_countries=["India"], require_step_up=True)
        result = risk_evaluator.evaluate(make_context(), policy)
        assert result.allowed
        assert not result.require_step_up

    def test_untrusted_device_demotes_to_step_up(self, risk_evaluator, scenario_policy, make_context):
        result = risk_evaluator.evaluate(make_context(device_id="device-999"), scenario_policy)
        assert result.risk_score == 60
        assert result.verdict == Verdict.STEP_UP_REQUIRED


class TestGateStrategy:
    def test_untrusted_device_denied(self, gate_evaluator, make_context):
        policy = AccessPolicy(trusted_devices=["device-123"])
        result = gate_evaluator.evaluate(make_context(device_id="device-999"), policy)
        assert not result.allowed
        assert not result.require_step_up
        assert result.violations == ("Device not recognized as trusted",)
        assert result.risk_score is None

    def test_clean_request_allowed(self, gate_evaluator, make_context):
        policy = AccessPolicy(allowed_countries=["India"], trusted_devices=["device-123"])
        result = gate_evaluator.evaluate(make_context(), policy)
        assert result.allowed
        assert not result.require_step_up
        assert result.reason == ""
        assert result.verdict == Verdict.ALLOWED

    def test_policy_step_up_honoured(self, gate_evaluator, scenario_policy, make_context):
        result = gate_evaluator.evaluate(make_context(), scenario_policy)
        assert result.allowed
        assert result.require_step_up
        assert result.verdict == Verdict.STEP_UP_REQUIRED

    def test_reason_joins_violations(self, gate_evaluator, scenario_policy, make_context):
        ctx = make_context(country="Russia", hour=3)
        result = gate_evaluator.evaluate(ctx, scenario_policy)
        assert not result.allowed
        assert result.reason == (
            "Access from Russia is not allowed; "
            "Access allowed only between 09:00 and 18:00"
        )


class TestChecks:
    @pytest.mark.parametrize("strategy", list(Strategy))
    def test_empty_lists_are_unrestricted(self, strategy, make_context):
        evaluator = PolicyEvaluator(EngineConfig(strategy=strategy))
        policy = AccessPolicy()
        for ctx in (
            make_context(),
            make_context(country="Atlantis", device_id=UNKNOWN_DEVICE, hour=2),
        ):
            result = evaluator.evaluate(ctx, policy)
            assert result.allowed
            assert result.violations == ()

    def test_unrestricted_lists_score(self, risk_evaluator, make_context):
        policy = AccessPolicy(allowed_time_start="09:00", allowed_time_end="18:00")
        ctx = make_context(country="Atlantis", device_id="anything")
        assert risk_evaluator.score(ctx, policy) == 100
        assert risk_evaluator.score(make_context(hour=20), policy) == 80

    @pytest.mark.parametrize("hour,minute", [(9, 0), (18, 0), (12, 30)])
    def test_window_bounds_inclusive(self, risk_evaluator, make_context, hour, minute):
        policy = AccessPolicy(allowed_time_start="09:00", allowed_time_end="18:00")
        result = risk_evaluator.evaluate(make_context(hour=hour, minute=minute), policy)
        assert result.violations == ()

    @pytest.mark.parametrize("hour,minute", [(8, 59), (18, 1)])
    def test_window_just_outside(self, risk_evaluator, make_context, hour, minute):
        policy = AccessPolicy(allowed_time_start="09:00", allowed_time_end="18:00")
        result = risk_evaluator.evaluate(make_context(hour=hour, minute=minute), policy)
        assert len(result.violations) == 1

    def test_bound_equal_to_context_time(self, risk_evaluator, make_context):
        policy = AccessPolicy(allowed_time_start="14:45", allowed_time_end="14:45")
        result = risk_evaluator.evaluate(make_context(hour=14, minute=45), policy)
        assert result.violations == ()

    def test_single_digit_hour_normalised(self, risk_evaluator, make_context):
        policy = AccessPolicy(allowed_time_start="9:00", allowed_time_end="18:00")
        result = risk_evaluator.evaluate(make_context(hour=10), policy)
        assert result.violations == ()
        late = risk_evaluator.evaluate(make_context(hour=8), policy)
        assert late.violations == ("Access allowed only between 09:00 and 18:00",)

    def test_reversed_window_always_fails(self, gate_evaluator, make_context, caplog):
        policy = AccessPolicy(allowed_time_start="22:00", allowed_time_end="06:00")
        with caplog.at_level("WARNING"):
            results = [gate_evaluator.evaluate(make_context(hour=h), policy) for h in (23, 5, 12)]
        for result in results:
            assert not result.allowed
            assert result.violations == ("Access allowed only between 22:00 and 06:00",)
        assert "admits no time" in caplog.text

    def test_reversed_window_scores_without_time(self, risk_evaluator, make_context):
        policy = AccessPolicy(allowed_time_start="22:00", allowed_time_end="06:00")
        assert risk_evaluator.score(make_context(hour=23, minute=30), policy) == 80

    def test_incomplete_window_is_unrestricted(self, risk_evaluator, make_context):
        policy = AccessPolicy(allowed_time_start="09:00")
        result = risk_evaluator.evaluate(make_context(hour=3), policy)
        assert result.risk_score == 100

    def test_malformed_bound_is_unrestricted(self, gate_evaluator, make_context):
        policy = AccessPolicy(allowed_time_start="nine", allowed_time_end="18:00")
        result = gate_evaluator.evaluate(make_context(hour=3), policy)
        assert result.allowed

    def test_unreadable_timestamp_fails_closed(self, risk_evaluator, scenario_policy, make_context):
        result = risk_evaluator.evaluate(make_context(timestamp="not a time"), scenario_policy)
        assert result.risk_score == 80
        assert result.violations == ("Access allowed only between 09:00 and 18:00",)

    def test_unreadable_timestamp_without_window(self, risk_evaluator, make_context):
        result = risk_evaluator.evaluate(make_context(timestamp="not a time"), AccessPolicy())
        assert result.risk_score == 100

    def test_unknown_device_is_untrusted(self, risk_evaluator, make_context):
        policy = AccessPolicy(trusted_devices=["device-123"])
        result = risk_evaluator.evaluate(make_context(device_id=UNKNOWN_DEVICE), policy)
        assert result.violations == ("Device not recognized as trusted",)

    def test_unknown_device_never_trusted(self, risk_evaluator, make_context):
        policy = AccessPolicy(trusted_devices=[UNKNOWN_DEVICE])
        result = risk_evaluator.evaluate(make_context(device_id=UNKNOWN_DEVICE), policy)
        assert result.violations == ("Device not recognized as trusted",)

    def test_timezone_config(self, make_context):
        evaluator = PolicyEvaluator(EngineConfig(timezone="Asia/Kolkata"))
        policy = AccessPolicy(allowed_time_start="09:00", allowed_time_end="18:00")
        # 03:00 UTC is 08:30 IST, 04:00 UTC is 09:30 IST
        assert evaluator.score(make_context(hour=3), policy) == 80
        assert evaluator.score(make_context(hour=4), policy) == 100


class TestDeterminism:
    def test_identical_inputs_identical_output(self, risk_evaluator, scenario_policy, make_context):
        ctx = make_context(country="Russia", hour=3)
        first = risk_evaluator.evaluate(ctx, scenario_policy)
        second = risk_evaluator.evaluate(ctx, scenario_policy)
        assert first == second
        assert json.dumps(first.to_dict()) == json.dumps(second.to_dict())

    def test_module_level_evaluate(self, scenario_policy, make_context):
        result = evaluate(make_context(), scenario_policy)
        assert result.risk_score == 100
        gated = evaluate(make_context(), scenario_policy, EngineConfig(strategy=Strategy.GATE))
        assert gated.risk_score is None

    def test_policy_untouched(self, risk_evaluator, scenario_policy, make_context):
        before = scenario_policy.to_dict()
        risk_evaluator.evaluate(make_context(country="Russia"), scenario_policy)
        assert scenario_policy.to_dict() == before

    def test_result_to_dict(self, risk_evaluator, scenario_policy, make_context):
        d = risk_evaluator.evaluate(make_context(hour=3), scenario_policy).to_dict()
        assert d["verdict"] == "step-up-required"
        assert d["risk_score"] == 80
        assert isinstance(d["violations"], list)


class TestAccessGateway:
    def test_allowed_request_audited(self, gateway, make_context):
        outcome = gateway.request_access("alice", "1", make_context())
        assert outcome.result.verdict == Verdict.ALLOWED
        assert outcome.challenge is None
        entry = gateway.audit.recent()[0]
        assert entry.result == Verdict.ALLOWED
        assert entry.action == AuditAction.DOWNLOAD
        assert entry.resource_name == "Q4_Financial_Report.pdf"

    def test_step_up_issues_challenge(self, gateway, sender, make_context):
        outcome = gateway.request_access(
            "alice", "1", make_context(device_id="device-999"), destination="alice@corp.io"
        )
        assert outcome.result.verdict == Verdict.STEP_UP_REQUIRED
        assert outcome.challenge is not None
        assert sender.sent[0][0] == "alice@corp.io"

    def test_complete_step_up(self, gateway, sender, make_context):
        gateway.request_access("alice", "1", make_context(device_id="device-999"))
        code = sender.sent[-1][1]
        assert gateway.complete_step_up("alice", "1", code)
        assert not gateway.complete_step_up("alice", "1", code)
        results = [e.result for e in gateway.audit.recent()]
        assert results[:2] == [Verdict.DENIED, Verdict.ALLOWED]


    def test_step_up_code_bound_to_its_resource(self, gateway, sender, make_context):
        outcome = gateway.request_access("alice", "2", make_context(device_id="device-999"))
        assert outcome.result.verdict == Verdict.STEP_UP_REQUIRED
        assert outcome.challenge.resource_id == "2"
        code = sender.sent[-1][1]

        hostile = make_context(country="Russia", device_id="evil", hour=3)
        assert gateway.request_access("alice", "4", hostile).result.verdict == Verdict.DENIED
        assert not gateway.complete_step_up("alice", "4", code)
        entry = gateway.audit.recent()[0]
        assert entry.resource_id == "4"
        assert entry.result == Verdict.DENIED

        assert gateway.complete_step_up("alice", "2", code)

    def test_no_code_without_step_up_verdict(self, gateway, sender, make_context):
        gateway.request_access("alice", "1", make_context())
        assert sender.sent == []
        assert not gateway.complete_step_up("alice", "1", "123456")

    def test_upload_refuses_existing_id(self, gateway):
        from contextguard.resources import ProtectedResource

        with pytest.raises(ResourceConflictError):
            gateway.upload("mallory", ProtectedResource("4", "open.txt", "mallory"))
        assert gateway.catalog.get("4").owner == "demo-user"
        assert gateway.catalog.get("4").policy.trusted_devices == ("device-123",)

    def test_denied_request(self, gateway, make_context):
        ctx = make_context(country="Russia", device_id="device-999", hour=3)
        outcome = gateway.request_access("mallory", "4", ctx)
        assert outcome.result.verdict == Verdict.DENIED
        assert outcome.challenge is None
        assert outcome.entry.action == AuditAction.DENIED
        assert len(outcome.entry.violations) == 3

    def test_delivery_failure_keeps_verdict(self, failing_sender, make_context):
        from contextguard.resources import demo_catalog
        from contextguard.stepup import OTPStore

        store = OTPStore()
        gw = AccessGateway(
            catalog=demo_catalog(),
            step_up=StepUpService(store, failing_sender),
        )
        outcome = gw.request_access("alice", "1", make_context(device_id="device-999"))
        assert outcome.result.verdict == Verdict.STEP_UP_REQUIRED
        assert outcome.challenge is None
        assert outcome.delivery_error
        assert not store.pending("alice")
        assert len(gw.audit) == 1

    def test_unknown_resource(self, gateway, make_context):
        with pytest.raises(ResourceNotFoundError):
            gateway.request_access("alice", "nope", make_context())

    def test_upload_audited(self, gateway):
        from contextguard.resources import ProtectedResource

        gateway.upload("alice", ProtectedResource("9", "notes.txt", "alice"))
        assert "9" in gateway.catalog
        assert gateway.audit.recent()[0].action == AuditAction.UPLOAD

    def test_outcome_to_dict(self, gateway, make_context):
        d = gateway.request_access("alice", "2", make_context()).to_dict()
        assert d["resource_id"] == "2"
        assert d["verdict"] == "allowed"
        assert d["audit_id"]
