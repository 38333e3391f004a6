"""
Flask REST API for ContextGuard.

Provides endpoints for one-off evaluations, resource registration,
resource access requests with step-up, and the audit trail.
"""

from __future__ import annotations

import time
import uuid

from flask import Flask, jsonify, request

from ..access import AccessContext, PolicyEvaluator
from ..access.gateway import AccessGateway
from ..audit import AuditLog
from ..config import EngineConfig
from ..exceptions import PolicyError, ResourceConflictError, ResourceNotFoundError
from ..policy import AccessPolicy
from ..resources import ProtectedResource, ResourceCatalog
from ..stepup import OTPStore, StepUpService


def create_app(
    config: EngineConfig | None = None,
    catalog: ResourceCatalog | None = None,
    audit_log: AuditLog | None = None,
    step_up: StepUpService | None = None,
) -> Flask:
    """Create and configure the Flask application."""

    app = Flask(__name__)

    config = (config or EngineConfig()).validate()
    evaluator = PolicyEvaluator(config)
    gateway = AccessGateway(
        catalog=catalog or ResourceCatalog(),
        evaluator=evaluator,
        audit=audit_log or AuditLog(config),
        step_up=step_up or StepUpService(OTPStore(ttl=config.otp_ttl_seconds)),
    )
    app.extensions["contextguard"] = gateway

    @app.errorhandler(PolicyError)
    def policy_error(exc):
        return jsonify({"error": "invalid_policy", "detail": str(exc)}), 400

    @app.errorhandler(ResourceConflictError)
    def resource_conflict(exc):
        return jsonify({"error": "resource_conflict", "detail": str(exc)}), 409

    @app.errorhandler(ResourceNotFoundError)
    def resource_not_found(exc):
        return jsonify({"error": "resource_not_found", "detail": str(exc)}), 404

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({
            "status": "healthy",
            "strategy": config.strategy.value,
            "timestamp": time.time(),
        })

    # --- Evaluation ---

    @app.route("/api/v1/access/evaluate", methods=["POST"])
    def access_evaluate():
        data = request.get_json(silent=True) or {}
        if not isinstance(data.get("context"), dict) or not isinstance(data.get("policy"), dict):
            return jsonify({"error": "context and policy objects required"}), 400
        ctx = AccessContext.from_dict(data["context"])
        policy = AccessPolicy.from_dict(data["policy"])
        return jsonify(evaluator.evaluate(ctx, policy).to_dict())

    # --- Resources ---

    @app.route("/api/v1/resources", methods=["GET"])
    def resource_list():
        owner = request.args.get("owner")
        resources = (
            gateway.catalog.for_owner(owner) if owner
            else list(gateway.catalog.resources.values())
        )
        return jsonify({"resources": [r.to_dict() for r in resources]})

    @app.route("/api/v1/resources", methods=["POST"])
    def resource_upload():
        data = request.get_json(silent=True) or {}
        user_id = data.get("user_id", "")
        if not user_id:
            return jsonify({"error": "user_id required"}), 400
        resource = ProtectedResource.from_dict({**data, "resource_id": uuid.uuid4().hex, "owner": user_id})
        ctx = AccessContext.from_dict(data["context"]) if isinstance(data.get("context"), dict) else None
        gateway.upload(user_id, resource, ctx)
        return jsonify(resource.to_dict()), 201

    @app.route("/api/v1/resources/<resource_id>/access", methods=["POST"])
    def resource_access(resource_id: str):
        data = request.get_json(silent=True) or {}
        user_id = data.get("user_id", "")
        if not user_id:
            return jsonify({"error": "user_id required"}), 400
        ctx = AccessContext.from_dict(data.get("context") or {})
        try:
            outcome = gateway.request_access(
                user_id, resource_id, ctx,
                action=data.get("action", "download"),
                destination=data.get("destination"),
            )
        except ValueError:
            return jsonify({"error": "invalid action"}), 400
        status = 200 if outcome.result.allowed else 403
        return jsonify(outcome.to_dict()), status

    @app.route("/api/v1/resources/<resource_id>/verify", methods=["POST"])
    def resource_verify(resource_id: str):
        data = request.get_json(silent=True) or {}
        user_id = data.get("user_id", "")
        code = data.get("code", "")
        if not user_id or not code:
            return jsonify({"error": "user_id and code required"}), 400
        verified = gateway.complete_step_up(user_id, resource_id, str(code))
        return jsonify({"verified": verified}), 200 if verified else 403

    # --- Audit ---

    @app.route("/api/v1/audit/logs", methods=["GET"])
    def audit_logs():
        n = request.args.get("n", 50, type=int)
        user_id = request.args.get("user_id")
        return jsonify({"logs": [e.to_dict() for e in gateway.audit.recent(user_id, n)]})

    @app.route("/api/v1/audit/stats", methods=["GET"])
    def audit_stats():
        return jsonify({
            "results": gateway.audit.stats(),
            "risk": gateway.audit.risk_summary(),
        })

    return app
