"""
Access gateway.

Runs the evaluator for a resource request and acts on the verdict: writes
the audit entry and, on step-up, starts a passcode challenge. Nothing that
happens after evaluation changes the verdict itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..audit.log import AccessLogEntry, AuditAction, AuditLog
from ..exceptions import StepUpError
from ..resources.catalog import ProtectedResource, ResourceCatalog
from ..stepup.service import StepUpChallenge, StepUpService
from .context import AccessContext
from .engine import PolicyEvaluator, ValidationResult, Verdict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessOutcome:
    resource: ProtectedResource
    result: ValidationResult
    entry: AccessLogEntry
    challenge: StepUpChallenge | None = None
    delivery_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_id": self.resource.resource_id,
            "resource_name": self.resource.name,
            **self.result.to_dict(),
            "challenge": self.challenge.to_dict() if self.challenge else None,
            "delivery_error": self.delivery_error,
            "audit_id": self.entry.entry_id,
        }


class AccessGateway:
    """Evaluate, audit and escalate resource requests."""

    def __init__(
        self,
        catalog: ResourceCatalog | None = None,
        evaluator: PolicyEvaluator | None = None,
        audit: AuditLog | None = None,
        step_up: StepUpService | None = None,
    ):
        self.catalog = catalog or ResourceCatalog()
        self.evaluator = evaluator or PolicyEvaluator()
        self.audit = audit or AuditLog(self.evaluator.config)
        self.step_up = step_up or StepUpService()

    def upload(
        self, user_id: str, resource: ProtectedResource, context: AccessContext | None = None
    ) -> ProtectedResource:
        """Register a resource and audit the upload. Raises PolicyError."""
        self.catalog.add(resource)
        self.audit.record(AccessLogEntry(
            resource_id=resource.resource_id,
            resource_name=resource.name,
            user_id=user_id,
            action=AuditAction.UPLOAD,
            result=Verdict.ALLOWED,
            context=context,
        ))
        return resource

    def request_access(
        self,
        user_id: str,
        resource_id: str,
        context: AccessContext,
        action: AuditAction | str = AuditAction.DOWNLOAD,
        destination: str | None = None,
    ) -> AccessOutcome:
        """Decide a request. Raises ResourceNotFoundError for unknown ids."""
        resource = self.catalog.get(resource_id)
        result = self.evaluator.evaluate(context, resource.policy)
        entry = self.audit.record(AccessLogEntry.from_result(
            result,
            resource_id=resource.resource_id,
            resource_name=resource.name,
            user_id=user_id,
            action=action,
            context=context,
        ))

        challenge = None
        delivery_error = None
        if result.verdict is Verdict.STEP_UP_REQUIRED:
            try:
                challenge = self.step_up.challenge(
                    user_id, destination, resource_id=resource.resource_id
                )
            except StepUpError as exc:
                delivery_error = str(exc)

        logger.info(
            "%s requested %s (%s): %s", user_id, resource.resource_id,
            entry.action.value, result.verdict.value,
        )
        return AccessOutcome(resource, result, entry, challenge, delivery_error)

    def complete_step_up(self, user_id: str, resource_id: str, code: str) -> bool:
        """
        Verify a step-up code for a resource and audit the outcome.

        Only a code issued for this resource's own step-up verdict is
        accepted; a resource that was allowed or denied outright has no code.
        """
        resource = self.catalog.get(resource_id)
        verified = self.step_up.verify(user_id, code, resource_id=resource.resource_id)
        self.audit.record(AccessLogEntry(
            resource_id=resource.resource_id,
            resource_name=resource.name,
            user_id=user_id,
            action=AuditAction.DOWNLOAD if verified else AuditAction.DENIED,
            result=Verdict.ALLOWED if verified else Verdict.DENIED,
            reason="Step-up verification succeeded" if verified else "Step-up verification failed",
        ))
        return verified
