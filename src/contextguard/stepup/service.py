"""
Step-up challenge flow.

Issues a passcode, hands it to a delivery channel and later verifies the
user's answer. Transport (email, SMS) lives behind CodeSender.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from ..exceptions import StepUpError
from .store import OTPStore

logger = logging.getLogger(__name__)


class CodeSender(Protocol):
    def send(self, destination: str, code: str, ttl: float) -> None:
        """Deliver a code. Raise on failure."""


class LoggingSender:
    """Demo-mode delivery: the code goes to the log instead of a user."""

    def send(self, destination: str, code: str, ttl: float) -> None:
        logger.warning("[DEMO MODE] Step-up code for %s: %s (valid %.0fs)", destination, code, ttl)


@dataclass(frozen=True)
class StepUpChallenge:
    user_id: str
    destination: str
    expires_at: float
    resource_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "destination": self.destination,
            "expires_at": self.expires_at,
            "resource_id": self.resource_id,
        }


class StepUpService:
    """Challenge and verify second-factor codes."""

    def __init__(self, store: OTPStore | None = None, sender: CodeSender | None = None):
        self.store = store or OTPStore()
        self.sender = sender or LoggingSender()

    def challenge(
        self, user_id: str, destination: str | None = None, resource_id: str | None = None
    ) -> StepUpChallenge:
        """Issue and deliver a code, bound to `resource_id` when given."""
        destination = destination or user_id
        pending = self.store.issue(user_id, scope=resource_id)
        try:
            self.sender.send(destination, pending.code, self.store.ttl)
        except Exception as exc:
            self.store.revoke(user_id)
            logger.error("Failed to deliver step-up code to %s: %s", destination, exc)
            raise StepUpError(f"Failed to deliver step-up code to {destination}") from exc
        return StepUpChallenge(user_id, destination, pending.expires_at, resource_id)

    def verify(self, user_id: str, code: str, resource_id: str | None = None) -> bool:
        return self.store.verify(user_id, code, scope=resource_id)
