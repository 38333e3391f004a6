"""In-memory access audit log."""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ..access.context import AccessContext
from ..access.engine import ValidationResult, Verdict
from ..config import EngineConfig
from ..risk.scoring import summarize_scores


class AuditAction(str, Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"
    VIEW = "view"
    DENIED = "denied"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class AccessLogEntry:
    resource_id: str
    user_id: str
    action: AuditAction
    result: Verdict
    context: AccessContext | None = None
    resource_name: str = ""
    reason: str = ""
    violations: tuple[str, ...] = ()
    risk_score: int | None = None
    entry_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: str = field(default_factory=_now)

    @classmethod
    def from_result(
        cls,
        result: ValidationResult,
        *,
        resource_id: str,
        user_id: str,
        action: AuditAction | str = AuditAction.DOWNLOAD,
        context: AccessContext | None = None,
        resource_name: str = "",
    ) -> AccessLogEntry:
        """Record a verdict. Denied attempts are logged with the `denied` action."""
        action = AuditAction(action)
        if not result.allowed:
            action = AuditAction.DENIED
        return cls(
            resource_id=resource_id,
            user_id=user_id,
            action=action,
            result=result.verdict,
            context=context,
            resource_name=resource_name,
            reason=result.reason,
            violations=result.violations,
            risk_score=result.risk_score,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.entry_id,
            "resource_id": self.resource_id,
            "resource_name": self.resource_name,
            "user_id": self.user_id,
            "action": self.action.value,
            "result": self.result.value,
            "reason": self.reason,
            "violations": list(self.violations),
            "risk_score": self.risk_score,
            "context": self.context.to_dict() if self.context else None,
            "timestamp": self.timestamp,
        }


class AuditLog:
    """Append-only log of access attempts."""

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()
        self._entries: list[AccessLogEntry] = []
        self._lock = threading.Lock()

    def record(self, entry: AccessLogEntry) -> AccessLogEntry:
        with self._lock:
            self._entries.append(entry)
        return entry

    def recent(self, user_id: str | None = None, limit: int = 50) -> list[AccessLogEntry]:
        """Most recent entries first, optionally for one user."""
        with self._lock:
            entries = list(self._entries)
        if user_id is not None:
            entries = [e for e in entries if e.user_id == user_id]
        return entries[::-1][:max(0, limit)]

    def stats(self) -> dict[str, int]:
        counts = {v.value: 0 for v in Verdict}
        with self._lock:
            for e in self._entries:
                counts[e.result.value] += 1
        return counts

    def risk_summary(self) -> dict[str, Any]:
        with self._lock:
            scores = [e.risk_score for e in self._entries if e.risk_score is not None]
        return summarize_scores(scores, self.config)

    def __len__(self) -> int:
        return len(self._entries)
