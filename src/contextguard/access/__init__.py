"""Context-aware access evaluation for ContextGuard."""

from .context import AccessContext, UNKNOWN_DEVICE
from .engine import PolicyEvaluator, ValidationResult, Verdict, evaluate

__all__ = [
    "AccessContext", "UNKNOWN_DEVICE", "PolicyEvaluator",
    "ValidationResult", "Verdict", "evaluate",
]
