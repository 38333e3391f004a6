"""ContextGuard exception hierarchy."""

from __future__ import annotations


class ContextGuardError(Exception):
    """Base exception for all ContextGuard errors."""


class ConfigError(ContextGuardError):
    """Raised when the engine configuration is invalid or cannot be read."""


class PolicyError(ContextGuardError):
    """Raised when an access policy is malformed."""


class ResourceNotFoundError(ContextGuardError):
    """Raised when a resource id is not in the catalog."""


class StepUpError(ContextGuardError):
    """Raised when a step-up passcode cannot be delivered."""


class ResourceConflictError(ContextGuardError):
    """Raised when a resource id is already in the catalog."""
