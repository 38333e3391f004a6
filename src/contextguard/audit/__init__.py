"""Access audit trail for ContextGuard."""

from .log import AccessLogEntry, AuditAction, AuditLog

__all__ = ["AccessLogEntry", "AuditAction", "AuditLog"]
