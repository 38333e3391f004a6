"""Access policy model for ContextGuard."""

from .models import AccessPolicy, TimeWindow, is_unrestricted

__all__ = ["AccessPolicy", "TimeWindow", "is_unrestricted"]
