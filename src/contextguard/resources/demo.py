"""Demo resources and access scenarios."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

from ..access.context import AccessContext
from ..policy.models import AccessPolicy
from .catalog import ProtectedResource, ResourceCatalog

DEMO_USER = "demo-user"
SCENARIOS = ("normal", "suspicious", "foreign", "new-device")

_DEMO_RESOURCES = [
    ProtectedResource(
        "1", "Q4_Financial_Report.pdf", DEMO_USER,
        AccessPolicy(
            allowed_countries=("India", "United States"),
            allowed_time_start="09:00", allowed_time_end="18:00",
            trusted_devices=("device-123", "device-456"),
            require_step_up=True,
        ),
        size=2457600, uploaded_at="2025-10-28T10:30:00+00:00",
    ),
    ProtectedResource(
        "2", "Product_Roadmap_2025.docx", DEMO_USER,
        AccessPolicy(allowed_countries=("India",), trusted_devices=("device-123",)),
        size=1048576, uploaded_at="2025-10-27T14:20:00+00:00",
    ),
    ProtectedResource(
        "3", "Team_Photo.jpg", DEMO_USER,
        AccessPolicy(allowed_countries=("India", "United States", "United Kingdom")),
        size=524288, uploaded_at="2025-10-26T09:15:00+00:00",
    ),
    ProtectedResource(
        "4", "Security_Audit_Report.pdf", DEMO_USER,
        AccessPolicy(
            allowed_countries=("India",),
            allowed_time_start="09:00", allowed_time_end="17:00",
            trusted_devices=("device-123",),
            require_step_up=True,
        ),
        size=3145728, uploaded_at="2025-10-25T16:45:00+00:00",
    ),
]


def demo_catalog() -> ResourceCatalog:
    catalog = ResourceCatalog()
    for resource in _DEMO_RESOURCES:
        catalog.add(replace(resource))
    return catalog


def demo_context(scenario: str = "normal", at: datetime | None = None) -> AccessContext:
    """
    A canned context for one of the demo scenarios.

    `at` sets the base instant (default 10:00 UTC on a fixed day); the
    suspicious scenario moves it to 03:00 on the same day.
    """
    if scenario not in SCENARIOS:
        raise ValueError(f"Unknown scenario {scenario!r} (expected one of: {', '.join(SCENARIOS)})")

    base = at or datetime(2025, 10, 30, 10, 0, tzinfo=timezone.utc)
    ctx = dict(
        device_id="device-123",
        ip_address="103.45.67.89",
        country="India",
        timestamp=base,
        user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64)",
    )
    if scenario == "suspicious":
        ctx["timestamp"] = base.replace(hour=3, minute=0, second=0, microsecond=0)
    elif scenario == "foreign":
        ctx.update(ip_address="198.51.100.42", country="Russia")
    elif scenario == "new-device":
        ctx["device_id"] = "device-unknown-999"
    return AccessContext(**ctx)
