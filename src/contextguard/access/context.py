"""
Access context for context-aware access control.

A point-in-time observation of where a request comes from: device,
network origin, country and the instant it was captured.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Any

UNKNOWN_DEVICE = "unknown-device"

_CLOCK_RE = re.compile(r"(?<!\d)(\d{1,2}):(\d{1,2})(?!\d)")


def parse_timestamp(value: datetime | str) -> datetime | None:
    """Parse an ISO-8601 timestamp, or return None when it cannot be read."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def clock_minutes(value: datetime | str, zone: tzinfo | None = None) -> int | None:
    """
    Minutes since midnight for a timestamp.

    Aware timestamps are converted to `zone` when one is given; otherwise
    the timestamp's own offset is used. Unparseable strings fall back to
    the first H:MM fragment they contain, clamped into range.
    """
    moment = parse_timestamp(value)
    if moment is not None:
        if zone is not None and moment.tzinfo is not None:
            moment = moment.astimezone(zone)
        return moment.hour * 60 + moment.minute

    if isinstance(value, str):
        match = _CLOCK_RE.search(value)
        if match:
            hour = min(23, int(match.group(1)))
            minute = min(59, int(match.group(2)))
            return hour * 60 + minute
    return None


def format_clock(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True)
class AccessContext:
    """Situational facts of one access attempt."""
    device_id: str = UNKNOWN_DEVICE
    ip_address: str = "0.0.0.0"
    country: str = "Unknown"
    timestamp: datetime | str = field(default_factory=lambda: datetime.now().astimezone())
    user_agent: str = ""  # Informational only

    @property
    def is_unknown_device(self) -> bool:
        return self.device_id == UNKNOWN_DEVICE

    def time_of_day(self, zone: tzinfo | None = None) -> str | None:
        """The context's local clock time as zero-padded HH:mm."""
        minutes = clock_minutes(self.timestamp, zone)
        return None if minutes is None else format_clock(minutes)

    def to_dict(self) -> dict[str, Any]:
        ts = self.timestamp
        return {
            "device_id": self.device_id,
            "ip_address": self.ip_address,
            "country": self.country,
            "timestamp": ts.isoformat() if isinstance(ts, datetime) else ts,
            "user_agent": self.user_agent,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccessContext:
        """Build a context from snake_case or camelCase keys."""
        def pick(snake: str, camel: str, default: Any) -> Any:
            if snake in data:
                return data[snake]
            return data.get(camel, default)

        timestamp = pick("timestamp", "timestamp", None)
        if timestamp is None:
            timestamp = datetime.now().astimezone()
        elif not isinstance(timestamp, datetime):
            timestamp = str(timestamp)

        return cls(
            device_id=str(pick("device_id", "deviceId", UNKNOWN_DEVICE) or UNKNOWN_DEVICE),
            ip_address=str(pick("ip_address", "ipAddress", "0.0.0.0")),
            country=str(pick("country", "country", "Unknown")),
            timestamp=timestamp,
            user_agent=str(pick("user_agent", "userAgent", "")),
        )
