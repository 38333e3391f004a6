"""
Access policy model.

A policy is attached to a protected resource when it is uploaded and
declares where, when and from which devices the resource may be opened.
Empty country and device lists mean "unrestricted", never "deny all".
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable

from ..exceptions import PolicyError

_HHMM_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def is_unrestricted(values: Iterable[str]) -> bool:
    """An empty allow-list places no restriction on its dimension."""
    return len(tuple(values)) == 0


def parse_clock(value: str | None) -> int | None:
    """Parse H:mm or HH:mm into minutes since midnight."""
    if value is None:
        return None
    match = _HHMM_RE.match(str(value))
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return hour * 60 + minute


def _as_tuple(values: Any) -> tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, str):
        values = values.split(",")
    try:
        items = list(values)
    except TypeError as exc:
        raise PolicyError(f"Expected a list of strings, got {values!r}") from exc
    return tuple(str(v).strip() for v in items if str(v).strip())


@dataclass(frozen=True)
class TimeWindow:
    """
    Daily access window, inclusive on both ends.

    A window whose start is after its end (22:00-06:00) does not wrap
    midnight: it contains no time at all.
    """
    start: int  # minutes since midnight
    end: int

    @property
    def empty(self) -> bool:
        return self.start > self.end

    def contains(self, minutes: int) -> bool:
        return self.start <= minutes <= self.end


@dataclass(frozen=True)
class AccessPolicy:
    """Resource-owner-declared constraints on access."""
    allowed_countries: tuple[str, ...] = ()
    allowed_time_start: str | None = None  # HH:mm
    allowed_time_end: str | None = None  # HH:mm
    trusted_devices: tuple[str, ...] = ()
    require_step_up: bool = False

    def __post_init__(self):
        # Accept lists from callers while keeping the record immutable
        object.__setattr__(self, "allowed_countries", _as_tuple(self.allowed_countries))
        object.__setattr__(self, "trusted_devices", _as_tuple(self.trusted_devices))

    @property
    def countries_unrestricted(self) -> bool:
        return is_unrestricted(self.allowed_countries)

    @property
    def devices_unrestricted(self) -> bool:
        return is_unrestricted(self.trusted_devices)

    def time_window(self) -> TimeWindow | None:
        """The daily window, or None when it is absent or incomplete."""
        start = parse_clock(self.allowed_time_start)
        end = parse_clock(self.allowed_time_end)
        if start is None or end is None:
            return None
        return TimeWindow(start, end)

    def problems(self) -> list[str]:
        """Describe everything malformed about this policy."""
        issues = []
        has_start = self.allowed_time_start is not None
        has_end = self.allowed_time_end is not None
        if has_start != has_end:
            issues.append("allowed_time_start and allowed_time_end must be set together")
        for name, value in (
            ("allowed_time_start", self.allowed_time_start),
            ("allowed_time_end", self.allowed_time_end),
        ):
            if value is not None and parse_clock(value) is None:
                issues.append(f"{name} must be HH:mm, got {value!r}")
        return issues

    def validate(self) -> AccessPolicy:
        issues = self.problems()
        if issues:
            raise PolicyError("; ".join(issues))
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed_countries": list(self.allowed_countries),
            "allowed_time_start": self.allowed_time_start,
            "allowed_time_end": self.allowed_time_end,
            "trusted_devices": list(self.trusted_devices),
            "require_step_up": self.require_step_up,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccessPolicy:
        """Build a policy from snake_case or camelCase keys."""
        def pick(snake: str, camel: str) -> Any:
            return data[snake] if snake in data else data.get(camel)

        def clock(value: Any) -> str | None:
            if value is None or value == "":
                return None
            if isinstance(value, int) and not isinstance(value, bool):
                # YAML 1.1 reads unquoted 18:00 as sexagesimal 1080
                return f"{value // 60:02d}:{value % 60:02d}"
            return str(value).strip()

        return cls(
            allowed_countries=_as_tuple(pick("allowed_countries", "allowedCountries")),
            allowed_time_start=clock(pick("allowed_time_start", "allowedTimeStart")),
            allowed_time_end=clock(pick("allowed_time_end", "allowedTimeEnd")),
            trusted_devices=_as_tuple(pick("trusted_devices", "trustedDevices")),
            require_step_up=bool(pick("require_step_up", "requireStepUp") or False),
        )
