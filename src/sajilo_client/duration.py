"""Duration parsing utilities."""

import re

from sajilo_client.types import Duration

_DURATION_PATTERN = re.compile(r"^(\d+)(ms|s|m|h|d)$")
_UNITS: dict[str, int] = {
    "ms": 1,
    "s": 1000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
}
_INFINITE = frozenset({"never", "infinite", "inf"})


def parse_duration(duration: Duration) -> int:
    """Parse duration string to milliseconds. Passthrough if already int."""
    if isinstance(duration, bool):
        raise ValueError(f"Invalid duration: {duration!r}")
    if isinstance(duration, int):
        if duration < 0:
            raise ValueError(f"Invalid duration: {duration!r}")
        return duration

    match = _DURATION_PATTERN.match(duration)
    if not match:
        raise ValueError(f"Invalid duration: {duration!r}")

    value, unit = match.groups()
    return int(value) * _UNITS[unit]


def parse_max_age(max_age: Duration | None) -> int | None:
    """Like parse_duration, but ``None`` or ``"never"`` mean no expiry."""
    if max_age is None:
        return None
    if isinstance(max_age, str) and max_age.lower() in _INFINITE:
        return None
    return parse_duration(max_age)
