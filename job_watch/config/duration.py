"""Duration strings used by check budgets and the scan interval.

Two spellings are accepted: compact unit strings ("45s", "15m", "1h30m",
"2d") and ISO-8601 durations ("PT45S", "PT1H30M", "P1D").
"""

import re

_ISO_DURATION = re.compile(
    r"^P(?:(?P<d>\d+)D)?(?:T(?:(?P<h>\d+)H)?(?:(?P<m>\d+)M)?(?:(?P<s>\d+(?:\.\d+)?)S)?)?$"
)
_UNIT_PART = re.compile(r"(\d+)([smhd])")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


class DurationParseError(ValueError):
    """A duration string is malformed, zero or out of range."""


def parse_duration(value: str) -> int:
    """
    Convert a duration string to whole seconds.

    Examples:
        >>> parse_duration("30s")
        30
        >>> parse_duration("1h30m")
        5400
        >>> parse_duration("PT2M")
        120

    Raises:
        DurationParseError: If the string is empty, malformed or zero
    """
    raw = value.strip()
    if not raw:
        raise DurationParseError("Duration string cannot be empty")

    if raw[0] in "pP":
        seconds = _iso_seconds(raw)
    else:
        seconds = _unit_seconds(raw)

    if seconds == 0:
        raise DurationParseError(f"Duration cannot be zero: '{value}'")
    return seconds


def _iso_seconds(raw: str) -> int:
    match = _ISO_DURATION.match(raw.upper())
    if not match:
        raise DurationParseError(
            f"Invalid ISO-8601 duration: '{raw}'. Expected e.g. 'PT45S', 'PT1H30M' or 'P1D'"
        )
    parts = match.groupdict(default="0")
    return (
        int(parts["d"]) * _UNIT_SECONDS["d"]
        + int(parts["h"]) * _UNIT_SECONDS["h"]
        + int(parts["m"]) * _UNIT_SECONDS["m"]
        + int(float(parts["s"]))
    )


def _unit_seconds(raw: str) -> int:
    compact = re.sub(r"\s+", "", raw.lower())
    parts = _UNIT_PART.findall(compact)
    if not parts or "".join(n + u for n, u in parts) != compact:
        raise DurationParseError(
            f"Invalid duration: '{raw}'. Use digits followed by s, m, h or d (e.g. '30s', '1h30m')"
        )
    return sum(int(n) * _UNIT_SECONDS[u] for n, u in parts)


def describe_seconds(seconds: int) -> str:
    """Largest whole unit, e.g. 5400 -> "1 hour"."""
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'s' if count != 1 else ''}"
    return f"{seconds} second{'s' if seconds != 1 else ''}"


def validate_duration_range(
    seconds: int,
    min_seconds: int = 300,
    max_seconds: int = 86400,
    label: str = "Scan interval",
) -> None:
    """
    Raises:
        DurationParseError: If seconds falls outside [min_seconds, max_seconds]
    """
    if seconds < min_seconds:
        raise DurationParseError(
            f"{label} too short: {describe_seconds(seconds)}. Minimum is {describe_seconds(min_seconds)}."
        )
    if seconds > max_seconds:
        raise DurationParseError(
            f"{label} too long: {describe_seconds(seconds)}. Maximum is {describe_seconds(max_seconds)}."
        )
