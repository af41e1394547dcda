"""
plugins/restart_announcer/timespec.py

Duration parsing and formatting for restart countdowns.

Provides:
- parse_time_spec() for operator input like "5m", "30s", "2h" or "10"
- format_duration() for the human-readable remaining time in announcements
"""

import re


class InvalidTimeFormat(ValueError):
    """Raised when a duration string cannot be parsed."""


# Suffix multipliers (in seconds). No suffix means minutes.
TIME_SUFFIXES = {
    "s": 1,
    "m": 60,
    "h": 3600,
}

DEFAULT_MULTIPLIER = TIME_SUFFIXES["m"]

_NUMBER = re.compile(r"^\+?\d+$")


def parse_time_spec(time_str: str) -> int:
    """
    Parse a duration string into seconds.

    Supported formats:
    - "90s" - seconds
    - "5m" - minutes
    - "2h" - hours
    - "10" - bare number, treated as minutes

    Args:
        time_str: User input string.

    Returns:
        Duration in seconds.

    Raises:
        InvalidTimeFormat: If the numeric part is missing or not a whole number.
    """
    if time_str is None:
        raise InvalidTimeFormat("No time given. Try: 90s, 5m, 2h or 10")

    text = str(time_str).strip().lower()
    multiplier = DEFAULT_MULTIPLIER

    if text and text[-1] in TIME_SUFFIXES:
        multiplier = TIME_SUFFIXES[text[-1]]
        text = text[:-1].strip()

    if not _NUMBER.match(text):
        raise InvalidTimeFormat(
            f"Couldn't parse '{time_str}'. Try: 90s, 5m, 2h or 10"
        )

    return int(text) * multiplier


def _plural(amount: int, unit: str) -> str:
    return f"{amount} {unit}{'s' if amount != 1 else ''}"


def format_duration(seconds: int) -> str:
    """
    Format a number of seconds for restart announcements.

    Under a minute shows seconds, under an hour shows minutes and seconds,
    otherwise hours and minutes. Zero components are left out.

    Examples:
        45 -> "45 seconds"
        90 -> "1 minute 30 seconds"
        3660 -> "1 hour 1 minute"
    """
    if seconds < 60:
        return _plural(seconds, "second")

    if seconds < 3600:
        minutes, remaining = divmod(seconds, 60)
        text = _plural(minutes, "minute")
        if remaining:
            text += " " + _plural(remaining, "second")
        return text

    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    text = _plural(hours, "hour")
    if minutes:
        text += " " + _plural(minutes, "minute")
    return text
