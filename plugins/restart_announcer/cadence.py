"""
Announcement cadence for restart countdowns.

Announcements follow the operator's interval while more than a minute
remains. Inside the final minute an emergency tier takes over:

    31-60 seconds left -> every 10 seconds
    11-30 seconds left -> every 5 seconds
    0-10 seconds left  -> every second

The operator's interval still wins whenever it is more frequent.
"""

EMERGENCY_THRESHOLD = 60

# (upper bound of remaining seconds, interval), checked in order
EMERGENCY_TIERS = [
    (10, 1),
    (30, 5),
    (EMERGENCY_THRESHOLD, 10),
]


def emergency_tier(remaining: int) -> int:
    """Emergency interval for a countdown with at most a minute left."""
    for upper, interval in EMERGENCY_TIERS:
        if remaining <= upper:
            return interval
    return EMERGENCY_TIERS[-1][1]


def next_announcement_interval(remaining: int, base_interval: int) -> int:
    """
    Seconds until the next announcement.

    Args:
        remaining: Seconds left on the countdown right now.
        base_interval: Operator-configured announcement interval.

    Returns:
        Interval in seconds, never less than 1. Above the emergency threshold
        the interval is shortened so the next announcement lands no later than
        the threshold itself.
    """
    base_interval = max(1, base_interval)

    if remaining > EMERGENCY_THRESHOLD:
        if base_interval > remaining - EMERGENCY_THRESHOLD:
            return max(1, remaining - EMERGENCY_THRESHOLD)
        return base_interval

    return min(emergency_tier(remaining), base_interval)
