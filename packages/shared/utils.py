"""
Shared Utilities.

Common utility functions used across all packages.
"""

import time
from datetime import datetime, timezone


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def ms_to_iso(timestamp_ms: int) -> str:
    """
    Format a millisecond timestamp the way GitHub's ``since`` parameter expects.

    Args:
        timestamp_ms: Milliseconds since epoch.

    Returns:
        UTC ISO 8601 string with millisecond precision, e.g.
        ``"2024-01-15T10:00:00.123Z"``.
    """
    seconds, millis = divmod(int(timestamp_ms), 1000)
    dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
    return f"{dt.strftime('%Y-%m-%dT%H:%M:%S')}.{millis:03d}Z"

