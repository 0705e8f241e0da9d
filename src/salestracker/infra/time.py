"""Time utilities for consistent timestamp handling."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def from_epoch_seconds(value: int | float | str) -> datetime:
    """Convert a gateway epoch-seconds timestamp to an aware UTC datetime.

    Raises:
        ValueError: If value is not numeric.
    """
    return datetime.fromtimestamp(float(value), tz=timezone.utc)
