"""Time helpers shared by the adapters, normalizer and materializer.

Components take a ``Clock`` instead of calling ``datetime.now`` directly
so tests can pin the time.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def lookback_cutoff(now: datetime, lookback_days: int) -> datetime:
    """Start of the lookback window ending at ``now``."""
    return now - timedelta(days=lookback_days)


def iso_timestamp(value: datetime) -> str:
    """Format like JavaScript's ``Date.toISOString()`` (millisecond precision, Z)."""
    value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def epoch_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)
