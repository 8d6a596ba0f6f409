"""
Symbolic time windows.

The label -> millisecond mapping is a compatibility surface: callers persist
window labels, so the durations must not change.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Union

from digest_core.models import ensure_aware, utc_now


class TimeWindow(str, Enum):
    """Supported look-back windows."""

    HOUR_1 = "1h"
    HOURS_6 = "6h"
    HOURS_12 = "12h"
    HOURS_24 = "24h"
    DAYS_3 = "3d"
    DAYS_7 = "7d"

    @property
    def milliseconds(self) -> int:
        return TIME_WINDOW_MS[self]

    @property
    def duration(self) -> timedelta:
        return timedelta(milliseconds=self.milliseconds)

    def cutoff(self, now: Optional[datetime] = None) -> datetime:
        """Instant ``now - window``. A naive ``now`` is taken as UTC."""
        return (ensure_aware(now) if now else utc_now()) - self.duration


TIME_WINDOW_MS = {
    TimeWindow.HOUR_1: 3_600_000,
    TimeWindow.HOURS_6: 21_600_000,
    TimeWindow.HOURS_12: 43_200_000,
    TimeWindow.HOURS_24: 86_400_000,
    TimeWindow.DAYS_3: 259_200_000,
    TimeWindow.DAYS_7: 604_800_000,
}


def parse_time_window(window: Union[str, TimeWindow]) -> TimeWindow:
    """
    Resolve a label such as "24h" to a TimeWindow.

    Raises:
        ValueError: If the label is not a supported window
    """
    try:
        return TimeWindow(window)
    except ValueError:
        supported = ", ".join(w.value for w in TimeWindow)
        raise ValueError(f"Unsupported time window {window!r} (supported: {supported})") from None
