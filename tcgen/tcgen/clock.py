"""
FixtureClock - wall clock used to pick the fixture file of the day.

Recorders rotate their output when the calendar day changes. The clock can
be frozen or moved forward so that rotation is deterministic under test.

Environment Variables:
    TCGEN_FROZEN_TIME: ISO-8601 time (or Unix timestamp) to freeze at
"""

import os
import threading
from datetime import date, datetime, timedelta
from typing import Optional


class FixtureClock:
    """
    A clock that can be frozen and advanced.

    Usage:
        from tcgen.clock import fixture_clock

        today = fixture_clock.today()

        fixture_clock.freeze(datetime(2024, 1, 1, 23, 59))
        fixture_clock.advance(minutes=2)
        assert fixture_clock.today() == date(2024, 1, 2)

        fixture_clock.unfreeze()
    """

    def __init__(self, frozen_time: Optional[datetime] = None):
        """
        Initialize the FixtureClock.

        Args:
            frozen_time: If provided, the clock will always return this time
        """
        self._frozen_time: Optional[datetime] = frozen_time
        self._lock = threading.Lock()

    def now(self) -> datetime:
        """Return the current local time (frozen or real)."""
        with self._lock:
            if self._frozen_time is not None:
                return self._frozen_time
        return datetime.now()

    def today(self) -> date:
        """Return the current calendar day."""
        return self.now().date()

    def freeze(self, dt: datetime) -> None:
        """Freeze the clock at a specific time."""
        with self._lock:
            self._frozen_time = dt

    def advance(self, **delta: float) -> datetime:
        """
        Move a frozen clock forward by a ``timedelta(**delta)``.

        Freezes at the real current time first if the clock is running.
        """
        with self._lock:
            base = self._frozen_time if self._frozen_time is not None else datetime.now()
            self._frozen_time = base + timedelta(**delta)
            return self._frozen_time

    def unfreeze(self) -> None:
        """Unfreeze the clock to return real time."""
        with self._lock:
            self._frozen_time = None

    @property
    def is_frozen(self) -> bool:
        with self._lock:
            return self._frozen_time is not None

    def __enter__(self) -> "FixtureClock":
        return self

    def __exit__(self, *args) -> None:
        self.unfreeze()


def _create_clock_from_env() -> FixtureClock:
    """Create a FixtureClock from TCGEN_FROZEN_TIME."""
    frozen_time_str = os.environ.get("TCGEN_FROZEN_TIME")
    frozen_time = None

    if frozen_time_str:
        try:
            frozen_time = datetime.fromisoformat(frozen_time_str)
        except ValueError:
            try:
                frozen_time = datetime.fromtimestamp(float(frozen_time_str))
            except ValueError:
                frozen_time = None

    return FixtureClock(frozen_time=frozen_time)


# Global instance
fixture_clock = _create_clock_from_env()
