"""
Shared fixtures for the MoodPet tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

T0 = datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable replacement for `utcnow`."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
