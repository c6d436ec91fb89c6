"""
Check-in streak tracking.

A streak counts consecutive calendar days holding at least one check-in.
Dates are plain calendar dates; no timezone reconciliation happens here.
"""

from dataclasses import dataclass
from datetime import date, timedelta

from .models import Streak

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class StreakUpdate:
    """Outcome of feeding one check-in into the tracker."""

    streak: Streak
    updated: bool


def record_checkin(streak: Streak | None, day: date) -> StreakUpdate:
    """
    Advance a streak with a check-in made on `day`.

    Args:
        streak: The stored streak, or None if the user never checked in
        day: Calendar date of the new check-in

    Returns:
        The resulting streak and whether it changed
    """
    if streak is None or streak.last_checkin_date is None:
        return StreakUpdate(
            streak=Streak(
                current=1,
                longest=max(1, streak.longest if streak else 0),
                last_checkin_date=day,
                started_on=day,
                broken_count=streak.broken_count if streak else 0,
            ),
            updated=True,
        )

    last = streak.last_checkin_date
    if day <= last:
        # Same day, or a late write for a day already counted
        return StreakUpdate(streak=streak, updated=False)

    if day == last + ONE_DAY:
        current = streak.current + 1
        return StreakUpdate(
            streak=streak.model_copy(
                update={
                    "current": current,
                    "longest": max(streak.longest, current),
                    "last_checkin_date": day,
                }
            ),
            updated=True,
        )

    return StreakUpdate(
        streak=streak.model_copy(
            update={
                "current": 1,
                "last_checkin_date": day,
                "started_on": day,
                "broken_count": streak.broken_count + 1,
            }
        ),
        updated=True,
    )


def is_active(streak: Streak | None, today: date) -> bool:
    """Whether the streak can still be extended by a check-in today."""
    if streak is None or streak.last_checkin_date is None or streak.current == 0:
        return False
    return today - streak.last_checkin_date <= ONE_DAY
