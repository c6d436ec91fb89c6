"""
Mood analysis over recent check-ins.

`analyze` condenses the last week of check-ins and diary activity into a
`MoodSnapshot` used to parameterize presentation. It is deterministic and
side-effect free: the same inputs always give the same snapshot.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta

from .models import CheckinStats, Emotion, EmotionStat, MoodCheckin, MoodSnapshot

ANALYSIS_WINDOW = timedelta(days=7)
WINDOW_DAYS = 7
NEUTRAL_SNAPSHOT = MoodSnapshot(mood="happy", engagement_level=30)

SAD_EMOTIONS = frozenset({Emotion.SAD})
ANXIOUS_EMOTIONS = frozenset({Emotion.STRESSED, Emotion.ANGRY})


def in_window(checkins: Iterable[MoodCheckin], now: datetime) -> list[MoodCheckin]:
    """Check-ins created in the trailing week ending at `now`."""
    start = now - ANALYSIS_WINDOW
    return [c for c in checkins if start < c.created_at <= now]


def count_recent(moments: Iterable[datetime], now: datetime) -> int:
    """How many of `moments` fall in the trailing week ending at `now`."""
    start = now - ANALYSIS_WINDOW
    return sum(1 for at in moments if start < at <= now)


def _ratio(window: list[MoodCheckin], emotions: frozenset[Emotion]) -> float:
    return sum(1 for c in window if c.emotion in emotions) / len(window)


def analyze(
    checkins: Iterable[MoodCheckin], diary_entry_count: int, now: datetime
) -> MoodSnapshot:
    """
    Derive the pet's mood and the user's engagement level.

    Args:
        checkins: Check-in history; anything outside the last 7 days is ignored
        diary_entry_count: Number of recent diary entries
        now: End of the analysis window

    Returns:
        The derived MoodSnapshot; a neutral default when the window is empty
    """
    window = in_window(checkins, now)
    if not window:
        return NEUTRAL_SNAPSHOT.model_copy()

    avg_intensity = sum(c.intensity for c in window) / len(window)
    sad_ratio = _ratio(window, SAD_EMOTIONS)
    anxious_ratio = _ratio(window, ANXIOUS_EMOTIONS)

    if sad_ratio > 0.4 and avg_intensity < 5:
        mood = "sad"
    elif anxious_ratio > 0.3 or (anxious_ratio > 0.2 and avg_intensity > 7):
        mood = "anxious"
    else:
        # Mostly positive weeks and mixed weeks both show the happy pet
        mood = "happy"

    checkins_per_day = len(window) / WINDOW_DAYS
    diary_factor = min(max(diary_entry_count, 0) / 10, 1)
    engagement = min(100.0, checkins_per_day * 20 + diary_factor * 30 + avg_intensity * 5)

    return MoodSnapshot(mood=mood, engagement_level=round(engagement))


def emotion_stats(
    checkins: Iterable[MoodCheckin], days: int, now: datetime
) -> CheckinStats:
    """
    Emotion distribution and average intensity over the last `days` days.

    The window is by calendar date: everything created on or after
    `now.date() - days` counts. Every emotion is listed, most frequent first.
    """
    since = now.date() - timedelta(days=days)
    window = [c for c in checkins if since <= c.created_date <= now.date()]
    total = len(window)

    distribution = []
    for emotion in Emotion:
        matching = [c.intensity for c in window if c.emotion is emotion]
        count = len(matching)
        distribution.append(
            EmotionStat(
                emotion_id=emotion.id,
                emotion=emotion,
                count=count,
                avg_intensity=round(sum(matching) / count, 2) if count else 0.0,
                percentage=round(count / total * 100, 1) if total else 0.0,
            )
        )
    distribution.sort(key=lambda stat: (-stat.count, stat.emotion_id))

    return CheckinStats(
        period_days=days,
        total_checkins=total,
        avg_intensity=round(sum(c.intensity for c in window) / total, 2) if total else 0.0,
        emotion_distribution=distribution,
    )
