"""
Golden-value tests for mood analysis.
"""

from datetime import timedelta

from moodpet.analyzer import analyze, count_recent, emotion_stats
from moodpet.models import Emotion, MoodCheckin, MoodSnapshot

from .conftest import T0


def checkins(*specs: tuple[Emotion, int, float]) -> list[MoodCheckin]:
    """Build check-ins from (emotion, intensity, days_ago) triples."""
    return [
        MoodCheckin(id=i, emotion=emotion, intensity=intensity, created_at=T0 - timedelta(days=days_ago))
        for i, (emotion, intensity, days_ago) in enumerate(specs, start=1)
    ]


class TestAnalyze:
    def test_empty_history_is_neutral(self):
        assert analyze([], 0, T0) == MoodSnapshot(mood="happy", engagement_level=30)

    def test_history_outside_window_is_neutral(self):
        old = checkins((Emotion.SAD, 2, 8), (Emotion.SAD, 2, 30))
        assert analyze(old, 3, T0) == MoodSnapshot(mood="happy", engagement_level=30)

    def test_mostly_sad_low_intensity(self):
        history = checkins(*[(Emotion.SAD, 3, d) for d in range(5)])
        snapshot = analyze(history, 0, T0)
        assert snapshot.mood == "sad"
        # 5/7*20 + 0 + 3*5
        assert snapshot.engagement_level == 29

    def test_sad_but_intense_is_not_sad(self):
        history = checkins(*[(Emotion.SAD, 8, d) for d in range(5)])
        assert analyze(history, 0, T0).mood == "happy"

    def test_anxious_by_ratio(self):
        history = checkins(
            (Emotion.STRESSED, 5, 0),
            (Emotion.ANGRY, 5, 1),
            (Emotion.CALM, 5, 2),
            (Emotion.HAPPY, 5, 3),
            (Emotion.HAPPY, 5, 4),
        )
        assert analyze(history, 0, T0).mood == "anxious"

    def test_anxious_by_intensity(self):
        history = checkins(
            (Emotion.STRESSED, 9, 0),
            (Emotion.HAPPY, 8, 1),
            (Emotion.HAPPY, 8, 2),
            (Emotion.CALM, 8, 3),
        )
        # anxious ratio 0.25 with average intensity 8.25
        assert analyze(history, 0, T0).mood == "anxious"

    def test_sad_takes_precedence_over_anxious(self):
        history = checkins(
            (Emotion.SAD, 2, 0),
            (Emotion.SAD, 2, 1),
            (Emotion.SAD, 2, 2),
            (Emotion.STRESSED, 2, 3),
            (Emotion.ANGRY, 2, 4),
        )
        assert analyze(history, 0, T0).mood == "sad"

    def test_happy_and_engaged(self):
        history = checkins(*[(Emotion.EXCITED, 8, d / 2) for d in range(14)])
        snapshot = analyze(history, 10, T0)
        assert snapshot.mood == "happy"
        # 2/day*20 + 30 + 40 caps at 100
        assert snapshot.engagement_level == 100

    def test_diary_factor_is_capped(self):
        history = checkins((Emotion.CALM, 4, 1))
        # 1/7*20 + 15 + 20
        assert analyze(history, 5, T0).engagement_level == 38
        assert analyze(history, 10, T0).engagement_level == analyze(history, 50, T0).engagement_level

    def test_deterministic(self):
        history = checkins((Emotion.HAPPY, 7, 1), (Emotion.ANGRY, 6, 2), (Emotion.SAD, 4, 3))
        assert analyze(history, 2, T0) == analyze(list(reversed(history)), 2, T0)

    def test_future_checkins_are_ignored(self):
        history = checkins((Emotion.SAD, 1, -1))
        assert analyze(history, 0, T0) == MoodSnapshot(mood="happy", engagement_level=30)


class TestEmotionStats:
    def test_distribution_and_average(self):
        history = checkins(
            (Emotion.HAPPY, 8, 0),
            (Emotion.HAPPY, 6, 1),
            (Emotion.SAD, 4, 2),
            (Emotion.CALM, 3, 20),
        )
        stats = emotion_stats(history, 7, T0)

        assert stats.period_days == 7
        assert stats.total_checkins == 3
        assert stats.avg_intensity == 6.0
        assert len(stats.emotion_distribution) == 6

        top = stats.emotion_distribution[0]
        assert top.emotion is Emotion.HAPPY
        assert top.emotion_id == 1
        assert top.count == 2
        assert top.avg_intensity == 7.0
        assert top.percentage == 66.7

        calm = next(s for s in stats.emotion_distribution if s.emotion is Emotion.CALM)
        assert calm.count == 0
        assert calm.avg_intensity == 0.0

    def test_empty_window(self):
        stats = emotion_stats([], 30, T0)
        assert stats.total_checkins == 0
        assert stats.avg_intensity == 0.0
        assert all(s.percentage == 0.0 for s in stats.emotion_distribution)


def test_count_recent_uses_trailing_week():
    moments = [T0, T0 - timedelta(days=6, hours=23), T0 - timedelta(days=7), T0 + timedelta(hours=1)]
    assert count_recent(moments, T0) == 2
    assert count_recent([], T0) == 0
