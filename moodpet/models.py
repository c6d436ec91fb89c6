"""
Shared data models for the MoodPet service.

This module defines the core domain models used across multiple layers
of the application (engine logic, server, client, CLI).
"""

from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .errors import ValidationError

HAPPINESS_MIN = 0
HAPPINESS_MAX = 100
INITIAL_HAPPINESS = 50

REFLECTION_MIN_LENGTH = 50
REFLECTION_MAX_LENGTH = 500


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# MARK: - Enumerations


class InteractionKind(str, Enum):
    """User activity that moves the pet's happiness."""

    FEED = "feed"
    PET = "pet"
    TALK = "talk"
    CHECKIN = "checkin"


class Emotion(str, Enum):
    """The six emotions a mood check-in can record."""

    HAPPY = "happy"
    SAD = "sad"
    ANGRY = "angry"
    CALM = "calm"
    STRESSED = "stressed"
    EXCITED = "excited"

    @property
    def id(self) -> int:
        return _EMOTION_IDS[self]

    @classmethod
    def from_id(cls, emotion_id: int) -> "Emotion":
        for emotion, value in _EMOTION_IDS.items():
            if value == emotion_id:
                return emotion
        raise ValidationError(f"Unknown emotion_id {emotion_id}; expected 1..6")


_EMOTION_IDS = {
    Emotion.HAPPY: 1,
    Emotion.SAD: 2,
    Emotion.ANGRY: 3,
    Emotion.CALM: 4,
    Emotion.STRESSED: 5,
    Emotion.EXCITED: 6,
}


class CosmeticSkin(str, Enum):
    DEFAULT = "default"
    RAINBOW = "rainbow"
    GALAXY = "galaxy"
    AUTUMN = "autumn"
    NEON = "neon"


PetAnimationState = Literal["sad", "neutral", "happy"]
MoodCategory = Literal["happy", "sad", "anxious"]


# MARK: - Pet


class Pet(BaseModel):
    """The virtual companion owned by a single user."""

    id: int = Field(..., description="Pet identifier")
    user_id: str = Field(..., description="Owner of the pet")
    name: str = Field("My pet", max_length=100)
    pet_type: str = Field("mood_cat", description="Species tag")
    happiness: int = Field(
        INITIAL_HAPPINESS, ge=HAPPINESS_MIN, le=HAPPINESS_MAX
    )
    last_fed_at: datetime = Field(default_factory=utcnow)
    decay_days_applied: int = Field(
        0,
        ge=0,
        description="Whole days since last_fed_at already subtracted by decay",
    )
    cosmetic_skin: CosmeticSkin = CosmeticSkin.DEFAULT
    created_at: datetime = Field(default_factory=utcnow)

    @computed_field
    @property
    def animation_state(self) -> PetAnimationState:
        if self.happiness <= 30:
            return "sad"
        if self.happiness <= 60:
            return "neutral"
        return "happy"

    @computed_field
    @property
    def needs_attention(self) -> bool:
        return self.happiness < 30


class Interaction(BaseModel):
    """One feed/pet/talk/check-in event and the happiness change it caused."""

    model_config = ConfigDict(frozen=True)

    kind: InteractionKind
    at: datetime
    delta: int


class CooldownWindow(BaseModel):
    """Absolute expiry of the cooldown for one interaction kind."""

    kind: InteractionKind
    expires_at: datetime

    def remaining(self, now: datetime) -> timedelta:
        return max(self.expires_at - now, timedelta(0))


# MARK: - Check-ins and streaks


class MoodCheckin(BaseModel):
    """A recorded emotion; never modified after creation."""

    model_config = ConfigDict(frozen=True)

    id: int
    emotion: Emotion
    intensity: int = Field(..., ge=1, le=10)
    reflection_text: str | None = Field(
        None, min_length=REFLECTION_MIN_LENGTH, max_length=REFLECTION_MAX_LENGTH
    )
    created_at: datetime = Field(default_factory=utcnow)

    @computed_field
    @property
    def emotion_id(self) -> int:
        return self.emotion.id

    @computed_field
    @property
    def created_date(self) -> date:
        return self.created_at.date()


class Streak(BaseModel):
    """Consecutive calendar days with at least one check-in."""

    current: int = Field(0, ge=0)
    longest: int = Field(0, ge=0)
    last_checkin_date: date | None = None
    started_on: date | None = None
    broken_count: int = Field(0, ge=0)


class MoodSnapshot(BaseModel):
    """Derived mood used to drive presentation; never persisted."""

    mood: MoodCategory
    engagement_level: int = Field(..., ge=0, le=100)


class EmotionStat(BaseModel):
    emotion_id: int
    emotion: Emotion
    count: int = 0
    avg_intensity: float = 0.0
    percentage: float = 0.0


class CheckinStats(BaseModel):
    """Per-emotion distribution over the trailing `period_days` days."""

    period_days: int
    total_checkins: int
    avg_intensity: float
    emotion_distribution: list[EmotionStat]
