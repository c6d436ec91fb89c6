"""
Server-side pet and check-in operations.

Each operation locks one user's records, recomputes the authoritative state
with the happiness engine and streak tracker, and writes it back.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from . import analyzer, happiness, streaks
from .cooldowns import CooldownManager
from .errors import CooldownActiveError, NotFoundError, ValidationError
from .models import (
    REFLECTION_MAX_LENGTH,
    REFLECTION_MIN_LENGTH,
    CheckinStats,
    CosmeticSkin,
    Emotion,
    InteractionKind,
    MoodCheckin,
    MoodSnapshot,
    Pet,
    Streak,
    utcnow,
)
from .store import PetStore, UserRecord

logger = logging.getLogger(__name__)

PET_INTERACTIONS = (InteractionKind.FEED, InteractionKind.PET, InteractionKind.TALK)
MAX_DIARY_ENTRIES_PER_CALL = 100


@dataclass(frozen=True)
class InteractionResult:
    pet: Pet
    delta: int
    dialogue: str | None = None


@dataclass(frozen=True)
class CheckinResult:
    checkin: MoodCheckin
    streak: Streak
    streak_updated: bool


def validate_checkin(
    emotion_id: int, intensity: int, reflection_text: str | None
) -> tuple[Emotion, str | None]:
    """
    Reject malformed check-in input before anything is stored.

    An empty reflection counts as no reflection.

    Returns:
        The resolved emotion and the normalized reflection text
    """
    emotion = Emotion.from_id(emotion_id)
    if not 1 <= intensity <= 10:
        raise ValidationError("intensity must be between 1 and 10")
    if not reflection_text:
        return emotion, None
    if not REFLECTION_MIN_LENGTH <= len(reflection_text) <= REFLECTION_MAX_LENGTH:
        raise ValidationError(
            f"reflection_text must contain {REFLECTION_MIN_LENGTH} to "
            f"{REFLECTION_MAX_LENGTH} characters"
        )
    return emotion, reflection_text


class PetService:
    """Authoritative pet, streak and check-in logic on top of a PetStore."""

    def __init__(
        self,
        store: PetStore,
        *,
        enforce_cooldowns: bool = True,
        default_pet_name: str = "My pet",
        default_pet_type: str = "mood_cat",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.enforce_cooldowns = enforce_cooldowns
        self.default_pet_name = default_pet_name
        self.default_pet_type = default_pet_type
        self.clock = clock

    def _cooldowns(self, record: UserRecord) -> CooldownManager:
        return CooldownManager(record.cooldowns)

    def _require_pet(self, record: UserRecord, now: datetime) -> Pet:
        if record.pet is None:
            raise NotFoundError("Pet not found")
        record.pet = happiness.apply_decay(record.pet, now)
        return record.pet

    # MARK: - Pet

    async def get_pet(self, user_id: str) -> Pet:
        """Return the user's pet with decay applied, creating it on first read."""
        now = self.clock()
        async with self.store.transaction(user_id) as record:
            if record.pet is None:
                record.pet = Pet(
                    id=self.store.next_pet_id(),
                    user_id=user_id,
                    name=self.default_pet_name,
                    pet_type=self.default_pet_type,
                    last_fed_at=now,
                    created_at=now,
                )
                logger.info("Created pet %s for user %s", record.pet.id, user_id)
                return record.pet

            before = record.pet.happiness
            pet = self._require_pet(record, now)
            if pet.happiness != before:
                logger.info(
                    "Pet %s decayed from %s to %s", pet.id, before, pet.happiness
                )
            return pet

    async def interact(self, user_id: str, kind: InteractionKind) -> InteractionResult:
        """
        Apply a feed/pet/talk interaction to the user's pet.

        Raises:
            NotFoundError: The user has no pet yet
            CooldownActiveError: The kind is still cooling down for this user
        """
        kind = InteractionKind(kind)
        if kind not in PET_INTERACTIONS:
            raise ValidationError(f"{kind.value} is not a pet interaction")

        now = self.clock()
        async with self.store.transaction(user_id) as record:
            pet = self._require_pet(record, now)

            cooldowns = self._cooldowns(record)
            if self.enforce_cooldowns and not cooldowns.is_available(kind, now):
                remaining = cooldowns.remaining(kind, now)
                raise CooldownActiveError(
                    f"{kind.value} is on cooldown",
                    retry_after=max(1, int(remaining.total_seconds())),
                )

            dialogue = None
            if kind is InteractionKind.TALK:
                dialogue = happiness.dialogue_for(pet.happiness)
            updated = happiness.apply_interaction(pet, kind, now)
            interaction = happiness.record_interaction(pet, updated, kind, now)

            record.pet = updated
            record.interactions.append(interaction)
            cooldowns.start(kind, now)

        logger.info(
            "User %s: %s %+d -> happiness %s",
            user_id,
            kind.value,
            interaction.delta,
            updated.happiness,
        )
        return InteractionResult(pet=updated, delta=interaction.delta, dialogue=dialogue)

    async def rename(self, user_id: str, name: str) -> Pet:
        name = (name or "").strip()
        if not name:
            raise ValidationError("name is required and cannot be empty")
        if len(name) > 100:
            raise ValidationError("name cannot be longer than 100 characters")

        async with self.store.transaction(user_id) as record:
            pet = self._require_pet(record, self.clock())
            record.pet = pet.model_copy(update={"name": name})
            return record.pet

    async def customize(self, user_id: str, cosmetic_skin: str) -> Pet:
        try:
            skin = CosmeticSkin(cosmetic_skin)
        except ValueError:
            choices = ", ".join(s.value for s in CosmeticSkin)
            raise ValidationError(f"cosmetic_skin must be one of: {choices}") from None

        async with self.store.transaction(user_id) as record:
            pet = self._require_pet(record, self.clock())
            record.pet = pet.model_copy(update={"cosmetic_skin": skin})
            return record.pet

    async def mood(self, user_id: str) -> MoodSnapshot:
        now = self.clock()
        async with self.store.transaction(user_id) as record:
            diary_entries = analyzer.count_recent(record.diary_entries, now)
            return analyzer.analyze(record.checkins, diary_entries, now)

    async def record_diary_activity(self, user_id: str, count: int = 1) -> int:
        """
        Note diary entries the user just wrote.

        Diary content lives elsewhere; only entry times feed mood analysis,
        and times that left the analysis window are dropped.

        Returns:
            The number of diary entries inside the current analysis window
        """
        if not 1 <= count <= MAX_DIARY_ENTRIES_PER_CALL:
            raise ValidationError(
                f"count must be between 1 and {MAX_DIARY_ENTRIES_PER_CALL}"
            )
        now = self.clock()
        async with self.store.transaction(user_id) as record:
            record.diary_entries = [
                at for at in record.diary_entries if at > now - analyzer.ANALYSIS_WINDOW
            ]
            record.diary_entries.extend([now] * count)
            return analyzer.count_recent(record.diary_entries, now)

    # MARK: - Check-ins

    async def create_checkin(
        self,
        user_id: str,
        emotion_id: int,
        intensity: int,
        reflection_text: str | None = None,
    ) -> CheckinResult:
        """
        Record a mood check-in, advance the streak and cheer the pet up.

        Validation happens before the user's records are touched.
        """
        emotion, reflection_text = validate_checkin(emotion_id, intensity, reflection_text)
        now = self.clock()

        async with self.store.transaction(user_id) as record:
            checkin = MoodCheckin(
                id=self.store.next_checkin_id(),
                emotion=emotion,
                intensity=intensity,
                reflection_text=reflection_text,
                created_at=now,
            )
            record.checkins.append(checkin)

            update = streaks.record_checkin(record.streak, checkin.created_date)
            record.streak = update.streak

            if record.pet is not None:
                pet = happiness.apply_decay(record.pet, now)
                updated = happiness.apply_interaction(pet, InteractionKind.CHECKIN, now)
                record.interactions.append(
                    happiness.record_interaction(pet, updated, InteractionKind.CHECKIN, now)
                )
                record.pet = updated

        logger.info(
            "User %s checked in %s/%s, streak %s%s",
            user_id,
            emotion.value,
            intensity,
            update.streak.current,
            " (updated)" if update.updated else "",
        )
        return CheckinResult(
            checkin=checkin, streak=update.streak, streak_updated=update.updated
        )

    async def list_checkins(
        self, user_id: str, page: int = 1, limit: int = 20
    ) -> tuple[list[MoodCheckin], int]:
        """Newest-first page of check-ins and the total count."""
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")
        async with self.store.transaction(user_id) as record:
            ordered = sorted(record.checkins, key=lambda c: c.created_at, reverse=True)
        offset = (page - 1) * limit
        return ordered[offset : offset + limit], len(ordered)

    async def stats(self, user_id: str, days: int = 7) -> CheckinStats:
        if days < 1:
            raise ValidationError("days must be positive")
        now = self.clock()
        async with self.store.transaction(user_id) as record:
            return analyzer.emotion_stats(record.checkins, days, now)

    async def streak(self, user_id: str) -> Streak:
        async with self.store.transaction(user_id) as record:
            return record.streak or Streak()
