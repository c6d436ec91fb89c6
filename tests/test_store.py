"""
Tests for the PetStore and the PetService built on it.

These tests verify per-user serialization of writes, lazy pet creation,
and the authoritative pet and streak updates.
"""

import asyncio

import pytest

from moodpet.errors import ConflictError, CooldownActiveError, NotFoundError, ValidationError
from moodpet.models import InteractionKind
from moodpet.service import PetService
from moodpet.store import INTERACTION_LOG_SIZE, PetStore

REFLECTION = "Today was a genuinely good day and I want to remember why it felt so."


class TestPetStore:
    """Test suite for PetStore functionality."""

    def setup_method(self):
        """Set up a fresh PetStore for each test."""
        self.store = PetStore(lock_timeout=0.05)

    async def test_records_are_created_on_demand(self):
        async with self.store.transaction("alice") as record:
            assert record.user_id == "alice"
            assert record.pet is None
            assert record.checkins == []

    async def test_same_user_is_serialized(self):
        order = []

        store = PetStore(lock_timeout=1.0)

        async def writer(name: str):
            async with store.transaction("alice"):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(writer("a"), writer("b"))

        assert order in (
            ["a-start", "a-end", "b-start", "b-end"],
            ["b-start", "b-end", "a-start", "a-end"],
        )

    async def test_different_users_do_not_block(self):
        async with self.store.transaction("alice"):
            async with self.store.transaction("bob") as record:
                assert record.user_id == "bob"

    async def test_lock_timeout_raises_conflict(self):
        async with self.store.transaction("alice"):
            with pytest.raises(ConflictError) as exc_info:
                async with self.store.transaction("alice"):
                    pass
        assert exc_info.value.recoverable

        # The lock is usable again afterwards
        async with self.store.transaction("alice"):
            pass


class TestPetService:
    """Test suite for the authoritative pet operations."""

    @pytest.fixture(autouse=True)
    def _service(self, clock):
        self.clock = clock
        self.store = PetStore()
        self.service = PetService(self.store, clock=clock)

    async def test_pet_is_created_lazily_with_default_happiness(self):
        pet = await self.service.get_pet("alice")
        assert pet.happiness == 50
        assert pet.user_id == "alice"
        assert pet.last_fed_at == self.clock.now
        assert (await self.service.get_pet("alice")).id == pet.id

    async def test_decay_is_persisted_once(self):
        await self.service.get_pet("alice")
        self.clock.advance(days=3)
        assert (await self.service.get_pet("alice")).happiness == 47
        assert (await self.service.get_pet("alice")).happiness == 47

    async def test_interaction_without_pet(self):
        with pytest.raises(NotFoundError):
            await self.service.interact("alice", InteractionKind.FEED)

    async def test_feed_clamps_and_starts_cooldown(self):
        await self.service.get_pet("alice")
        async with self.store.transaction("alice") as record:
            record.pet = record.pet.model_copy(update={"happiness": 95})

        result = await self.service.interact("alice", InteractionKind.FEED)
        assert result.pet.happiness == 100
        assert result.delta == 5

        with pytest.raises(CooldownActiveError) as exc_info:
            await self.service.interact("alice", InteractionKind.FEED)
        assert exc_info.value.retry_after == 4 * 60 * 60

        self.clock.advance(hours=4)
        assert (await self.service.interact("alice", InteractionKind.FEED)).pet.happiness == 100

    async def test_cooldowns_can_be_disabled(self):
        service = PetService(self.store, enforce_cooldowns=False, clock=self.clock)
        await service.get_pet("alice")
        await service.interact("alice", InteractionKind.PET)
        result = await service.interact("alice", InteractionKind.PET)
        assert result.pet.happiness == 60

    async def test_talk_answers_with_pre_talk_mood(self):
        await self.service.get_pet("alice")
        result = await self.service.interact("alice", InteractionKind.TALK)
        assert result.pet.happiness == 52
        assert result.dialogue == "I'm fine, but it could be better. Maybe feed me?"

    async def test_checkin_is_not_a_pet_interaction(self):
        with pytest.raises(ValidationError):
            await self.service.interact("alice", InteractionKind.CHECKIN)

    async def test_concurrent_feeds_never_exceed_100(self):
        service = PetService(self.store, enforce_cooldowns=False, clock=self.clock)
        await service.get_pet("alice")
        results = await asyncio.gather(
            *[service.interact("alice", InteractionKind.FEED) for _ in range(10)]
        )
        assert sorted(r.pet.happiness for r in results)[-1] == 100
        assert (await service.get_pet("alice")).happiness == 100
        async with self.store.transaction("alice") as record:
            assert sum(i.delta for i in record.interactions) == 50

    async def test_interaction_log_is_capped(self):
        service = PetService(self.store, enforce_cooldowns=False, clock=self.clock)
        await service.get_pet("alice")
        for _ in range(INTERACTION_LOG_SIZE + 5):
            self.clock.advance(seconds=1)
            await service.interact("alice", InteractionKind.TALK)

        async with self.store.transaction("alice") as record:
            assert len(record.interactions) == INTERACTION_LOG_SIZE
            assert record.interactions[-1].at == self.clock.now

    async def test_diary_activity_counts_last_week_only(self):
        assert await self.service.record_diary_activity("alice", 3) == 3

        self.clock.advance(days=6)
        assert await self.service.record_diary_activity("alice") == 4

        self.clock.advance(days=2)
        assert await self.service.record_diary_activity("alice") == 2
        async with self.store.transaction("alice") as record:
            assert len(record.diary_entries) == 2

    async def test_old_diary_entries_do_not_raise_engagement(self):
        await self.service.record_diary_activity("alice", 10)
        self.clock.advance(days=8)
        await self.service.create_checkin("alice", 4, 6)
        await self.service.create_checkin("bob", 4, 6)

        assert await self.service.mood("alice") == await self.service.mood("bob")

    @pytest.mark.parametrize("count", [0, -1, 101])
    async def test_diary_activity_rejects_bad_counts(self, count):
        with pytest.raises(ValidationError):
            await self.service.record_diary_activity("alice", count)

    async def test_checkin_updates_streak_and_pet(self):
        await self.service.get_pet("alice")
        result = await self.service.create_checkin("alice", 1, 7, REFLECTION)
        assert result.streak_updated
        assert result.streak.current == 1
        assert result.checkin.reflection_text == REFLECTION
        assert (await self.service.get_pet("alice")).happiness == 55

        again = await self.service.create_checkin("alice", 2, 3)
        assert not again.streak_updated

        self.clock.advance(days=1)
        next_day = await self.service.create_checkin("alice", 4, 5)
        assert next_day.streak_updated
        assert next_day.streak.current == 2

    async def test_checkin_without_pet_still_counts(self):
        result = await self.service.create_checkin("bob", 6, 9)
        assert result.streak.current == 1
        async with self.store.transaction("bob") as record:
            assert record.pet is None

    @pytest.mark.parametrize(
        "emotion_id, intensity, reflection",
        [
            (0, 5, None),
            (7, 5, None),
            (1, 0, None),
            (1, 11, None),
            (1, 5, "too short"),
            (1, 5, "x" * 501),
        ],
    )
    async def test_invalid_checkins_change_nothing(self, emotion_id, intensity, reflection):
        with pytest.raises(ValidationError):
            await self.service.create_checkin("alice", emotion_id, intensity, reflection)
        async with self.store.transaction("alice") as record:
            assert record.checkins == []
            assert record.streak is None

    async def test_concurrent_checkins_count_the_day_once(self):
        results = await asyncio.gather(
            *[self.service.create_checkin("alice", 1, 5) for _ in range(5)]
        )
        assert sum(r.streak_updated for r in results) == 1
        assert (await self.service.streak("alice")).current == 1

    async def test_rename_and_customize(self):
        await self.service.get_pet("alice")
        assert (await self.service.rename("alice", "  Mochi  ")).name == "Mochi"
        assert (await self.service.customize("alice", "galaxy")).cosmetic_skin.value == "galaxy"
        with pytest.raises(ValidationError):
            await self.service.rename("alice", "   ")
        with pytest.raises(ValidationError):
            await self.service.customize("alice", "plaid")

    async def test_list_checkins_newest_first(self):
        for intensity in (1, 2, 3):
            await self.service.create_checkin("alice", 1, intensity)
            self.clock.advance(hours=1)
        page, total = await self.service.list_checkins("alice", page=1, limit=2)
        assert total == 3
        assert [c.intensity for c in page] == [3, 2]
