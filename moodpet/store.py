"""
Per-user state storage for the MoodPet service.

This module provides an in-memory store holding each user's pet, streak,
check-ins and server-side cooldowns. Writes to one user's records are
serialized through a per-user lock, the in-process equivalent of a row-level
lock, so that concurrent requests cannot break the clamping and streak
invariants. The interface allows replacing it with a database-backed store.
"""

import asyncio
import itertools
import logging
from collections import deque
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime

from .cooldowns import MemoryKeyValueStore
from .errors import ConflictError
from .models import Interaction, MoodCheckin, Pet, Streak

logger = logging.getLogger(__name__)

INTERACTION_LOG_SIZE = 100


@dataclass
class UserRecord:
    """Everything the engine keeps for one user."""

    user_id: str
    pet: Pet | None = None
    streak: Streak | None = None
    checkins: list[MoodCheckin] = field(default_factory=list)
    # Most recent interactions only
    interactions: deque[Interaction] = field(
        default_factory=lambda: deque(maxlen=INTERACTION_LOG_SIZE)
    )
    # Times of diary entries still inside the mood analysis window
    diary_entries: list[datetime] = field(default_factory=list)
    cooldowns: MemoryKeyValueStore = field(default_factory=MemoryKeyValueStore)


class PetStore:
    """
    In-memory user storage with per-user write serialization.

    All access goes through `transaction`, which holds the user's lock for
    the duration of the block. Acquisition is bounded by `lock_timeout`;
    when it cannot be obtained in time a retryable ConflictError is raised.
    """

    def __init__(self, lock_timeout: float = 2.0) -> None:
        self.lock_timeout = lock_timeout
        self._records: dict[str, UserRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._pet_ids = itertools.count(1)
        self._checkin_ids = itertools.count(1)

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def transaction(self, user_id: str) -> AsyncGenerator[UserRecord, None]:
        """
        Lock a user's records for reading and writing.

        Yields:
            The user's record; changes made to it are kept when the block exits
        """
        lock = self._lock_for(user_id)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.lock_timeout)
        except TimeoutError:
            logger.warning("Lock wait for user %s exceeded %.1fs", user_id, self.lock_timeout)
            raise ConflictError(
                "Another update for this user is still in progress", retry_after=1
            ) from None

        try:
            record = self._records.get(user_id)
            if record is None:
                record = self._records[user_id] = UserRecord(user_id=user_id)
            yield record
        finally:
            lock.release()

    def next_pet_id(self) -> int:
        return next(self._pet_ids)

    def next_checkin_id(self) -> int:
        return next(self._checkin_ids)
