"""
Interaction cooldowns.

Each interaction kind has a fixed cooldown. Expiry is stored as an absolute
timestamp in a key-value store so that the remaining time can be recomputed
at any moment, however long the process was suspended in between.
"""

import asyncio
import json
import logging
import os
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Protocol

from .models import CooldownWindow, InteractionKind, utcnow

logger = logging.getLogger(__name__)

COOLDOWN_DURATIONS = {
    InteractionKind.FEED: timedelta(hours=4),
    InteractionKind.PET: timedelta(hours=1),
    InteractionKind.TALK: timedelta(minutes=30),
}

COOLDOWN_KEYS = {
    InteractionKind.FEED: "pet_feed_cooldown",
    InteractionKind.PET: "pet_pet_cooldown",
    InteractionKind.TALK: "pet_talk_cooldown",
}


# MARK: - Storage


class KeyValueStore(Protocol):
    """Minimal string key-value storage used to persist expiry timestamps."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryKeyValueStore:
    """Dictionary-backed store; state lives as long as the instance."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore:
    """
    Store persisted to a single JSON file.

    The file is read on every `get` so that several processes (for instance
    successive CLI invocations) observe each other's writes.
    """

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = Path(path).expanduser()

    def _load(self) -> dict[str, str]:
        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable cooldown file %s", self.path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self.path)


# MARK: - Manager


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MILLISECOND = timedelta(milliseconds=1)


def _to_millis(moment: datetime) -> int:
    """Epoch milliseconds, rounded up so a stored expiry is never early."""
    return -((_EPOCH - moment) // _MILLISECOND)


def _from_millis(value: str) -> datetime:
    return _EPOCH + int(value) * _MILLISECOND


class CooldownManager:
    """
    Tracks when each interaction kind becomes available again.

    Kinds without a configured duration (check-ins) are always available.
    Keys can be namespaced with `prefix`, which lets a single store hold the
    windows of many users.
    """

    def __init__(
        self,
        store: KeyValueStore,
        durations: dict[InteractionKind, timedelta] | None = None,
        prefix: str = "",
    ) -> None:
        self.store = store
        self.durations = dict(COOLDOWN_DURATIONS if durations is None else durations)
        self.prefix = prefix

    def _key(self, kind: InteractionKind) -> str:
        kind = InteractionKind(kind)
        return self.prefix + COOLDOWN_KEYS.get(kind, f"pet_{kind.value}_cooldown")

    def duration(self, kind: InteractionKind) -> timedelta:
        return self.durations.get(InteractionKind(kind), timedelta(0))

    def window(self, kind: InteractionKind) -> CooldownWindow | None:
        """The stored window for `kind`, or None if it was never started."""
        raw = self.store.get(self._key(kind))
        if raw is None:
            return None
        try:
            expires_at = _from_millis(raw)
        except (ValueError, OverflowError):
            logger.warning("Discarding malformed cooldown value %r for %s", raw, kind)
            return None
        return CooldownWindow(kind=InteractionKind(kind), expires_at=expires_at)

    def remaining(self, kind: InteractionKind, now: datetime | None = None) -> timedelta:
        window = self.window(kind)
        if window is None:
            return timedelta(0)
        return window.remaining(now or utcnow())

    def is_available(self, kind: InteractionKind, now: datetime | None = None) -> bool:
        return self.remaining(kind, now) == timedelta(0)

    def start(self, kind: InteractionKind, now: datetime | None = None) -> CooldownWindow | None:
        """
        Start (or restart) the cooldown for `kind`.

        Any previous window for the same kind is overwritten.

        Returns:
            The new window, or None for kinds without a cooldown
        """
        duration = self.duration(kind)
        if duration <= timedelta(0):
            return None
        expires_at = (now or utcnow()) + duration
        self.store.set(self._key(kind), str(_to_millis(expires_at)))
        logger.debug("Cooldown for %s runs until %s", kind, expires_at.isoformat())
        return CooldownWindow(kind=InteractionKind(kind), expires_at=expires_at)

    def snapshot(self, now: datetime | None = None) -> dict[InteractionKind, timedelta]:
        """Remaining time for every kind that has a cooldown."""
        now = now or utcnow()
        return {kind: self.remaining(kind, now) for kind in self.durations}


# MARK: - Ticker


class CooldownTicker:
    """
    Periodically reports remaining cooldowns to a callback.

    Each tick re-reads the stored absolute timestamps, so the reported values
    never drift no matter how late a tick fires.
    """

    def __init__(
        self,
        manager: CooldownManager,
        callback: Callable[[dict[InteractionKind, timedelta]], Awaitable[None] | None],
        interval: float = 1.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.manager = manager
        self.callback = callback
        self.interval = interval
        self.clock = clock
        self._task: asyncio.Task | None = None

    async def tick(self) -> dict[InteractionKind, timedelta]:
        remaining = self.manager.snapshot(self.clock())
        result = self.callback(remaining)
        if asyncio.iscoroutine(result):
            await result
        return remaining

    async def _run(self) -> None:
        while True:
            await self.tick()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


def format_remaining(remaining: timedelta) -> str:
    """Render a remaining cooldown as `"3h 59m"` or `"29m"`."""
    total_minutes = int(remaining.total_seconds()) // 60
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
