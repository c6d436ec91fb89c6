"""
Optimistic interaction handling on the client.

Each user-initiated interaction is shown immediately with a predicted
happiness value, then either committed to the server's answer or rolled back.
The displayed value is always the last settled value (normally the server's
latest answer) with the deltas of the interactions still in flight applied on
top, so settling one kind never discards another kind's result or prediction.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TypeVar

from . import happiness
from .client import CheckinReceipt, PetClient, TalkReply
from .cooldowns import CooldownManager
from .errors import (
    ConflictError,
    CooldownActiveError,
    MoodPetError,
    NotFoundError,
    ValidationError,
)
from .models import InteractionKind, Pet, utcnow
from .service import PET_INTERACTIONS, validate_checkin

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InteractionState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class PendingInteraction:
    """Bookkeeping for one in-flight interaction."""

    kind: InteractionKind
    previous: int | None
    predicted: int | None
    started_at: datetime


class OptimisticUpdateCoordinator:
    """
    Runs interactions optimistically against a PetClient.

    Every kind has its own state machine: idle -> pending -> committed or
    rolled back. Different kinds may be in flight at the same time, but a
    kind cannot be triggered again while its own request is pending.
    Cooldowns started for an attempt stay started even if the attempt fails.
    """

    def __init__(
        self,
        client: PetClient,
        cooldowns: CooldownManager,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.client = client
        self.cooldowns = cooldowns
        self.clock = clock
        self.pet: Pet | None = None
        self.observed_happiness: int | None = None
        # Displayed value without any in-flight prediction
        self._settled: int | None = None
        self._states: dict[InteractionKind, InteractionState] = {}
        self._pending: dict[InteractionKind, PendingInteraction] = {}

    def state(self, kind: InteractionKind) -> InteractionState:
        return self._states.get(InteractionKind(kind), InteractionState.IDLE)

    def is_pending(self, kind: InteractionKind) -> bool:
        return self.state(kind) is InteractionState.PENDING

    @property
    def confirmed_happiness(self) -> int | None:
        return self.pet.happiness if self.pet else None

    async def refresh(self) -> Pet:
        """Load the authoritative pet from the server."""
        self._confirm(await self.client.get_pet())
        return self.pet

    def _confirm(self, pet: Pet) -> None:
        self.pet = pet
        self._settled = pet.happiness
        self._redisplay()

    def _redisplay(self) -> None:
        """Recompute the displayed value from the settled one and all pending deltas."""
        value = self._settled
        if value is not None:
            for pending in self._pending.values():
                value = happiness.clamp(value + happiness.interaction_delta(pending.kind))
        self.observed_happiness = value

    # MARK: - Transitions

    def begin(self, kind: InteractionKind, now: datetime | None = None) -> PendingInteraction:
        """
        Move `kind` to pending: apply the predicted happiness and start its cooldown.

        Raises:
            ConflictError: `kind` already has a request in flight
            CooldownActiveError: `kind` is still cooling down
            NotFoundError: No pet is known locally yet
        """
        kind = InteractionKind(kind)
        now = now or self.clock()

        if self.is_pending(kind):
            raise ConflictError(f"A {kind.value} request is already in flight")
        if not self.cooldowns.is_available(kind, now):
            remaining = self.cooldowns.remaining(kind, now)
            raise CooldownActiveError(
                f"{kind.value} is on cooldown",
                retry_after=max(1, int(remaining.total_seconds())),
            )
        if self.pet is None and kind is not InteractionKind.CHECKIN:
            raise NotFoundError("Pet not loaded; refresh first")

        previous = self.observed_happiness
        predicted = None
        if previous is not None:
            predicted = happiness.clamp(previous + happiness.interaction_delta(kind))

        pending = self._pending[kind] = PendingInteraction(
            kind=kind,
            previous=previous,
            predicted=predicted,
            started_at=now,
        )
        self._states[kind] = InteractionState.PENDING
        self._redisplay()
        self.cooldowns.start(kind, now)
        return pending

    def commit(self, kind: InteractionKind, pet: Pet | None = None) -> None:
        """
        Settle `kind` as accepted by the server.

        With the server's pet, its happiness becomes the settled value. Without
        one, the interaction's own delta is folded into the settled value until
        the next authoritative answer arrives.
        """
        kind = InteractionKind(kind)
        pending = self._pending.pop(kind, None)
        self._states[kind] = InteractionState.COMMITTED

        if pet is None:
            if pending is not None and self._settled is not None:
                self._settled = happiness.clamp(
                    self._settled + happiness.interaction_delta(kind)
                )
            self._redisplay()
            return

        if pending is not None and pending.predicted != pet.happiness:
            logger.debug(
                "%s predicted %s, server confirmed %s",
                kind.value,
                pending.predicted,
                pet.happiness,
            )
        self._confirm(pet)

    def rollback(self, kind: InteractionKind) -> None:
        """
        Settle `kind` as failed, withdrawing its predicted delta.

        Values confirmed by the server while the request was in flight are
        kept; with none, the display returns to what it showed before.
        """
        kind = InteractionKind(kind)
        self._pending.pop(kind, None)
        self._states[kind] = InteractionState.ROLLED_BACK
        self._redisplay()

    async def _run(
        self,
        kind: InteractionKind,
        request: Callable[[], Awaitable[T]],
        confirmed_pet: Callable[[T], Pet | None],
        now: datetime | None,
    ) -> T:
        self.begin(kind, now)
        try:
            result = await request()
        except (Exception, asyncio.CancelledError) as e:
            self.rollback(kind)
            logger.info(
                "%s failed, now showing %s: %s", kind.value, self.observed_happiness, e
            )
            raise

        self.commit(kind, confirmed_pet(result))
        return result

    # MARK: - Interactions

    async def interact(
        self,
        kind: InteractionKind,
        *,
        message: str | None = None,
        now: datetime | None = None,
    ) -> Pet | TalkReply:
        """
        Feed, pet or talk to the pet optimistically.

        Returns:
            The confirmed Pet, or a TalkReply for talk

        Raises:
            TransientNetworkError: The request failed; its prediction was withdrawn
        """
        kind = InteractionKind(kind)
        if kind not in PET_INTERACTIONS:
            raise ValidationError(f"{kind.value} is not a pet interaction")

        if kind is InteractionKind.FEED:
            return await self._run(kind, self.client.feed, lambda pet: pet, now)
        if kind is InteractionKind.PET:
            return await self._run(kind, self.client.pet, lambda pet: pet, now)
        return await self._run(
            kind, lambda: self.client.talk(message), lambda reply: reply.pet, now
        )

    async def checkin(
        self,
        emotion_id: int,
        intensity: int,
        reflection_text: str | None = None,
        *,
        now: datetime | None = None,
    ) -> CheckinReceipt:
        """
        Record a check-in, showing its happiness boost right away.

        Input is validated before anything changes locally. The check-in
        response does not carry the pet, so it is fetched again afterwards;
        if that fetch fails the check-in still counts and the prediction
        stays on display.
        """
        validate_checkin(emotion_id, intensity, reflection_text)
        receipt = await self._run(
            InteractionKind.CHECKIN,
            lambda: self.client.create_checkin(emotion_id, intensity, reflection_text),
            lambda receipt: None,
            now,
        )
        if self.pet is not None:
            try:
                self._confirm(await self.client.get_pet())
            except MoodPetError as e:
                logger.warning("Could not confirm pet after check-in: %s", e)
        return receipt
