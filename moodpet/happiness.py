"""
Happiness engine for the virtual pet.

Pure transforms over `Pet`: passive decay since the last feeding and bounded
deltas from interactions. Nothing here persists anything; the server writes
the authoritative result and the client only displays its prediction.
"""

from datetime import datetime, timedelta

from .models import HAPPINESS_MAX, HAPPINESS_MIN, Interaction, InteractionKind, Pet

DECAY_PERIOD = timedelta(days=1)

INTERACTION_DELTAS = {
    InteractionKind.FEED: 10,
    InteractionKind.PET: 5,
    InteractionKind.TALK: 2,
    InteractionKind.CHECKIN: 5,
}


def clamp(value: int) -> int:
    return max(HAPPINESS_MIN, min(HAPPINESS_MAX, value))


def interaction_delta(kind: InteractionKind) -> int:
    return INTERACTION_DELTAS[InteractionKind(kind)]


def days_since_fed(pet: Pet, now: datetime) -> int:
    """Whole days elapsed since the pet was last fed (never negative)."""
    elapsed = now - pet.last_fed_at
    if elapsed <= timedelta(0):
        return 0
    return elapsed // DECAY_PERIOD


def apply_decay(pet: Pet, now: datetime) -> Pet:
    """
    Subtract one happiness point per whole day since the last feeding.

    Only days not yet accounted for are subtracted, so calling this any
    number of times within the same day yields the same pet.

    Args:
        pet: The pet to decay
        now: Evaluation time

    Returns:
        A new Pet; `last_fed_at` is left untouched
    """
    days = days_since_fed(pet, now)
    pending = days - pet.decay_days_applied
    if pending <= 0:
        return pet

    return pet.model_copy(
        update={
            "happiness": clamp(pet.happiness - pending),
            "decay_days_applied": days,
        }
    )


def apply_interaction(pet: Pet, kind: InteractionKind, now: datetime) -> Pet:
    """
    Apply the fixed happiness delta of one interaction.

    Feeding is the only interaction that restarts the decay clock.

    Args:
        pet: The pet being interacted with
        kind: The interaction kind
        now: Time of the interaction

    Returns:
        A new Pet with happiness clamped to [0, 100]
    """
    kind = InteractionKind(kind)
    update: dict = {"happiness": clamp(pet.happiness + interaction_delta(kind))}
    if kind is InteractionKind.FEED:
        update["last_fed_at"] = now
        update["decay_days_applied"] = 0
    return pet.model_copy(update=update)


def record_interaction(
    before: Pet, after: Pet, kind: InteractionKind, now: datetime
) -> Interaction:
    """Build the log record describing what an interaction actually changed."""
    return Interaction(
        kind=InteractionKind(kind), at=now, delta=after.happiness - before.happiness
    )


def dialogue_for(happiness: int) -> str:
    """What the pet says when talked to, based on how it feels right now."""
    if happiness >= 80:
        return "I'm so happy! Thank you for taking care of me!"
    if happiness >= 50:
        return "I'm fine, but it could be better. Maybe feed me?"
    if happiness >= 20:
        return "I'm sad... I'm hungry and I want some attention."
    return "I feel terrible... Please take care of me!"
