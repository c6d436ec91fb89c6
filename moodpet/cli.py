"""
Command-line interface for the MoodPet service.
"""

import asyncio
import json
from collections.abc import Coroutine
from datetime import timedelta
from typing import Any

import httpx
import typer

from .client import PetClient, TalkReply
from .config import settings
from .cooldowns import CooldownManager, CooldownTicker, JsonFileStore, format_remaining
from .coordinator import OptimisticUpdateCoordinator
from .errors import CooldownActiveError, MoodPetError
from .models import Emotion, InteractionKind, Pet

app = typer.Typer(help="MoodPet CLI tools")

URL_OPTION = typer.Option(
    settings.base_url, "--url", "-u", help="Base URL of the MoodPet service"
)
TOKEN_OPTION = typer.Option(
    settings.token, "--token", "-t", help="Bearer token identifying the user"
)


# MARK: - CLI Entry Points


def main() -> None:
    """Entry point for the moodpet CLI."""
    app()


# MARK: - Commands


@app.command()
def status(
    base_url: str = URL_OPTION,
    token: str = TOKEN_OPTION,
    json_output: bool = typer.Option(False, "--json", "-j", help="Output raw JSON"),
) -> None:
    """Show the pet's current state."""

    async def _status() -> None:
        async with PetClient(base_url, token, timeout=settings.request_timeout) as client:
            pet = await client.get_pet()
            if json_output:
                print(json.dumps(pet.model_dump(mode="json"), indent=2))
                return
            print(_format_pet(pet))

    _run_with_error_handling(_status(), base_url)


@app.command()
def feed(base_url: str = URL_OPTION, token: str = TOKEN_OPTION) -> None:
    """Feed the pet (4h cooldown)."""
    _run_with_error_handling(_interact(InteractionKind.FEED, base_url, token), base_url)


@app.command(name="pet")
def pet_command(base_url: str = URL_OPTION, token: str = TOKEN_OPTION) -> None:
    """Pet the pet (1h cooldown)."""
    _run_with_error_handling(_interact(InteractionKind.PET, base_url, token), base_url)


@app.command()
def talk(
    message: str = typer.Argument("", help="What to say to the pet"),
    base_url: str = URL_OPTION,
    token: str = TOKEN_OPTION,
) -> None:
    """Talk to the pet (30m cooldown)."""
    _run_with_error_handling(
        _interact(InteractionKind.TALK, base_url, token, message=message or None),
        base_url,
    )


@app.command()
def checkin(
    emotion: Emotion = typer.Argument(..., help="How you feel"),
    intensity: int = typer.Argument(..., min=1, max=10, help="Intensity from 1 to 10"),
    reflection: str = typer.Option(
        "", "--reflection", "-r", help="Optional reflection, 50 to 500 characters"
    ),
    base_url: str = URL_OPTION,
    token: str = TOKEN_OPTION,
) -> None:
    """Record a mood check-in."""

    async def _checkin() -> None:
        async with PetClient(base_url, token, timeout=settings.request_timeout) as client:
            coordinator = _coordinator(client, token)
            await coordinator.refresh()
            receipt = await coordinator.checkin(
                emotion.id, intensity, reflection or None
            )
            streak_note = " (streak extended)" if receipt.streak_updated else ""
            print(f"Checked in: {emotion.value} {intensity}/10")
            print(f"Streak: {receipt.new_streak} day(s){streak_note}")
            print(f"Happiness: {coordinator.observed_happiness}")

    _run_with_error_handling(_checkin(), base_url)


@app.command()
def cooldowns(
    token: str = TOKEN_OPTION,
    watch: bool = typer.Option(False, "--watch", "-w", help="Refresh every second"),
) -> None:
    """Show the remaining local cooldowns."""
    manager = CooldownManager(JsonFileStore(settings.cooldown_file), prefix=_prefix(token))
    if not watch:
        _print_cooldowns(manager.snapshot())
        return

    async def _watch() -> None:
        ticker = CooldownTicker(manager, _print_cooldowns)
        ticker.start()
        try:
            await asyncio.Event().wait()
        finally:
            await ticker.stop()

    _run_with_error_handling(_watch(), settings.base_url)


@app.command()
def stats(
    days: int = typer.Option(7, "--days", "-d", min=1, help="Days to analyze"),
    base_url: str = URL_OPTION,
    token: str = TOKEN_OPTION,
) -> None:
    """Show the emotion distribution over recent days."""

    async def _stats() -> None:
        async with PetClient(base_url, token, timeout=settings.request_timeout) as client:
            result = await client.stats(days)
            print(
                f"Last {result.period_days} days: {result.total_checkins} check-ins, "
                f"average intensity {result.avg_intensity:.2f}"
            )
            for stat in result.emotion_distribution:
                if stat.count:
                    print(f"  {stat.emotion.value:<9} {stat.count:>3}  {stat.percentage:.1f}%")

    _run_with_error_handling(_stats(), base_url)


@app.command()
def mood(base_url: str = URL_OPTION, token: str = TOKEN_OPTION) -> None:
    """Show the pet's derived mood and your engagement level."""

    async def _mood() -> None:
        async with PetClient(base_url, token, timeout=settings.request_timeout) as client:
            snapshot = await client.mood()
            print(f"Mood: {snapshot.mood}, engagement {snapshot.engagement_level}/100")

    _run_with_error_handling(_mood(), base_url)


# MARK: - Private Helpers


def _prefix(token: str) -> str:
    """Namespace local cooldowns per user sharing the same cooldown file."""
    return f"{token}:" if token else ""


def _coordinator(client: PetClient, token: str) -> OptimisticUpdateCoordinator:
    manager = CooldownManager(JsonFileStore(settings.cooldown_file), prefix=_prefix(token))
    return OptimisticUpdateCoordinator(client, manager)


def _print_cooldowns(remaining: dict[InteractionKind, timedelta]) -> None:
    for kind, left in remaining.items():
        state = format_remaining(left) if left.total_seconds() > 0 else "ready"
        print(f"{kind.value:<5} {state}")


def _format_pet(pet: Pet) -> str:
    attention = "  (needs attention!)" if pet.needs_attention else ""
    return (
        f"{pet.name} the {pet.pet_type}: happiness {pet.happiness}/100, "
        f"{pet.animation_state}{attention}"
    )


async def _interact(
    kind: InteractionKind, base_url: str, token: str, message: str | None = None
) -> None:
    async with PetClient(base_url, token, timeout=settings.request_timeout) as client:
        coordinator = _coordinator(client, token)
        await coordinator.refresh()
        result = await coordinator.interact(kind, message=message)
        if isinstance(result, TalkReply):
            print(f'{result.pet.name} says: "{result.dialogue}"')
            result = result.pet
        print(_format_pet(result))


def _run_with_error_handling(coro: Coroutine[Any, Any, Any], base_url: str) -> None:
    """Run an async coroutine with standardized error handling."""
    try:
        asyncio.run(coro)
    except KeyboardInterrupt:
        print("\nStopped")
        raise typer.Exit(0)
    except CooldownActiveError as e:
        wait = f" (try again in {e.retry_after}s)" if e.retry_after else ""
        print(f"Not yet: {e.message}{wait}")
        raise typer.Exit(1)
    except MoodPetError as e:
        print(f"Error: {e.message}")
        raise typer.Exit(1)
    except httpx.HTTPError as e:
        print(f"Error: could not talk to {base_url}: {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    main()
