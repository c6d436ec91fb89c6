"""
FastAPI server for the MoodPet service.

This module implements the HTTP API for the virtual pet and mood check-ins.
Every request is a short-lived handler working on one user's records through
`PetService`, which serializes writes per user.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from . import __version__
from .config import Settings, configure_logging, settings
from .errors import MoodPetError
from .models import CheckinStats, InteractionKind, MoodCheckin, MoodSnapshot, Pet, Streak
from .service import PetService
from .store import PetStore

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


# API Request/Response Schemas
class TalkRequest(BaseModel):
    """Optional payload for talking to the pet."""

    message: str | None = Field(None, description="What the user says to the pet")


class RenameRequest(BaseModel):
    name: str = Field(..., description="New display name for the pet")


class CustomizeRequest(BaseModel):
    cosmetic_skin: str = Field(..., description="Cosmetic variant to apply")


class CheckinCreate(BaseModel):
    """Payload for mood check-in creation; ranges are checked by the service."""

    emotion_id: int = Field(..., description="Emotion id, 1..6")
    intensity: int = Field(..., description="Emotion intensity, 1..10")
    reflection_text: str | None = Field(
        None, description="Optional reflection, 50..500 characters"
    )


class DiaryActivity(BaseModel):
    """Report of new diary entries; their content is stored elsewhere."""

    count: int = Field(1, description="Number of new diary entries")


class DiaryActivityResponse(BaseModel):
    recent_entries: int


class PetResponse(BaseModel):
    pet: Pet
    message: str | None = None


class TalkResponse(BaseModel):
    pet: Pet
    dialogue: str


class CheckinResponse(BaseModel):
    checkin: MoodCheckin
    streak_updated: bool
    new_streak: int


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class CheckinListResponse(BaseModel):
    checkins: list[MoodCheckin]
    pagination: Pagination


class StreakResponse(BaseModel):
    streak: Streak


class ErrorResponse(BaseModel):
    ok: bool = False
    error_code: str
    message: str
    recoverable: bool = False
    retry_after: int | None = None


INTERACTION_MESSAGES = {
    InteractionKind.FEED: "Your pet has been fed!",
    InteractionKind.PET: "Your pet is content!",
}


async def current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> str:
    """
    Identify the caller from the bearer token.

    Token verification happens upstream; the token value is the user id.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials


def create_app(service: PetService) -> FastAPI:
    """
    Create a FastAPI application around the given pet service.

    Args:
        service: The PetService instance to use for the application

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(
            "MoodPet API started (server cooldowns %s)",
            "enforced" if service.enforce_cooldowns else "disabled",
        )
        yield
        logger.info("MoodPet API stopped")

    app = FastAPI(
        title="MoodPet",
        description="Pet engagement engine of the Emotion Diary",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service

    @app.exception_handler(MoodPetError)
    async def handle_domain_error(request: Request, exc: MoodPetError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        body = ErrorResponse(
            error_code=exc.error_code,
            message=exc.message,
            recoverable=exc.recoverable,
            retry_after=exc.retry_after,
        )
        headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else None
        return JSONResponse(
            status_code=exc.status_code, content=body.model_dump(), headers=headers
        )

    @app.get("/")
    async def root() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "moodpet"}

    # MARK: - Pet

    @app.get("/pet")
    async def get_pet(user_id: str = Depends(current_user)) -> PetResponse:
        """
        Get the user's pet, creating it on first access.

        Passive decay since the last feeding is applied before returning.
        """
        return PetResponse(pet=await service.get_pet(user_id))

    @app.post("/pet/feed")
    async def feed_pet(user_id: str = Depends(current_user)) -> PetResponse:
        """Feed the pet: happiness +10 and the decay clock restarts."""
        result = await service.interact(user_id, InteractionKind.FEED)
        return PetResponse(pet=result.pet, message=INTERACTION_MESSAGES[InteractionKind.FEED])

    @app.post("/pet/pet")
    async def pet_pet(user_id: str = Depends(current_user)) -> PetResponse:
        """Pet the pet: happiness +5."""
        result = await service.interact(user_id, InteractionKind.PET)
        return PetResponse(pet=result.pet, message=INTERACTION_MESSAGES[InteractionKind.PET])

    @app.post("/pet/talk")
    async def talk_to_pet(
        body: TalkRequest | None = None, user_id: str = Depends(current_user)
    ) -> TalkResponse:
        """Talk to the pet: happiness +2, and the pet answers according to its mood."""
        if body is not None and body.message:
            logger.debug("User %s says %r", user_id, body.message)
        result = await service.interact(user_id, InteractionKind.TALK)
        return TalkResponse(pet=result.pet, dialogue=result.dialogue or "")

    @app.put("/pet/name")
    async def rename_pet(
        body: RenameRequest, user_id: str = Depends(current_user)
    ) -> PetResponse:
        pet = await service.rename(user_id, body.name)
        return PetResponse(pet=pet, message="Pet name updated!")

    @app.post("/pet/customize")
    async def customize_pet(
        body: CustomizeRequest, user_id: str = Depends(current_user)
    ) -> PetResponse:
        pet = await service.customize(user_id, body.cosmetic_skin)
        return PetResponse(pet=pet, message="Pet appearance updated!")

    @app.get("/pet/mood")
    async def pet_mood(user_id: str = Depends(current_user)) -> MoodSnapshot:
        """Mood and engagement derived from the last week of activity."""
        return await service.mood(user_id)

    # MARK: - Diary activity

    @app.post("/diary/activity")
    async def diary_activity(
        body: DiaryActivity | None = None, user_id: str = Depends(current_user)
    ) -> DiaryActivityResponse:
        """
        Record new diary entries for mood analysis.

        Only entries from the last 7 days count towards the engagement level.
        """
        count = body.count if body is not None else 1
        recent = await service.record_diary_activity(user_id, count)
        return DiaryActivityResponse(recent_entries=recent)

    # MARK: - Check-ins

    @app.post("/checkins", status_code=status.HTTP_201_CREATED)
    async def create_checkin(
        body: CheckinCreate, user_id: str = Depends(current_user)
    ) -> CheckinResponse:
        """
        Record a mood check-in.

        Advances the user's streak at most once per calendar day and gives
        the pet a small happiness boost if it exists.
        """
        result = await service.create_checkin(
            user_id, body.emotion_id, body.intensity, body.reflection_text
        )
        return CheckinResponse(
            checkin=result.checkin,
            streak_updated=result.streak_updated,
            new_streak=result.streak.current,
        )

    @app.get("/checkins")
    async def list_checkins(
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=100),
        user_id: str = Depends(current_user),
    ) -> CheckinListResponse:
        checkins, total = await service.list_checkins(user_id, page, limit)
        return CheckinListResponse(
            checkins=checkins,
            pagination=Pagination(
                page=page, limit=limit, total=total, total_pages=-(-total // limit)
            ),
        )

    @app.get("/checkins/stats")
    async def checkin_stats(
        days: int = Query(7, ge=1, le=365), user_id: str = Depends(current_user)
    ) -> CheckinStats:
        """Per-emotion distribution and average intensity over the last `days` days."""
        return await service.stats(user_id, days)

    @app.get("/checkins/streak")
    async def checkin_streak(user_id: str = Depends(current_user)) -> StreakResponse:
        return StreakResponse(streak=await service.streak(user_id))

    return app


def build_service(config: Settings) -> PetService:
    return PetService(
        PetStore(lock_timeout=config.lock_timeout),
        enforce_cooldowns=config.enforce_cooldowns,
        default_pet_name=config.default_pet_name,
        default_pet_type=config.default_pet_type,
    )


app = create_app(build_service(settings))


def main() -> None:
    """Main entry point for the server."""
    import uvicorn

    configure_logging(settings.log_level)
    uvicorn.run(
        "moodpet.server:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
