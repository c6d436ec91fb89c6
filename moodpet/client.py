"""
HTTP client for the MoodPet API.

Wraps `httpx.AsyncClient` and turns transport failures and error responses
into the MoodPet error taxonomy, so callers only deal with domain errors.
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .errors import (
    ConflictError,
    CooldownActiveError,
    MoodPetError,
    NotFoundError,
    TransientNetworkError,
    ValidationError,
)
from .models import CheckinStats, MoodCheckin, MoodSnapshot, Pet, Streak

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000"


@dataclass(frozen=True)
class TalkReply:
    pet: Pet
    dialogue: str


@dataclass(frozen=True)
class CheckinReceipt:
    checkin: MoodCheckin
    streak_updated: bool
    new_streak: int


def _error_message(response: httpx.Response) -> tuple[str, int | None]:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}", None
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("detail") or f"HTTP {response.status_code}"
        return str(message), payload.get("retry_after")
    return f"HTTP {response.status_code}", None


def raise_for_response(response: httpx.Response) -> None:
    """Translate an error response into the matching MoodPetError."""
    if response.is_success:
        return

    code = response.status_code
    message, retry_after = _error_message(response)
    if code == 404:
        raise NotFoundError(message)
    if code in (400, 422):
        raise ValidationError(message)
    if code == 429:
        raise CooldownActiveError(message, retry_after=retry_after)
    if code == 409:
        raise ConflictError(message, retry_after=retry_after)
    if code >= 500:
        raise TransientNetworkError(message, retry_after=retry_after)
    raise MoodPetError(message)


class PetClient:
    """
    Async client for one user's pet and check-ins.

    Use as an async context manager, or call `aclose()` when done.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: str = "",
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url, headers=headers, timeout=timeout, transport=transport
        )

    async def __aenter__(self) -> "PetClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise TransientNetworkError(
                str(e) or f"Could not reach {self._client.base_url}"
            ) from e
        raise_for_response(response)
        return response.json()

    # MARK: - Pet

    async def get_pet(self) -> Pet:
        data = await self._request("GET", "/pet")
        return Pet.model_validate(data["pet"])

    async def feed(self) -> Pet:
        data = await self._request("POST", "/pet/feed")
        return Pet.model_validate(data["pet"])

    async def pet(self) -> Pet:
        data = await self._request("POST", "/pet/pet")
        return Pet.model_validate(data["pet"])

    async def talk(self, message: str | None = None) -> TalkReply:
        body = {"message": message} if message else None
        data = await self._request("POST", "/pet/talk", json=body)
        return TalkReply(pet=Pet.model_validate(data["pet"]), dialogue=data["dialogue"])

    async def mood(self) -> MoodSnapshot:
        return MoodSnapshot.model_validate(await self._request("GET", "/pet/mood"))

    async def record_diary_activity(self, count: int = 1) -> int:
        """Report new diary entries; returns how many fall in the last 7 days."""
        data = await self._request("POST", "/diary/activity", json={"count": count})
        return data["recent_entries"]

    # MARK: - Check-ins

    async def create_checkin(
        self, emotion_id: int, intensity: int, reflection_text: str | None = None
    ) -> CheckinReceipt:
        payload: dict[str, Any] = {"emotion_id": emotion_id, "intensity": intensity}
        if reflection_text:
            payload["reflection_text"] = reflection_text
        data = await self._request("POST", "/checkins", json=payload)
        return CheckinReceipt(
            checkin=MoodCheckin.model_validate(data["checkin"]),
            streak_updated=data["streak_updated"],
            new_streak=data["new_streak"],
        )

    async def stats(self, days: int = 7) -> CheckinStats:
        data = await self._request("GET", "/checkins/stats", params={"days": days})
        return CheckinStats.model_validate(data)

    async def streak(self) -> Streak:
        data = await self._request("GET", "/checkins/streak")
        return Streak.model_validate(data["streak"])
