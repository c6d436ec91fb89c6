"""
Error taxonomy shared by the server, the client and the CLI.

Every error carries the HTTP status it maps to and whether the caller may
retry the same action later.
"""


class MoodPetError(Exception):
    """Base class for all MoodPet domain errors."""

    status_code = 500
    error_code = "internal_error"
    recoverable = False

    def __init__(self, message: str, *, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.retry_after = retry_after


class NotFoundError(MoodPetError):
    """The pet or user addressed by a request does not exist."""

    status_code = 404
    error_code = "not_found"


class ValidationError(MoodPetError):
    """Input rejected before any state was touched."""

    status_code = 400
    error_code = "validation_error"


class ConflictError(MoodPetError):
    """A racing write on the same pet or streak could not be serialized in time."""

    status_code = 409
    error_code = "conflict"
    recoverable = True


class CooldownActiveError(ConflictError):
    """The interaction kind is still cooling down."""

    status_code = 429
    error_code = "cooldown_active"


class TransientNetworkError(MoodPetError):
    """The request never produced an authoritative answer."""

    status_code = 503
    error_code = "network_error"
    recoverable = True
