"""Exception types raised by the tunedeck core and its store adapters."""


class TunedeckError(Exception):
    """Base class for all application errors."""

    message = "tunedeck error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class AuthenticationError(TunedeckError):
    message = "authentication failed"


class NoTokenError(AuthenticationError):
    message = "no token provided error"


class InvalidTokenError(AuthenticationError):
    message = "token is invalid error"


class InvalidCredentialsError(AuthenticationError):
    message = "user credentials are invalid error"


class ForbiddenError(TunedeckError):
    message = "You are not allowed to fetch/modify audio for this user"


class NotOwnerError(TunedeckError):
    message = "user id is invalid error"


class StoreError(TunedeckError):
    message = "store error"


class NotFoundError(StoreError):
    message = "record not found"


class ConflictError(StoreError):
    message = "record already exists"


class PartialCommitError(TunedeckError):
    """A multi-step workflow committed its first step but failed afterwards.

    ``resource_id`` names the record that remains in the store so callers
    can retry a read for it. The failure that interrupted the workflow is
    available as ``__cause__``.
    """

    def __init__(self, resource: str, resource_id: str, error: Exception) -> None:
        super().__init__(f"{resource} {resource_id} was saved but is incomplete: {error}")
        self.resource = resource
        self.resource_id = resource_id
        self.error = error
