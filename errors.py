from fastapi import status


class EventHubError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(EventHubError):
    """Missing required field, non-positive capacity, past-dated event."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class AuthError(EventHubError):
    """Session missing, invalid, expired or revoked."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "auth_error"


class ForbiddenError(EventHubError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class NotFoundError(EventHubError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ConflictError(EventHubError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class NetworkError(EventHubError):
    """The remote service could not be reached. Raised by the client only."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "network_error"


ERRORS_BY_STATUS = {
    cls.status_code: cls
    for cls in (ValidationError, AuthError, ForbiddenError, NotFoundError, ConflictError)
}


def error_for_status(status_code: int, message: str) -> EventHubError:
    """Map an HTTP error status back onto the matching exception class."""
    cls = ERRORS_BY_STATUS.get(status_code, EventHubError)
    if status_code == status.HTTP_422_UNPROCESSABLE_ENTITY:
        cls = ValidationError
    return cls(message)
