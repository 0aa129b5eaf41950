"""Domain exceptions shared by the store, the API and the client."""


class RethoricError(Exception):
    """Base exception for domain failures."""

    status_code: int = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class UnauthenticatedError(RethoricError):
    """No valid session for an authenticated operation."""

    status_code = 401


class NotFoundError(RethoricError):
    """Referenced question, conversation or user does not exist."""

    status_code = 404


class PermissionDeniedError(RethoricError):
    """Authenticated, but not allowed to touch the referenced entity."""

    status_code = 403


class InvalidStateError(RethoricError):
    """Operation not valid for the entity's current state."""

    status_code = 409


class InvalidArgumentError(RethoricError):
    """Malformed input."""

    status_code = 422


ERRORS_BY_STATUS: dict[int, type[RethoricError]] = {
    cls.status_code: cls
    for cls in (
        UnauthenticatedError,
        NotFoundError,
        PermissionDeniedError,
        InvalidStateError,
        InvalidArgumentError,
    )
}
