"""
Custom exception hierarchy for consistent error responses.

Usage:
    from taskflow.exceptions import ForbiddenError, AccessDeniedError

    raise ForbiddenError("Not a member of this project")
    raise AccessDeniedError()

HTTP errors (AppError subclasses) are converted by FastAPI into JSON
responses. Realtime errors (RealtimeError subclasses) are raised by the
room broadcaster and converted by the WebSocket dispatcher into an
``error`` frame sent to the requesting connection only:
    {"type": "error", "payload": {"message": "<message>", "code": "<CODE>"}}
"""

from fastapi import HTTPException, status


class AppError(HTTPException):
    """Base application error with a default status code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            status_code=self.__class__.status_code,
            detail=message,
        )
        self.extra_detail = detail


class ForbiddenError(AppError):
    """Forbidden access (403)."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class UnauthorizedError(AppError):
    """Unauthorized access (401)."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


# ---------------------------------------------------------
# Realtime (WebSocket) errors
# ---------------------------------------------------------


class RealtimeError(Exception):
    """Base error for socket-level failures, carries a machine-readable code."""

    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None, code: str | None = None):
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)


class MissingFieldError(RealtimeError):
    """A required payload field was not supplied."""

    def __init__(self, field: str):
        super().__init__(
            f"{field} is required",
            code=f"MISSING_{_screaming_snake(field)}",
        )


class InvalidPayloadError(RealtimeError):
    """The payload could not be parsed."""

    code = "INVALID_PAYLOAD"
    default_message = "Invalid payload"


class AccessDeniedError(RealtimeError):
    """The user is not a member of the project, or it is no longer active."""

    code = "ACCESS_DENIED"
    default_message = "You do not have access to this project"


def _screaming_snake(name: str) -> str:
    """projectId -> PROJECT_ID"""
    out = []
    for ch in name:
        if ch.isupper() and out:
            out.append("_")
        out.append(ch.upper())
    return "".join(out)
