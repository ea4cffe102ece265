"""Error taxonomy for Courier.

Every failure an operation can report to its caller is a ``CourierError``
subclass carrying an HTTP status and a human-readable message. The app
renders them as ``{"message": ...}`` (see ``courier.main``).

Hierarchy:
    CourierError (base, 500)
    ├── BadRequestError          400 - missing or invalid input
    ├── UnauthorizedError        401 - no authenticated identity
    ├── ForbiddenError           403 - authenticated but not a participant
    ├── NotFoundError            404 - chat absent
    ├── UpstreamUnavailableError 502 - profile service failure
    └── InternalError            500 - unexpected failure

``UpstreamUnavailableError`` is always recovered locally (placeholder
profile) and never reaches an HTTP response.
"""


class CourierError(Exception):
    """Base exception for all Courier errors.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status used when the error is surfaced.
    """

    status_code: int = 500
    default_message: str = "Internal Server Error"

    def __init__(self, message: str = "") -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"message": self.message}


class BadRequestError(CourierError):
    status_code = 400
    default_message = "Bad request"


class UnauthorizedError(CourierError):
    status_code = 401
    default_message = "Unauthorized"


class ForbiddenError(CourierError):
    status_code = 403
    default_message = "You are not a participant of this chat"


class NotFoundError(CourierError):
    status_code = 404
    default_message = "Chat not found"


class UpstreamUnavailableError(CourierError):
    status_code = 502
    default_message = "User service unavailable"


class InternalError(CourierError):
    status_code = 500
