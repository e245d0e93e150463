"""
Error taxonomy for the comment subsystem.

Every error carries the HTTP status it maps to and a human-readable
message.  The API layer turns any ``CommentServiceError`` into the JSON
envelope ``{"success": false, "statusCode": ..., "message": ...}``
without inspecting the concrete type.
"""


class CommentServiceError(Exception):
    status_code: int = 500
    default_message: str = "Internal Server Error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_envelope(self) -> dict:
        return {
            "success": False,
            "statusCode": self.status_code,
            "message": self.message,
        }


class ValidationError(CommentServiceError):
    """Malformed or out-of-bound input; the client must fix the request."""

    status_code = 400
    default_message = "Invalid request"


class UnauthenticatedError(CommentServiceError):
    """No verified identity accompanied the request."""

    status_code = 401
    default_message = "Unauthorized"


class ForbiddenError(CommentServiceError):
    """Identity present but not allowed to perform the operation."""

    status_code = 403
    default_message = "You are not allowed to perform this action"


class NotFoundError(CommentServiceError):
    status_code = 404
    default_message = "Not found"


class StoreError(CommentServiceError):
    """
    Persistence failure.  Transient: callers may retry with backoff, but
    the service never hides it behind a success response.
    """

    status_code = 503
    default_message = "Comment store unavailable"
