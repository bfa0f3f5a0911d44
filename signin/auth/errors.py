from __future__ import annotations


class APIError(Exception):
    """
    Stable, typed failure surfaced to API callers.

    `code` is machine-readable and fixed per subclass; `message` is safe to show to end users.
    """

    status_code = 500
    code = "INTERNAL_SERVER_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class NotFound(APIError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"


class BadRequest(APIError):
    status_code = 400
    code = "BAD_REQUEST"
    default_message = "Bad request"


class Unauthorized(APIError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class InternalError(APIError):
    pass


class InvalidSignature(Exception):
    """Signed cookie is missing, malformed, or its signature does not match."""


class CookieWriteError(Exception):
    """Cookie was written after the response was already sent."""


class StorageError(Exception):
    """Persistence failed in the storage adapter."""
