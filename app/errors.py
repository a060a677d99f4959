"""
Error kinds raised by the store, session, token and Google layers.

Lower layers raise these; the exception handlers in main turn them into the
failure envelope with the matching status code. Messages are short and safe to
show to the client; the causing exception is chained and logged, never sent.
"""
from typing import Any, Optional


class ApiError(Exception):
    """Base for every error that maps to a JSON failure response."""

    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        details: Any = None,
        status_code: Optional[int] = None,
        clear_cookie: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        self.clear_cookie = clear_cookie

    def payload(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class BadRequest(ApiError):
    """Malformed JSON or a missing required field."""

    status_code = 400


class AuthRequired(ApiError):
    """No cookie, unknown session, expired session or unusable tokens."""

    status_code = 401


class SessionExpired(AuthRequired):
    """The server found the session past its expiry date and deleted it."""

    def __init__(self, message: str = "Session expired, please login again"):
        super().__init__(message, clear_cookie=True)


class RefreshFailed(AuthRequired):
    """Stale access token that could not be refreshed; the session is unusable."""


class UpstreamError(ApiError):
    """Google returned non-2xx, an unparseable body, or could not be reached."""

    def __init__(self, message: str, *, upstream_status: Optional[int] = None, details: Any = None):
        super().__init__(message, details=details)
        self.upstream_status = upstream_status


class StoreError(ApiError):
    """Session store read, write or delete failure."""
