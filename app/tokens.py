"""
Token manager: Google code exchange, access-token freshness and refresh.

- get_token_from_request is used by login: reuse the session's token (refreshed
  if stale) or exchange the authorization code from the request body.
- get_access_token is used by resource endpoints: a valid access token for the
  request's session, refreshing if needed.
- ensure_valid refreshes a stale access token at most once, keeps the original
  refresh token when Google omits it, slides the session and re-issues the cookie.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from fastapi import Request, Response

from config import TOKEN_EXPIRY_SKEW
from errors import AuthRequired, BadRequest, RefreshFailed, UpstreamError
from schemas import GoogleLoginBody, Session, TokenResponse
from services.google_client import GoogleClient
from sessions import SessionManager, session_cookie

logger = logging.getLogger(__name__)


def is_token_expired(session: Optional[Session], now: datetime) -> bool:
    """
    True when the session's access token must be refreshed before use: no
    token at all, a non-positive lifetime, or less than TOKEN_EXPIRY_SKEW left.
    The issue time falls back to the session's create_date, then update_date.
    """
    if session is None or session.token_response is None:
        return True
    token = session.token_response
    if not token.access_token:
        return True
    if token.expires_in <= 0:
        logger.warning("Invalid expires_in on stored token: %s", token.expires_in)
        return True

    issued_at = token.created_at or session.create_date or session.update_date
    if issued_at is None:
        return True

    expires_at = issued_at.timestamp() + token.expires_in
    if now.timestamp() + TOKEN_EXPIRY_SKEW.total_seconds() >= expires_at:
        logger.info(
            "Access token expired or about to expire: session_id=%s seconds_left=%d",
            session.session_id,
            int(expires_at - now.timestamp()),
        )
        return True
    return False


class TokenManager:
    def __init__(self, sessions: SessionManager, google: GoogleClient, now: Callable[[], datetime]):
        self.sessions = sessions
        self.google = google
        self.now = now

    def get_token_from_request(
        self,
        request: Request,
        response: Response,
        body: Optional[GoogleLoginBody],
    ) -> TokenResponse:
        """Token for login: the session's (kept fresh) or a new one from the auth code."""
        session = self.sessions.resolve_quietly(request)
        if session is not None and session.token_response is not None and session.token_response.access_token:
            request.state.session = session
            try:
                return self.ensure_valid(session, response).token_response
            except RefreshFailed as e:
                # the session is unusable; a fresh code can still sign the user in
                logger.warning("Discarding session %s: %s", session.session_id, e.message)
                self.sessions.destroy(session.session_id, response)
                request.state.session = None
                if body is None or not body.code:
                    raise RefreshFailed(e.message, details=e.details, clear_cookie=True) from e

        if body is None or not body.code:
            raise BadRequest("Invalid request format: code is required")

        token = self.google.exchange_code(body.code, body.redirect_uri)
        token.created_at = self.now()
        return token

    def get_access_token(self, request: Request, response: Response) -> str:
        session = self.sessions.resolve(request)
        if session is None:
            raise AuthRequired("Please login first")
        session = self.ensure_valid(session, response)
        return session.token_response.access_token

    def ensure_valid(self, session: Session, response: Response) -> Session:
        """Return the session with a fresh access token, refreshing it in place if stale."""
        now = self.now()
        if not is_token_expired(session, now):
            return session

        token = session.token_response
        if token is None or not token.refresh_token:
            raise RefreshFailed("Refresh token not found in session")

        try:
            refreshed = self.google.refresh(token.refresh_token)
        except UpstreamError as e:
            if e.upstream_status is None:
                # Google unreachable; the refresh token may still be good
                raise
            raise RefreshFailed("Failed to refresh access token", details=e.details) from e

        now = self.now()
        token.access_token = refreshed.access_token
        token.expires_in = refreshed.expires_in
        token.token_type = refreshed.token_type
        token.created_at = now
        if refreshed.refresh_token:
            token.refresh_token = refreshed.refresh_token
        session.update_date = now

        self.sessions.touch(session)
        self.sessions.set_cookie(response, session_cookie(session.session_id))
        logger.info("Access token refreshed: session_id=%s", session.session_id)
        return session
