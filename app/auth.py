"""
Google sign-in for the SPA: login, sign-out and session validation.

- googleLogin takes the authorization code the SPA got from Google, exchanges
  it (or reuses the tokens of a live session), loads the Google profile,
  creates or slides the server-side session and sets the session_id cookie.
- googleSignOut deletes the session and expires the cookie.
- validate reports whether the cookie names a live session and slides it;
  the same logic guards the calendar and user routers (deps.require_session).
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from config import SESSION_COOKIE_NAME, SESSION_LIFETIME
from deps import get_google_client, get_session_manager, get_token_manager, validate_session
from errors import UpstreamError
from responses import success
from schemas import GoogleLoginBody, SessionData
from services.google_client import GoogleClient
from sessions import SessionManager, session_cookie
from tokens import TokenManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/authorize")


@router.post("/googleLogin")
def google_login(
    request: Request,
    response: Response,
    body: Optional[GoogleLoginBody] = None,
    sessions: SessionManager = Depends(get_session_manager),
    tokens: TokenManager = Depends(get_token_manager),
    google: GoogleClient = Depends(get_google_client),
):
    """
    Sign the browser in. A client that already holds a live session keeps its
    session id; otherwise a new 24h session is created for the Google account.
    Returns the Google profile.
    """
    try:
        token = tokens.get_token_from_request(request, response, body)
    except UpstreamError as e:
        raise UpstreamError(
            "Failed to get token",
            upstream_status=e.upstream_status,
            details=e.details,
        ) from e
    try:
        user_info = google.get_user_info(token.access_token)
    except UpstreamError as e:
        raise UpstreamError(
            "Failed to get user information",
            upstream_status=e.upstream_status,
            details=e.details,
        ) from e

    session = sessions.resolve_quietly(request)
    if session is not None and session.token_response is not None:
        sessions.touch(session)
        session_id = session.session_id
    else:
        session_id = sessions.save(
            user_info.id,
            SessionData(token_response=token, user_info=user_info),
            SESSION_LIFETIME,
        )

    sessions.set_cookie(response, session_cookie(session_id))
    return success(user_info.model_dump())


@router.post("/googleSignOut")
def google_sign_out(
    request: Request,
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
):
    """Delete the session and expire the cookie. Without a cookie there is nothing to do."""
    session_id = request.cookies.get(SESSION_COOKIE_NAME)
    if not session_id:
        return success({"message": "Already signed out"})

    sessions.destroy(session_id, response)
    return success({"message": "Successfully signed out"})


@router.get("/validate")
def validate(
    request: Request,
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
):
    """401 unless the cookie names a live session; a live session is slid forward 24h."""
    session = validate_session(request, response, sessions)
    return success({
        "user_id": session.user_id,
        "expiry_date": session.expiry_date.isoformat(),
    })
