"""
FastAPI dependencies that hand the startup singletons to per-request managers,
and the session gate used by every authenticated router.

The Google client and clock live on app.state (created once in main); the
store and managers are built per request around that request's DB session.
Tests override get_db, get_clock and get_google_client.
"""
from datetime import datetime
from typing import Callable

from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session as DbSession

from config import SESSION_COOKIE_NAME
from database import get_db
from errors import AuthRequired
from schemas import Session
from services.google_client import GoogleClient
from session_store import SessionStore
from sessions import SessionManager, session_cookie
from tokens import TokenManager


def get_clock(request: Request) -> Callable[[], datetime]:
    return request.app.state.clock


def get_google_client(request: Request) -> GoogleClient:
    return request.app.state.google_client


def get_session_store(db: DbSession = Depends(get_db)) -> SessionStore:
    return SessionStore(db)


def get_session_manager(
    store: SessionStore = Depends(get_session_store),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> SessionManager:
    return SessionManager(store, clock)


def get_token_manager(
    sessions: SessionManager = Depends(get_session_manager),
    google: GoogleClient = Depends(get_google_client),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> TokenManager:
    return TokenManager(sessions, google, clock)


def validate_session(request: Request, response: Response, sessions: SessionManager) -> Session:
    """
    Check the session cookie, slide the session window and stash the session
    on request.state for the handler. Expiry is detected in resolve(), which
    deletes the record and raises SessionExpired (cookie cleared by the handler).
    """
    if not request.cookies.get(SESSION_COOKIE_NAME):
        raise AuthRequired("Please login first")

    session = sessions.resolve(request)
    if session is None:
        raise AuthRequired("Invalid session")

    sessions.touch(session)
    sessions.set_cookie(response, session_cookie(session.session_id))
    request.state.session = session
    return session


def require_session(
    request: Request,
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
) -> Session:
    """Router dependency: 401 unless the request carries a live session."""
    return validate_session(request, response, sessions)
