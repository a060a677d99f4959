"""
Session manager: create, resolve, slide and destroy sessions, and write the cookie.

The session_id cookie is the only client-side state. A presented id the store
does not know resolves to None; a new session is only ever minted by save()
during login.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from fastapi import Request, Response

from config import IS_RELEASE, SESSION_COOKIE_MAX_AGE, SESSION_COOKIE_NAME, SESSION_LIFETIME
from errors import SessionExpired
from schemas import Session, SessionData
from session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class Cookie:
    name: str
    value: str
    max_age: int
    path: str = "/"
    domain: Optional[str] = None
    secure: bool = False
    http_only: bool = True


def session_cookie(session_id: str) -> Cookie:
    return Cookie(name=SESSION_COOKIE_NAME, value=session_id, max_age=SESSION_COOKIE_MAX_AGE)


def logout_cookie() -> Cookie:
    return Cookie(name=SESSION_COOKIE_NAME, value="", max_age=-1)


def set_cookie(response: Response, cookie: Cookie, *, release: bool = IS_RELEASE) -> None:
    """
    Emit the Set-Cookie header for cookie.name, replacing one set earlier on the
    same response. Release mode always sends Secure and HttpOnly.

    The header is written by hand so an empty value goes out as `name=;`
    (SimpleCookie would quote it as `name=""`).
    """
    secure, http_only = cookie.secure, cookie.http_only
    if release:
        secure, http_only = True, True

    parts = [f"{cookie.name}={cookie.value}", f"Max-Age={cookie.max_age}", f"Path={cookie.path}"]
    if cookie.domain:
        parts.append(f"Domain={cookie.domain}")
    parts.append("SameSite=Lax")
    if secure:
        parts.append("Secure")
    if http_only:
        parts.append("HttpOnly")

    prefix = f"{cookie.name}=".encode("latin-1")
    # in place: response.headers wraps this same list
    response.raw_headers[:] = [
        (key, value)
        for key, value in response.raw_headers
        if not (key == b"set-cookie" and value.startswith(prefix))
    ]
    response.raw_headers.append((b"set-cookie", "; ".join(parts).encode("latin-1")))


def new_session_id() -> str:
    """128 random bits as 32 hex characters."""
    return secrets.token_hex(16)


class SessionManager:
    def __init__(self, store: SessionStore, now: Callable[[], datetime]):
        self.store = store
        self.now = now

    def resolve(self, request: Request) -> Optional[Session]:
        """
        Return the session for this request, or None when there is no cookie or
        the id is unknown. A session already validated earlier in the request
        (request.state.session) wins over the cookie. An expired session is
        deleted and SessionExpired is raised so the cookie gets cleared.
        """
        session = getattr(request.state, "session", None)
        if session is not None:
            return session

        session_id = request.cookies.get(SESSION_COOKIE_NAME)
        if not session_id:
            return None

        session = self.store.get(session_id)
        if session is None:
            return None

        if self.now() > session.expiry_date:
            logger.info(
                "Session expired: session_id=%s expiry_date=%s",
                session_id,
                session.expiry_date.isoformat(),
            )
            self.store.delete(session_id)
            raise SessionExpired()
        return session

    def resolve_quietly(self, request: Request) -> Optional[Session]:
        """resolve() that treats an expired session the same as no session."""
        try:
            return self.resolve(request)
        except SessionExpired:
            return None

    def save(self, user_id: str, data: SessionData, lifetime: timedelta = SESSION_LIFETIME) -> str:
        """Persist a brand new session and return its id."""
        now = self.now()
        expiry = now + lifetime
        session = Session(
            session_id=new_session_id(),
            user_id=user_id,
            data=data,
            create_date=now,
            update_date=now,
            expiry_date=expiry,
            ttl=int(expiry.timestamp()),
        )
        self.store.put(session)
        logger.info("Session created: session_id=%s", session.session_id)
        return session.session_id

    def touch(self, session: Session) -> None:
        """Slide the session window: expires SESSION_LIFETIME from now."""
        now = self.now()
        session.update_date = now
        session.expiry_date = now + SESSION_LIFETIME
        session.ttl = int(session.expiry_date.timestamp())
        self.store.put(session)
        logger.debug("Session updated: session_id=%s", session.session_id)

    def destroy(self, session_id: str, response: Optional[Response] = None) -> None:
        """Delete the session and, when a response is given, expire the cookie on it."""
        self.store.delete(session_id)
        logger.info("Session deleted: session_id=%s", session_id)
        if response is not None:
            self.set_cookie(response, logout_cookie())

    def set_cookie(self, response: Response, cookie: Cookie) -> None:
        set_cookie(response, cookie)
