"""
Calendar router: events of the signed-in user's Google Calendar.

Behind the session gate. The access token is refreshed before the Calendar
call when it is close to expiry; if that is impossible the session is
destroyed and Google is not contacted.
"""
import calendar
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from deps import get_clock, get_google_client, get_session_manager, get_token_manager, require_session
from errors import ApiError, AuthRequired, UpstreamError
from responses import success
from schemas import calendar_payload
from services.google_client import GoogleClient
from sessions import SessionManager
from tokens import TokenManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", dependencies=[Depends(require_session)])


def add_months(value: datetime, months: int) -> datetime:
    """
    Same day and time `months` later. A day past the end of the target month
    rolls over into the next one (Jan 31 + 1 month is Mar 3, or Mar 2 in a leap year).
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    overflow = value.day - calendar.monthrange(year, month)[1]
    if overflow <= 0:
        return value.replace(year=year, month=month)
    return value.replace(year=year, month=month, day=1) + timedelta(days=value.day - 1)


def rfc3339(value: datetime) -> str:
    return value.replace(microsecond=0).isoformat()


def access_token_or_sign_out(
    request: Request,
    response: Response,
    tokens: TokenManager,
    sessions: SessionManager,
) -> str:
    """
    A valid access token for the request's session. When the token cannot be
    refreshed the session is unusable: it is destroyed, the cookie cleared and
    a 500 returned.
    """
    try:
        return tokens.get_access_token(request, response)
    except AuthRequired as e:
        logger.error("Failed to get access token: %s", e.message, exc_info=e)
        session = getattr(request.state, "session", None)
        if session is not None:
            sessions.destroy(session.session_id)
        raise ApiError("Failed to get access token", clear_cookie=True) from e


@router.get("/events")
def get_calendar_events(
    request: Request,
    response: Response,
    time_min: Optional[str] = Query(None, alias="timeMin"),
    time_max: Optional[str] = Query(None, alias="timeMax"),
    max_results: int = Query(100, alias="maxResults", ge=1, le=2500),
    single_events: str = Query("true", alias="singleEvents"),
    order_by: str = Query("startTime", alias="orderBy"),
    calendar_id: str = Query("primary", alias="calendarId"),
    tokens: TokenManager = Depends(get_token_manager),
    sessions: SessionManager = Depends(get_session_manager),
    google: GoogleClient = Depends(get_google_client),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """
    Events between timeMin and timeMax (default: now to one month from now),
    expanded into single instances and ordered by start time.
    Returns {events, timeZone, summary}.
    """
    access_token = access_token_or_sign_out(request, response, tokens, sessions)

    now = clock()
    params = {
        "timeMin": time_min or rfc3339(now),
        "timeMax": time_max or rfc3339(add_months(now, 1)),
        "maxResults": str(max_results),
        "singleEvents": single_events,
        "orderBy": order_by,
    }
    try:
        data = google.list_events(access_token, calendar_id, params)
    except UpstreamError as e:
        raise UpstreamError(
            "Failed to fetch calendar data",
            upstream_status=e.upstream_status,
            details=e.details,
        ) from e
    return success(calendar_payload(data))
