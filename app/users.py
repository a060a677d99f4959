"""
User router: the signed-in user's Google profile, with phone numbers when the
People API grants them.
"""
import logging

from fastapi import APIRouter, Depends, Request, Response

from deps import get_google_client, get_session_manager, get_token_manager, require_session
from errors import UpstreamError
from events import access_token_or_sign_out
from responses import success
from services.google_client import GoogleClient
from sessions import SessionManager
from tokens import TokenManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user", dependencies=[Depends(require_session)])

PHONE_NUMBERS_ERROR = "Unable to fetch phone numbers, the phone number permission may be missing"


@router.post("/userProfile")
def user_profile(
    request: Request,
    response: Response,
    tokens: TokenManager = Depends(get_token_manager),
    sessions: SessionManager = Depends(get_session_manager),
    google: GoogleClient = Depends(get_google_client),
):
    """Profile fields plus phone_numbers, or phone_numbers_error when they are unavailable."""
    access_token = access_token_or_sign_out(request, response, tokens, sessions)
    try:
        user_info = google.get_user_info(access_token)
    except UpstreamError as e:
        raise UpstreamError(
            "Failed to get user info",
            upstream_status=e.upstream_status,
            details=e.details,
        ) from e

    profile = user_info.model_dump()
    try:
        phone_numbers = google.get_phone_numbers(access_token)
    except UpstreamError as e:
        logger.warning("Phone numbers unavailable: %s", e.message)
        phone_numbers = []

    if phone_numbers:
        profile["phone_numbers"] = phone_numbers
    else:
        profile["phone_numbers_error"] = PHONE_NUMBERS_ERROR
    return success(profile)
