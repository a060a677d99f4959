"""
Pydantic models for Google payloads, session state and request bodies.
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class TokenResponse(BaseModel):
    """
    Token payload from Google's token endpoint.

    refresh_token is only sent on the first grant (and occasionally on
    refresh); the session keeps the original one when a refresh omits it.
    created_at is stamped by the server when this access token was issued and
    is never read from Google's JSON.
    """
    model_config = ConfigDict(extra="ignore")

    access_token: str
    expires_in: int = 0
    token_type: str = ""
    refresh_token: Optional[str] = None
    refresh_token_expires_in: Optional[int] = None
    scope: Optional[str] = None
    id_token: Optional[str] = None
    created_at: Optional[datetime] = None


class GoogleUserInfo(BaseModel):
    """Profile from the oauth2/v2/userinfo endpoint."""
    model_config = ConfigDict(extra="ignore")

    id: str
    email: str = ""
    verified_email: bool = False
    name: str = ""
    given_name: str = ""
    family_name: str = ""
    picture: str = ""


class SessionData(BaseModel):
    token_response: Optional[TokenResponse] = None
    user_info: Optional[GoogleUserInfo] = None


class Session(BaseModel):
    """
    Server-side session record. Only session_id travels to the browser.

    Dates are timezone-aware UTC; ttl is expiry_date in epoch seconds and is
    what the sweeper uses to evict abandoned rows.
    """
    session_id: str
    user_id: str
    data: SessionData = Field(default_factory=SessionData)
    create_date: datetime
    update_date: datetime
    expiry_date: datetime
    ttl: int

    @property
    def token_response(self) -> Optional[TokenResponse]:
        return self.data.token_response


class GoogleLoginBody(BaseModel):
    """Request body for googleLogin; the SPA sends redirectUri."""
    model_config = ConfigDict(populate_by_name=True)

    code: str = ""
    redirect_uri: str = Field(
        default="",
        validation_alias=AliasChoices("redirectUri", "redirect_uri"),
    )


def calendar_payload(data: dict[str, Any]) -> dict[str, Any]:
    """Project a Calendar events.list response onto the fields the client uses."""
    return {
        "events": data.get("items") or [],
        "timeZone": data.get("timeZone", ""),
        "summary": data.get("summary", ""),
    }
