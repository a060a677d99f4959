"""
Google client: token endpoint, userinfo, People and Calendar API calls.

Business logic stays in the token manager and routers. Every call goes through
one process-wide requests.Session, uses the response as a context manager so
the body is closed on every path, and raises UpstreamError on non-2xx or
transport failure. No retries.
"""
import logging
from typing import Any, Optional
from urllib.parse import quote

import requests

from config import (
    CALENDAR_REQUEST_TIMEOUT,
    GOOGLE_CALENDAR_URL,
    GOOGLE_PEOPLE_URL,
    GOOGLE_TOKEN_URL,
    GOOGLE_USERINFO_URL,
    TOKEN_REQUEST_TIMEOUT,
)
from errors import UpstreamError
from schemas import GoogleUserInfo, TokenResponse

logger = logging.getLogger(__name__)


def _decode_body(resp: requests.Response) -> Any:
    """JSON body if it parses, else the raw text."""
    try:
        return resp.json()
    except ValueError:
        return resp.text


class GoogleClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        http: Optional[requests.Session] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.http = http or requests.Session()

    def close(self) -> None:
        self.http.close()

    # --- Token endpoint ---

    def exchange_code(self, code: str, redirect_uri: str) -> TokenResponse:
        """Exchange an authorization code for the first token response of a session."""
        return self._token_request({
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        })

    def refresh(self, refresh_token: str) -> TokenResponse:
        """Mint a new access token. The response usually has no refresh_token."""
        return self._token_request({
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        })

    def _token_request(self, form: dict) -> TokenResponse:
        grant_type = form["grant_type"]
        try:
            with self.http.post(
                GOOGLE_TOKEN_URL,
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=TOKEN_REQUEST_TIMEOUT,
            ) as resp:
                body = _decode_body(resp)
                status = resp.status_code
        except requests.RequestException as e:
            raise UpstreamError(f"Token request ({grant_type}) could not reach Google") from e

        if status != 200:
            if isinstance(body, dict) and "error" in body:
                details = {
                    "error": body.get("error"),
                    "error_description": body.get("error_description", ""),
                }
            else:
                details = body
            raise UpstreamError(
                f"Token request ({grant_type}) failed with status {status}",
                upstream_status=status,
                details=details,
            )
        if not isinstance(body, dict) or not body.get("access_token"):
            raise UpstreamError(
                "Token response did not contain an access_token",
                upstream_status=status,
            )
        # created_at is ours to stamp
        body.pop("created_at", None)
        return TokenResponse.model_validate(body)

    # --- Bearer APIs ---

    def get_user_info(self, access_token: str) -> GoogleUserInfo:
        data = self._get_json(GOOGLE_USERINFO_URL, access_token, "userinfo")
        return GoogleUserInfo.model_validate(data)

    def get_phone_numbers(self, access_token: str) -> list[str]:
        """Phone numbers from the People API; needs the phone number scope."""
        data = self._get_json(
            GOOGLE_PEOPLE_URL,
            access_token,
            "people",
            params={"personFields": "phoneNumbers"},
        )
        return [p["value"] for p in data.get("phoneNumbers", []) if p.get("value")]

    def list_events(self, access_token: str, calendar_id: str, params: dict) -> dict:
        """
        events.list on one calendar. params carries timeMin, timeMax,
        maxResults, singleEvents and orderBy as Google expects them.
        """
        url = f"{GOOGLE_CALENDAR_URL}/{quote(calendar_id, safe='')}/events"
        return self._get_json(
            url,
            access_token,
            "calendar",
            params=params,
            timeout=CALENDAR_REQUEST_TIMEOUT,
        )

    def _get_json(
        self,
        url: str,
        access_token: str,
        operation: str,
        params: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> dict:
        try:
            with self.http.get(
                url,
                headers={"Authorization": f"Bearer {access_token}"},
                params=params,
                timeout=timeout,
            ) as resp:
                body = _decode_body(resp)
                status = resp.status_code
        except requests.RequestException as e:
            raise UpstreamError(f"Google {operation} request failed") from e

        if status != 200:
            raise UpstreamError(
                f"Google {operation} request failed with status {status}",
                upstream_status=status,
                details=body,
            )
        if not isinstance(body, dict):
            raise UpstreamError(f"Google {operation} response is not a JSON object", upstream_status=status)
        return body
