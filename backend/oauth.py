import logging
from typing import Optional
from urllib.parse import urlencode

import httpx

from config import Settings

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


class OAuthError(Exception):
    pass


class GoogleOAuth:
    """Google OAuth 2.0 authorization-code client."""

    def __init__(self, client_id: str, client_secret: str, callback_url: str, timeout: float = 10.0):
        self.client_id = client_id
        self.client_secret = client_secret
        self.callback_url = callback_url
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["GoogleOAuth"]:
        if not settings.google_enabled:
            logger.warning("Google OAuth not configured. Set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET")
            return None
        return cls(settings.google_client_id, settings.google_client_secret, settings.google_callback_url)

    def authorization_url(self) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.callback_url,
            "response_type": "code",
            "scope": "openid profile email",
            "prompt": "select_account",
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def fetch_profile(self, code: str) -> dict:
        """Exchange an authorization code for the user's profile.

        Returns a dict with ``id``, ``email``, ``name`` and ``picture``.
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                token_res = await client.post(
                    TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "redirect_uri": self.callback_url,
                        "grant_type": "authorization_code",
                    },
                )
                token_res.raise_for_status()
                access_token = token_res.json()["access_token"]
                info_res = await client.get(USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"})
                info_res.raise_for_status()
            except (httpx.HTTPError, KeyError) as e:
                raise OAuthError("Google authentication failed") from e
        info = info_res.json()
        if not info.get("sub") or not info.get("email"):
            raise OAuthError("Google profile is missing an id or email")
        return {
            "id": info["sub"],
            "email": info["email"].lower(),
            "name": info.get("name") or info["email"].split("@")[0],
            "picture": info.get("picture", ""),
        }
