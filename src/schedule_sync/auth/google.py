"""Google OAuth token refresh.

Access tokens are obtained by the sign-in flow elsewhere and stored in the
user's profile. The sync only needs to exchange a stored refresh token for a
new access token when the old one has expired.

## OAuth Endpoint

- Token: https://oauth2.googleapis.com/token (grant_type=refresh_token)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import httpx

from schedule_sync.config import Settings, get_settings
from schedule_sync.errors import RefreshError

logger = logging.getLogger(__name__)


@dataclass
class GoogleTokens:
    """OAuth tokens from Google."""

    access_token: str
    refresh_token: str | None
    token_type: str
    expires_at: datetime | None
    scope: str


class GoogleOAuth:
    """Refreshes Google access tokens.

    Example:
        ```python
        oauth = GoogleOAuth(settings=settings)
        tokens = await oauth.refresh_access_token(refresh_token)
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Google OAuth client.

        Args:
            settings: Client id/secret and token endpoint (or from environment)
            transport: Optional httpx transport, used by tests
        """
        settings = settings or get_settings()

        self.client_id = settings.google_client_id
        self.client_secret = settings.google_client_secret
        self.token_url = settings.google_token_url
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        """Check if Google OAuth is properly configured."""
        return bool(self.client_id and self.client_secret)

    async def refresh_access_token(self, refresh_token: str | None) -> GoogleTokens:
        """Exchange a refresh token for a new access token.

        Args:
            refresh_token: The stored refresh token

        Returns:
            New GoogleTokens; the refresh token is carried over when Google
            does not issue a new one

        Raises:
            RefreshError: Missing refresh token or configuration, a non-200
                response (e.g. revoked consent), or no access token returned
        """
        if not refresh_token:
            raise RefreshError()

        if not self.is_configured:
            logger.error("Missing Google client credentials for token refresh.")
            raise RefreshError()

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    self.token_url,
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "refresh_token": refresh_token,
                        "grant_type": "refresh_token",
                    },
                )
        except httpx.HTTPError as e:
            logger.error(f"Error refreshing Google token: {e}")
            raise RefreshError() from e

        if response.status_code != 200:
            logger.error(f"Token refresh failed: {response.text}")
            raise RefreshError(
                status_code=response.status_code, response_body=response.text
            )

        data = response.json()
        if not data.get("access_token"):
            logger.error("No access_token in refresh response.")
            raise RefreshError(status_code=response.status_code)

        expires_at = None
        if "expires_in" in data:
            expires_at = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(
                seconds=int(data["expires_in"])
            )

        return GoogleTokens(
            access_token=data["access_token"],
            # Google may not return a new refresh token
            refresh_token=data.get("refresh_token", refresh_token),
            token_type=data.get("token_type", "Bearer"),
            expires_at=expires_at,
            scope=data.get("scope", ""),
        )
