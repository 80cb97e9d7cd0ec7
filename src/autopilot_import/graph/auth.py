"""Client-credentials token acquisition for the device-management API."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from loguru import logger

from ..config import ImportConfig
from ..exceptions import AuthenticationError, GraphRequestError
from .transport import Opener, send_request


@dataclass
class AuthToken:
    """Bearer token with its expiry time."""

    token: str
    expires_at: datetime
    token_type: str = "Bearer"

    def to_header(self) -> str:
        """Get authorization header value."""
        return f"{self.token_type} {self.token}"


class TokenClient:
    """Obtains an app-only access token from the identity platform."""

    def __init__(self, config: ImportConfig, opener: Opener = urlopen):
        self.config = config
        self._opener = opener

    def acquire_token(self) -> AuthToken:
        """Exchange the client credentials for an access token.

        Raises:
            AuthenticationError: the exchange failed or returned no token
        """
        payload = urlencode(
            {
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "scope": self.config.scope,
                "grant_type": "client_credentials",
            }
        ).encode("utf-8")

        request = Request(
            self.config.token_url,
            data=payload,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            method="POST",
        )

        logger.info(f"Requesting access token for tenant {self.config.tenant_id}")

        try:
            _, data = send_request(request, self.config.request_timeout_seconds, self._opener)
        except GraphRequestError as e:
            message = f"Token request failed: {e}"
            if e.status in (400, 401):
                message += " (check tenant ID, client ID and secret)"
            raise AuthenticationError(message) from e

        token = data.get("access_token")
        if not token:
            raise AuthenticationError("No access token in response")

        expires_in = data.get("expires_in", 3600)
        try:
            expires_in = int(expires_in)
        except (TypeError, ValueError):
            expires_in = 3600

        expires_at = datetime.now() + timedelta(seconds=expires_in)
        auth_token = AuthToken(token=token, expires_at=expires_at, token_type=data.get("token_type") or "Bearer")

        logger.info(f"Successfully authenticated, token expires at {expires_at:%H:%M:%S}")
        return auth_token
