"""
Remote access credentials.

The interactive consent flow lives outside this package. What arrives here
is either an access token obtained elsewhere, or a refresh token that lets
the session renew itself silently.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

import requests

from bikebuilders.domain.errors import AuthError, NetworkError

logger = logging.getLogger(__name__)

# Renew slightly before the server would reject the token
EXPIRY_SKEW = timedelta(seconds=60)


@dataclass
class AccessCredential:
    """A bearer token and when it stops working (None = unknown)."""
    access_token: str
    expires_at: datetime | None = None
    account: str | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at - EXPIRY_SKEW

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "account": self.account,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AccessCredential":
        expires_at = data.get("expires_at")
        return cls(
            access_token=data["access_token"],
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
            account=data.get("account"),
        )


class CredentialProvider(Protocol):
    """Source of access credentials for the remote store."""

    supports_refresh: bool

    def acquire(self) -> AccessCredential:
        """Obtain a credential. Raises AuthError or NetworkError."""
        ...

    def refresh(self, credential: AccessCredential) -> AccessCredential:
        """Silently renew an expired credential. Raises AuthError."""
        ...


class StaticTokenProvider:
    """Hands out a token that was obtained elsewhere. No renewal."""

    supports_refresh = False

    def __init__(self, access_token: str, account: str | None = None):
        self._token = access_token
        self._account = account

    def acquire(self) -> AccessCredential:
        if not self._token:
            raise AuthError("No access token configured")
        return AccessCredential(access_token=self._token, account=self._account)

    def refresh(self, credential: AccessCredential) -> AccessCredential:
        raise AuthError("Static token cannot be renewed; sign in again")


class RefreshTokenProvider:
    """
    OAuth2 refresh-token grant.

    Supports:
    - Initial acquisition from a stored refresh token
    - Silent renewal when the access token expires
    """

    supports_refresh = True

    def __init__(
        self,
        client_id: str,
        refresh_token: str,
        client_secret: str | None = None,
        token_url: str = "https://oauth2.googleapis.com/token",
        timeout: int = 30,
        session: requests.Session | None = None,
    ):
        """
        Args:
            client_id: OAuth client id
            refresh_token: Long-lived refresh token from the consent flow
            client_secret: OAuth client secret (installed-app clients may omit it)
            token_url: Token endpoint
            timeout: Request timeout in seconds
            session: Optional requests session (tests inject one)
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.token_url = token_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def acquire(self) -> AccessCredential:
        data = {
            "grant_type": "refresh_token",
            "client_id": self.client_id,
            "refresh_token": self.refresh_token,
        }
        if self.client_secret:
            data["client_secret"] = self.client_secret

        try:
            response = self.session.post(self.token_url, data=data, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.warning("Token request failed: %s", e)
            raise NetworkError(f"Token request failed: {e}") from e

        if response.status_code in (400, 401):
            raise AuthError(f"Refresh token rejected ({response.status_code})")
        if not response.ok:
            raise NetworkError(
                f"Token endpoint returned {response.status_code}",
                status_code=response.status_code,
            )

        payload = response.json()
        token = payload.get("access_token")
        if not token:
            raise AuthError("Token endpoint returned no access token")
        expires_in = payload.get("expires_in")
        expires_at = (
            datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))
            if expires_in else None
        )
        logger.debug("Obtained access token (expires %s)", expires_at)
        return AccessCredential(access_token=token, expires_at=expires_at)

    def refresh(self, credential: AccessCredential) -> AccessCredential:
        renewed = self.acquire()
        renewed.account = credential.account
        return renewed
