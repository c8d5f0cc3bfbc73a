"""
External identity provider
Verifies Google ID tokens posted by the frontend sign-in button
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

import httpx

from ..config import Config
from ..exceptions import AuthError, GatewayError

logger = logging.getLogger(__name__)

GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"
GOOGLE_ISSUERS = {"accounts.google.com", "https://accounts.google.com"}


class IdentityProvider(ABC):
    """Turns a provider-issued ID token into a verified email and display name"""

    name: str = ""

    @abstractmethod
    def verify(self, id_token: str) -> Dict[str, Optional[str]]:
        """
        Verify `id_token`

        Returns:
            {"email": ..., "name": ...}

        Raises:
            AuthError: token rejected by the provider or issued for another client
            GatewayError: provider unreachable
        """
        pass


class GoogleIdentityProvider(IdentityProvider):
    """Google sign-in, verified against Google's tokeninfo endpoint"""

    name = "google"

    def __init__(self, client_id: Optional[str], timeout: float = 10.0):
        self.client_id = client_id
        self.timeout = timeout

    def verify(self, id_token: str) -> Dict[str, Optional[str]]:
        if not id_token:
            raise AuthError("Missing Google ID token")

        try:
            response = httpx.get(GOOGLE_TOKENINFO_URL, params={"id_token": id_token}, timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.error(f"Google tokeninfo request failed: {e}")
            raise GatewayError("Could not reach the identity provider") from e

        if response.status_code >= 500:
            logger.error(f"Google tokeninfo returned {response.status_code}")
            raise GatewayError("Identity provider error")
        if response.status_code != 200:
            raise AuthError("Invalid Google ID token")

        claims = response.json()
        if self.client_id and claims.get("aud") != self.client_id:
            logger.warning("Google ID token issued for a different client")
            raise AuthError("Invalid Google ID token")
        if claims.get("iss") and claims["iss"] not in GOOGLE_ISSUERS:
            raise AuthError("Invalid Google ID token")
        if str(claims.get("email_verified", "")).lower() != "true" or not claims.get("email"):
            raise AuthError("Google account email is not verified")

        return {"email": claims["email"].lower(), "name": claims.get("name")}


def create_identity_provider(config: Config) -> IdentityProvider:
    if not config.GOOGLE_CLIENT_ID:
        logger.warning("GOOGLE_CLIENT_ID not set - Google sign-in will accept tokens for any client")
    return GoogleIdentityProvider(config.GOOGLE_CLIENT_ID, timeout=config.GATEWAY_TIMEOUT)
