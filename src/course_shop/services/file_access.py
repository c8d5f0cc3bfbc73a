"""
File sharing service
Grants read access on Google Drive files using a service account
"""
import logging
import time
from typing import Optional

import httpx
from jose import jwt
from jose.exceptions import JOSEError

from ..config import Config
from ..exceptions import GatewayError

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
DRIVE_SCOPE = "https://www.googleapis.com/auth/drive"
DRIVE_PERMISSIONS_URL = "https://www.googleapis.com/drive/v3/files/{file_id}/permissions"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"


class FileAccessService:
    """
    Share course files with buyers

    Access tokens are obtained with a signed service-account assertion and
    cached until shortly before they expire.
    """

    def __init__(self, service_account_email: Optional[str], private_key: Optional[str], timeout: float = 10.0):
        self.service_account_email = service_account_email
        self.private_key = private_key
        self.timeout = timeout
        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0.0

    def _build_assertion(self, now: int) -> str:
        claims = {
            "iss": self.service_account_email,
            "scope": DRIVE_SCOPE,
            "aud": TOKEN_URL,
            "iat": now,
            "exp": now + 3600,
        }
        try:
            return jwt.encode(claims, self.private_key, algorithm="RS256")
        except JOSEError as e:
            logger.error(f"Could not sign service account assertion: {e}")
            raise GatewayError("File sharing service is misconfigured") from e

    def _get_access_token(self) -> str:
        now = int(time.time())
        if self._access_token and now < self._token_expires_at - 60:
            return self._access_token

        if not self.service_account_email or not self.private_key:
            raise GatewayError("File sharing service is not configured")

        try:
            response = httpx.post(
                TOKEN_URL,
                data={"grant_type": JWT_BEARER_GRANT, "assertion": self._build_assertion(now)},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"Service account token request failed: {e}")
            raise GatewayError("Could not reach the file sharing service") from e

        if response.status_code != 200:
            logger.error(f"Service account token rejected: {response.status_code} {response.text}")
            raise GatewayError("File sharing service rejected the credentials")

        body = response.json()
        self._access_token = body["access_token"]
        self._token_expires_at = now + int(body.get("expires_in", 3600))
        return self._access_token

    def grant_read(self, file_id: str, email: str) -> str:
        """
        Give `email` reader access to `file_id`

        Returns:
            the permission id created on the file
        """
        if not file_id:
            raise GatewayError("Course has no file to share")

        token = self._get_access_token()
        try:
            response = httpx.post(
                DRIVE_PERMISSIONS_URL.format(file_id=file_id),
                params={"fields": "id"},
                headers={"Authorization": f"Bearer {token}"},
                json={"role": "reader", "type": "user", "emailAddress": email},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"Drive permission request failed for file {file_id}: {e}")
            raise GatewayError("Could not reach the file sharing service") from e

        if response.status_code >= 400:
            logger.error(f"Drive refused permission on file {file_id}: {response.status_code} {response.text}")
            raise GatewayError(
                "File sharing service refused the grant",
                details={"status_code": response.status_code},
            )

        permission_id = response.json().get("id")
        logger.info(f"Granted read access on file {file_id} to {email} (permission {permission_id})")
        return permission_id


def create_file_access_service(config: Config) -> FileAccessService:
    if not config.file_sharing_configured:
        logger.warning("Service account not configured - file access grants will fail")
    return FileAccessService(
        config.SERVICE_ACCOUNT_EMAIL,
        config.SERVICE_ACCOUNT_PRIVATE_KEY,
        timeout=config.GATEWAY_TIMEOUT,
    )
