"""
Password reset flow
One-time code by email, verified against a stored bcrypt hash
"""
import logging
import secrets
import string
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from ..auth import CredentialIssuer, get_password_hash, verify_password
from ..config import Config
from ..db import User, UserStore
from ..exceptions import (
    ValidationError, AuthError, NotFoundError, ExpiredError, StateError, DeliveryError
)
from .email_provider import EmailProvider, build_password_reset_email

logger = logging.getLogger(__name__)

RESET_CODE_ALPHABET = string.ascii_letters + string.digits


def generate_reset_code(length: int) -> str:
    return "".join(secrets.choice(RESET_CODE_ALPHABET) for _ in range(length))


class PasswordResetService:
    """
    Forgot-password flow for a single user

    A pending reset is the (hash, expiry) pair on the user row. Expiry is
    checked before the pending state, so an expired code reports ExpiredError
    even when the code itself would match.
    """

    def __init__(self, db: Session, config: Config, email_provider: EmailProvider, issuer: CredentialIssuer):
        self.users = UserStore(db)
        self.config = config
        self.email_provider = email_provider
        self.issuer = issuer

    def request_reset(self, email: str) -> None:
        """Store a fresh code hash on the user and mail them the plaintext code"""
        user = self.users.find_by_email(email)
        if user is None:
            raise NotFoundError("There is no user with this email address")

        code = generate_reset_code(self.config.PASSWORD_RESET_CODE_LENGTH)
        user.password_reset_token = get_password_hash(code, rounds=self.config.BCRYPT_ROUNDS)
        user.password_reset_expires = datetime.utcnow() + timedelta(minutes=self.config.PASSWORD_RESET_TTL_MINUTES)
        user.password_reset_attempts = 0
        self.users.save(user)

        try:
            message = build_password_reset_email(user.email, code, self.config.PASSWORD_RESET_TTL_MINUTES)
            self.email_provider.send(message)
        except Exception as e:
            # No pending reset may outlive a mail that was never sent
            self._clear_pending(user)
            self.users.save(user)
            logger.error(f"Password reset for user {user.id} rolled back: email not delivered ({type(e).__name__})")
            if isinstance(e, DeliveryError):
                raise
            raise DeliveryError("There was an error sending the email") from e

        logger.info(f"Password reset code sent to user {user.id}")

    def verify_reset(self, email: str, code: Optional[str]) -> bool:
        """Check a code without consuming it"""
        self._check_code(email, code)
        return True

    def reset_password(self, email: str, code: Optional[str], new_password: str) -> Tuple[User, str]:
        """Consume the code, set the new password and issue a fresh token"""
        user = self._check_code(email, code)

        self.issuer.change_password(user, new_password)
        self._clear_pending(user)
        self.users.save(user)
        logger.info(f"Password reset completed for user {user.id}")

        return user, self.issuer.issue_token(user)

    def _check_code(self, email: str, code: Optional[str]) -> User:
        user = self.users.find_by_email(email)
        if user is None:
            raise NotFoundError("There is no user with this email")

        if user.password_reset_expires is not None and user.password_reset_expires < datetime.utcnow():
            raise ExpiredError("Code has expired. Please send email again")

        if not user.has_pending_reset:
            raise StateError("Please execute forgot password procedure first")

        if not code:
            raise ValidationError("Code can't be empty")

        if not verify_password(code, user.password_reset_token):
            self._record_failed_attempt(user)
            raise AuthError("Invalid code. Please try again.")

        return user

    def _record_failed_attempt(self, user: User) -> None:
        user.password_reset_attempts = (user.password_reset_attempts or 0) + 1
        if user.password_reset_attempts >= self.config.PASSWORD_RESET_MAX_ATTEMPTS:
            logger.warning(f"Too many wrong reset codes for user {user.id}, discarding pending reset")
            self._clear_pending(user)
        self.users.save(user)

    @staticmethod
    def _clear_pending(user: User) -> None:
        user.password_reset_token = None
        user.password_reset_expires = None
        user.password_reset_attempts = 0
