"""
Authentication utilities: password hashing, JWT session tokens and the
request guards built on them
"""
import hashlib
import logging
import secrets
import string
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import bcrypt
from jose import JWTError, jwt
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from .config import Config
from .db import get_db, User, Role, UserStore
from .exceptions import ValidationError, AuthError, AuthorizationError, ConflictError
from .services.password_validator import PasswordValidator

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

http_bearer = HTTPBearer(auto_error=False)

RANDOM_PASSWORD_CHARSET = string.ascii_letters + string.digits + "!@#$%^&*()_+"


def _prepare_secret(secret: str) -> bytes:
    """Encode for bcrypt, pre-hashing anything over bcrypt's 72-byte limit"""
    secret_bytes = secret.encode("utf-8")
    if len(secret_bytes) > 72:
        secret_bytes = hashlib.sha256(secret_bytes).hexdigest().encode("utf-8")
    return secret_bytes


def get_password_hash(password: str, rounds: int = 12) -> str:
    """One-way salted hash, used for account passwords and reset codes"""
    if not password:
        raise ValueError("Password cannot be empty")
    hashed = bcrypt.hashpw(_prepare_secret(password), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Compare a candidate against a stored hash"""
    if not plain_password or not hashed_password:
        return False
    try:
        return bcrypt.checkpw(_prepare_secret(plain_password), hashed_password.encode("utf-8"))
    except ValueError as e:
        logger.warning(f"Password verification failed: {type(e).__name__}")
        return False


def generate_random_string(length: int) -> str:
    return "".join(secrets.choice(RANDOM_PASSWORD_CHARSET) for _ in range(length))


def create_access_token(user_id: int, secret_key: str, expires_minutes: int) -> str:
    """
    Create a signed session token

    `iat` keeps sub-second precision so a token issued right after a password
    change is not mistaken for one issued before it.
    """
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": str(user_id),
        "iat": now.timestamp(),
        "exp": now + timedelta(minutes=expires_minutes),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(to_encode, secret_key, algorithm=ALGORITHM)


def verify_token(token: str, secret_key: str) -> Optional[dict]:
    """Verify signature and expiry, returning the claims or None"""
    try:
        return jwt.decode(token, secret_key, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.warning("Token verification failed: Token has expired")
        return None
    except JWTError as e:
        logger.warning(f"Token verification failed: {type(e).__name__} - {str(e)}")
        return None


class CredentialIssuer:
    """Issues and checks session credentials for users"""

    def __init__(self, db: Session, config: Config, password_validator: Optional[PasswordValidator] = None):
        self.users = UserStore(db)
        self.config = config
        self.password_validator = password_validator or PasswordValidator()

    def issue_token(self, user: User) -> str:
        return create_access_token(user.id, self.config.SECRET_KEY, self.config.ACCESS_TOKEN_EXPIRE_MINUTES)

    def hash_password(self, password: str) -> str:
        return get_password_hash(password, rounds=self.config.BCRYPT_ROUNDS)

    def sign_up(self, email: str, password: str, user_name: Optional[str] = None) -> Tuple[User, str]:
        if not email or not password:
            raise ValidationError("Please provide email and password")
        if self.users.find_by_email(email):
            logger.warning(f"Signup failed: Email already registered - {email}")
            raise ConflictError("Email already registered")

        self.password_validator.validate_or_raise(password)

        user = self.users.create(
            email=email,
            user_name=user_name,
            hashed_password=self.hash_password(password),
            role=Role.USER.value,
            provider="email",
        )
        logger.info(f"User created successfully with ID: {user.id}")
        return user, self.issue_token(user)

    def sign_in(self, email: Optional[str], password: Optional[str]) -> Tuple[User, str]:
        if not email:
            raise ValidationError("Please provide email")
        if not password:
            raise ValidationError("Please provide password")

        user = self.users.find_by_email(email)
        if user is None or not verify_password(password, user.hashed_password):
            raise AuthError("Incorrect email or password")

        return user, self.issue_token(user)

    def external_sign_in(self, email: str, user_name: Optional[str] = None, provider: str = "google") -> Tuple[User, str]:
        """Sign in a user whose email was verified by an identity provider"""
        user = self.users.find_by_email(email)
        if user is None:
            user = self.users.create(
                email=email,
                user_name=user_name,
                hashed_password=self.hash_password(generate_random_string(15)),
                role=Role.USER.value,
                provider=provider,
            )
            logger.info(f"User {user.id} created on first {provider} sign-in")
        return user, self.issue_token(user)

    def change_password(self, user: User, new_password: str) -> User:
        """Hash and store a new password; earlier tokens stop working"""
        self.password_validator.validate_or_raise(new_password)
        user.hashed_password = self.hash_password(new_password)
        user.password_changed_at = datetime.utcnow()
        return user

    def protect(self, token: Optional[str]) -> User:
        if not token or not token.strip():
            raise AuthError("You are not logged in! Please log in to get access.")

        payload = verify_token(token.strip(), self.config.SECRET_KEY)
        if payload is None:
            raise AuthError("Invalid or expired authentication token. Please log in again.")

        try:
            user_id = int(payload.get("sub"))
            issued_at = datetime.fromtimestamp(float(payload["iat"]), tz=timezone.utc).replace(tzinfo=None)
        except (KeyError, TypeError, ValueError):
            raise AuthError("Invalid token format")

        user = self.users.find_by_id(user_id)
        if user is None:
            raise AuthError("The user belonging to this token does no longer exist.")

        if user.changed_password_after(issued_at):
            logger.warning(f"Authentication failed: Token for user {user_id} issued before password change")
            raise AuthError("User recently changed password. Please login again.")

        return user


def get_config(request: Request) -> Config:
    return request.app.state.config


def get_auth_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer)) -> Optional[str]:
    """Session tokens travel only in the Authorization: Bearer header"""
    if credentials and credentials.credentials:
        return credentials.credentials
    return None


def get_credential_issuer(db: Session = Depends(get_db), config: Config = Depends(get_config)) -> CredentialIssuer:
    return CredentialIssuer(db, config)


def get_current_user(
    token: Optional[str] = Depends(get_auth_token),
    issuer: CredentialIssuer = Depends(get_credential_issuer),
) -> User:
    """Resolve the authenticated user for the request"""
    return issuer.protect(token)


def restrict_to(*roles: str):
    """Dependency factory allowing only users whose role is in `roles`"""
    allowed = {role.value if isinstance(role, Role) else role for role in roles}

    def role_guard(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            logger.warning(f"User {current_user.id} with role {current_user.role} denied, needs {sorted(allowed)}")
            raise AuthorizationError("You do not have permission to perform this action")
        return current_user

    return role_guard
