"""
Users API routes: sign up, sign in, password reset and profile
"""
import logging

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from .auth import CredentialIssuer, get_config, get_credential_issuer, get_current_user, restrict_to
from .config import Config
from .db import get_db, User, Role, UserStore
from .exceptions import NotFoundError
from .schemas import (
    SignupRequest, SigninRequest, GoogleAuthRequest, ForgotPasswordRequest,
    CheckTokenRequest, ResetPasswordRequest, UpdateMeRequest, AdminUserUpdate,
)
from .services.identity_provider import IdentityProvider
from .services.password_reset_service import PasswordResetService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["users"])


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider


def get_password_reset_service(
    request: Request,
    db: Session = Depends(get_db),
    config: Config = Depends(get_config),
    issuer: CredentialIssuer = Depends(get_credential_issuer),
) -> PasswordResetService:
    return PasswordResetService(db, config, request.app.state.email_provider, issuer)


def _token_response(user: User, token: str) -> dict:
    return {"status": "success", "token": token, "data": {"user": user.to_dict()}}


@router.post("/signup", status_code=status.HTTP_201_CREATED)
def signup(body: SignupRequest, issuer: CredentialIssuer = Depends(get_credential_issuer)):
    """Register a new user with email and password"""
    user, token = issuer.sign_up(body.email, body.password, user_name=body.user_name)
    return _token_response(user, token)


@router.post("/signin")
def signin(body: SigninRequest, issuer: CredentialIssuer = Depends(get_credential_issuer)):
    """Sign in with email and password"""
    user, token = issuer.sign_in(body.email, body.password)
    logger.info(f"User {user.id} signed in")
    return _token_response(user, token)


@router.post("/googleAuth")
def google_auth(
    body: GoogleAuthRequest,
    issuer: CredentialIssuer = Depends(get_credential_issuer),
    identity_provider: IdentityProvider = Depends(get_identity_provider),
):
    """Sign in with a Google ID token, creating the account on first use"""
    identity = identity_provider.verify(body.id_token)
    user, token = issuer.external_sign_in(identity["email"], identity.get("name"), provider=identity_provider.name)
    return _token_response(user, token)


@router.post("/forgotPassword")
def forgot_password(body: ForgotPasswordRequest, service: PasswordResetService = Depends(get_password_reset_service)):
    service.request_reset(body.email)
    return {"status": "success", "message": "Token sent to email"}


@router.post("/checkToken")
def check_token(body: CheckTokenRequest, service: PasswordResetService = Depends(get_password_reset_service)):
    service.verify_reset(body.email, body.code)
    return {"status": "success", "message": "Code is valid"}


@router.patch("/resetPassword")
def reset_password(body: ResetPasswordRequest, service: PasswordResetService = Depends(get_password_reset_service)):
    user, token = service.reset_password(body.email, body.code, body.password)
    return _token_response(user, token)


@router.get("/currentUser")
def current_user(user: User = Depends(get_current_user)):
    return {"status": "success", "data": {"user": user.to_dict()}}


@router.patch("/updateMe")
def update_me(
    body: UpdateMeRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update profile fields; password changes go through the reset flow"""
    changes = body.model_dump(exclude_unset=True)
    for key, value in changes.items():
        setattr(user, key, value)
    user = UserStore(db).save(user)
    return {"status": "success", "data": {"user": user.to_dict()}}


@router.get("/")
def list_users(
    limit: int = 50,
    offset: int = 0,
    _: User = Depends(restrict_to(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    users = UserStore(db).find_all(limit=min(max(limit, 1), 200), offset=max(offset, 0))
    return {"status": "success", "results": len(users), "data": {"users": [u.to_dict() for u in users]}}


@router.get("/{user_id}")
def get_user(
    user_id: int,
    _: User = Depends(restrict_to(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    user = UserStore(db).find_by_id(user_id)
    if user is None:
        raise NotFoundError("No user found with this ID")
    return {"status": "success", "data": {"user": user.to_dict()}}


@router.patch("/{user_id}")
def update_user(
    user_id: int,
    body: AdminUserUpdate,
    admin: User = Depends(restrict_to(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    """Admin edit of another account's name or role"""
    users = UserStore(db)
    user = users.find_by_id(user_id)
    if user is None:
        raise NotFoundError("No user found with this ID")

    for key, value in body.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(user, key, value)
    user = users.save(user)
    logger.info(f"User {user_id} updated by admin {admin.id}")
    return {"status": "success", "data": {"user": user.to_dict()}}


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    admin: User = Depends(restrict_to(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    users = UserStore(db)
    user = users.find_by_id(user_id)
    if user is None:
        raise NotFoundError("No user found with this ID")
    users.delete(user)
    logger.info(f"User {user_id} deleted by admin {admin.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
