import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas, security
from ..deps import get_bearer_token, get_correlation_id, get_current_user, get_db, get_store
from ..errors import ConflictError, Unauthenticated, ValidationFailed
from ..store import EphemeralStore

logger = logging.getLogger("chopnow.auth")

router = APIRouter(prefix="/api/auth", tags=["auth"])


def auth_rate_limit(request: Request, store: EphemeralStore = Depends(get_store)):
    client_ip = request.client.host if request.client else "unknown"
    security.check_rate_limit(store, client_ip)


def _auth_payload(user: models.User, token: str) -> schemas.AuthData:
    return schemas.AuthData(user=schemas.UserRead.model_validate(user), token=token)


# ----- API: Register / Login -----

@router.post(
    "/register",
    response_model=schemas.Envelope[schemas.AuthData],
    status_code=201,
    dependencies=[Depends(auth_rate_limit)],
)
def register(
    payload: schemas.RegisterRequest,
    db_sess: Session = Depends(get_db),
    cid: str = Depends(get_correlation_id),
):
    email = payload.email.lower()
    existing = db_sess.scalars(select(models.User).where(models.User.email == email)).first()
    if existing:
        raise ConflictError("User with this email already exists")

    user = models.User(
        email=email,
        password_hash=security.hash_password(payload.password),
        name=payload.name,
        phone=payload.phone,
        role=models.Role(payload.role),
    )
    db_sess.add(user)
    try:
        db_sess.commit()
    except IntegrityError:
        db_sess.rollback()
        raise ConflictError("User with this email already exists")

    logger.info(f"User {user.id} registered as {user.role.value}", extra={"correlation_id": cid})
    token = security.create_access_token(user)
    return schemas.Envelope(message="User registered successfully", data=_auth_payload(user, token))


@router.post(
    "/login",
    response_model=schemas.Envelope[schemas.AuthData],
    dependencies=[Depends(auth_rate_limit)],
)
def login(
    payload: schemas.LoginRequest,
    db_sess: Session = Depends(get_db),
    store: EphemeralStore = Depends(get_store),
    cid: str = Depends(get_correlation_id),
):
    email = payload.email.lower()
    security.check_lockout(store, email)

    user = db_sess.scalars(select(models.User).where(models.User.email == email)).first()
    if user is None or not security.verify_password(payload.password, user.password_hash):
        security.record_failed_login(store, email)
        logger.info(f"Failed login for {email}", extra={"correlation_id": cid})
        raise Unauthenticated("Invalid email or password")
    if not user.is_active:
        raise Unauthenticated("Account is disabled")

    security.clear_failed_logins(store, email)
    token = security.create_access_token(user)
    security.create_session(store, user.id, token)
    logger.info(f"User {user.id} logged in", extra={"correlation_id": cid})
    return schemas.Envelope(message="Login successful", data=_auth_payload(user, token))


# ----- API: Session -----

@router.post("/logout", response_model=schemas.Envelope[dict])
def logout(
    user: models.User = Depends(get_current_user),
    token: str = Depends(get_bearer_token),
    store: EphemeralStore = Depends(get_store),
    cid: str = Depends(get_correlation_id),
):
    security.blacklist_token(store, token)
    security.delete_session(store, user.id)
    logger.info(f"User {user.id} logged out", extra={"correlation_id": cid})
    return schemas.Envelope(message="Logout successful", data={})


@router.get("/me", response_model=schemas.Envelope[schemas.UserRead])
def me(user: models.User = Depends(get_current_user)):
    return schemas.Envelope(data=schemas.UserRead.model_validate(user))


@router.put("/change-password", response_model=schemas.Envelope[dict])
def change_password(
    payload: schemas.ChangePasswordRequest,
    user: models.User = Depends(get_current_user),
    db_sess: Session = Depends(get_db),
):
    if not security.verify_password(payload.current_password, user.password_hash):
        raise ValidationFailed("Current password is incorrect")
    user.password_hash = security.hash_password(payload.new_password)
    db_sess.commit()
    return schemas.Envelope(message="Password changed successfully", data={})
