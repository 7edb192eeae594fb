import uuid
from typing import Optional

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from . import db, models, security
from .errors import PermissionDenied, Unauthenticated
from .notifier import Notifier
from .orders import OrderService
from .repository import OrderRepository
from .store import EphemeralStore, get_default_store

bearer_scheme = HTTPBearer(auto_error=False)


def get_correlation_id(request: Request, x_correlation_id: Optional[str] = Header(None)):
    # the middleware has usually assigned one already
    return getattr(request.state, "correlation_id", None) or x_correlation_id or str(uuid.uuid4())


# ----- DB / store / notifier -----

def get_db():
    s = db.SessionLocal()
    try:
        yield s
    finally:
        s.close()


def get_store() -> EphemeralStore:
    return get_default_store()


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_order_service(
    db_sess: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    cid: str = Depends(get_correlation_id),
) -> OrderService:
    return OrderService(OrderRepository(db_sess), notifier, correlation_id=cid)


# ----- Auth -----

def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise Unauthenticated("Access token required")
    return credentials.credentials


def get_current_user(
    token: str = Depends(get_bearer_token),
    db_sess: Session = Depends(get_db),
    store: EphemeralStore = Depends(get_store),
) -> models.User:
    if security.is_blacklisted(store, token):
        raise Unauthenticated("Token has been invalidated")

    claims = security.decode_access_token(token)
    try:
        user_id = int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise Unauthenticated("Invalid token")

    user = db_sess.get(models.User, user_id)
    if user is None or not user.is_active:
        raise Unauthenticated("Invalid or expired token")
    return user


def require_roles(*roles: models.Role):
    allowed = frozenset(roles)

    def checker(user: models.User = Depends(get_current_user)) -> models.User:
        if models.Role(user.role) not in allowed:
            raise PermissionDenied("Insufficient permissions")
        return user

    return checker
