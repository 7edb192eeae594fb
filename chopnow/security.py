"""Bearer tokens, password hashing and auth throttling.

Throttling state lives in the ephemeral store. Store outages never block a
login: the rate-limit and lockout helpers log and carry on. The token
blacklist check is the one store read that must succeed.
"""
import json
import logging
import time
from datetime import datetime, timezone

import jwt
import redis
from passlib.context import CryptContext

from . import config
from .errors import AccountLocked, RateLimited, Unauthenticated
from .store import EphemeralStore

logger = logging.getLogger("chopnow.security")

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


# ----- Passwords -----

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


# ----- Tokens -----

def create_access_token(user, expires_in: int | None = None) -> str:
    now = int(time.time())
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role.value if hasattr(user.role, "value") else user.role,
        "iat": now,
        "exp": now + (expires_in if expires_in is not None else config.JWT_EXPIRES_IN),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid token")


def blacklist_key(token: str) -> str:
    return f"blacklist:{token}"


def is_blacklisted(store: EphemeralStore, token: str) -> bool:
    return store.get(blacklist_key(token)) is not None


def blacklist_token(store: EphemeralStore, token: str) -> None:
    """Blacklist ``token`` for the rest of its validity."""
    try:
        claims = jwt.decode(
            token,
            config.JWT_SECRET,
            algorithms=[config.JWT_ALGORITHM],
            options={"verify_exp": False},
        )
    except jwt.InvalidTokenError as e:
        logger.warning(f"Refusing to blacklist undecodable token: {e}")
        return

    remaining = int(claims.get("exp", 0)) - int(time.time())
    if remaining > 0:
        store.set(blacklist_key(token), "true", remaining)


# ----- Rate limiting / lockout -----

def check_rate_limit(store: EphemeralStore, client_ip: str) -> None:
    key = f"auth_rate_limit:{client_ip}"
    try:
        attempts = int(store.get(key) or 0)
        if attempts >= config.AUTH_RATE_LIMIT_MAX:
            raise RateLimited()
        store.set(key, str(attempts + 1), config.AUTH_RATE_LIMIT_WINDOW)
    except redis.RedisError as e:
        logger.error(f"Rate limiting unavailable, continuing: {e}")


def check_lockout(store: EphemeralStore, email: str) -> None:
    try:
        locked = store.get(f"lockout:{email}")
    except redis.RedisError as e:
        logger.error(f"Lockout check unavailable, continuing: {e}")
        return
    if locked:
        raise AccountLocked()


def record_failed_login(store: EphemeralStore, email: str) -> None:
    failed_key = f"failed_attempts:{email}"
    try:
        attempts = int(store.get(failed_key) or 0) + 1
        if attempts >= config.LOGIN_MAX_FAILURES:
            store.set(f"lockout:{email}", "true", config.LOCKOUT_SECONDS)
            store.delete(failed_key)
            logger.warning(f"Account {email} locked after {attempts} failed logins")
        else:
            store.set(failed_key, str(attempts), config.LOGIN_FAILURE_WINDOW)
    except redis.RedisError as e:
        logger.error(f"Could not record failed login for {email}: {e}")


def clear_failed_logins(store: EphemeralStore, email: str) -> None:
    try:
        store.delete(f"failed_attempts:{email}")
    except redis.RedisError as e:
        logger.error(f"Could not clear failed logins for {email}: {e}")


# ----- Sessions -----

def create_session(store: EphemeralStore, user_id: int, token: str) -> None:
    now = datetime.now(timezone.utc).isoformat()
    data = {"token": token, "createdAt": now, "lastAccessed": now}
    try:
        store.set(f"session:{user_id}", json.dumps(data), config.SESSION_TTL)
    except redis.RedisError as e:
        logger.error(f"Could not create session for user {user_id}: {e}")


def get_session(store: EphemeralStore, user_id: int):
    raw = store.get(f"session:{user_id}")
    return json.loads(raw) if raw else None


def delete_session(store: EphemeralStore, user_id: int) -> None:
    try:
        store.delete(f"session:{user_id}")
    except redis.RedisError as e:
        logger.error(f"Could not delete session for user {user_id}: {e}")
