from __future__ import annotations

import logging
import uuid
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from app.core.database import SessionLocal, get_db
from app.core.messages import (
    AUTH_COULD_NOT_VALIDATE,
    AUTH_TOKEN_PAYLOAD_INVALID,
    AUTH_TOO_MANY_ATTEMPTS,
    AUTH_USER_ID_INVALID,
    AUTH_USER_NOT_FOUND_OR_INACTIVE,
)
from app.core.redis import get_redis_client
from app.core.security import decode_token
from app.models.user import User
from app.realtime import FrameHandler, Hub, SqlChatDirectory, SqlMessageStore, hub


logger = logging.getLogger("app.dependencies")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

LOGIN_ATTEMPT_LIMIT = 5
LOGIN_ATTEMPT_WINDOW_SECONDS = 15 * 60


def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Session = Depends(get_db),
) -> User:
    try:
        payload = decode_token(token, expected_type="access")
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=AUTH_COULD_NOT_VALIDATE,
        )

    user_id: str | None = payload.get("sub")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=AUTH_TOKEN_PAYLOAD_INVALID,
        )

    try:
        user_uuid = uuid.UUID(user_id)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=AUTH_USER_ID_INVALID,
        )

    user: User | None = (
        db.query(User)
        .filter(User.id == user_uuid, User.is_active.is_(True), User.is_deleted.is_(False))
        .first()
    )
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=AUTH_USER_NOT_FOUND_OR_INACTIVE,
        )
    return user


def get_hub() -> Hub:
    return hub


def get_frame_handler() -> FrameHandler:
    return FrameHandler(
        chats=SqlChatDirectory(SessionLocal),
        messages=SqlMessageStore(SessionLocal),
    )


def enforce_login_attempt_limit(username: str) -> None:
    """Limit login attempts: 5 attempts over rolling 15 minutes."""
    r = get_redis_client()
    if r is None:
        return
    key = f"auth:login_attempts:{username}"
    attempts = r.incr(key)
    if attempts == 1:
        r.expire(key, LOGIN_ATTEMPT_WINDOW_SECONDS)
    if attempts > LOGIN_ATTEMPT_LIMIT:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=AUTH_TOO_MANY_ATTEMPTS,
        )


def reset_login_attempts(username: str) -> None:
    r = get_redis_client()
    if r is None:
        return
    r.delete(f"auth:login_attempts:{username}")


def store_refresh_token(user_id: str, jti: str, ttl_seconds: int) -> None:
    """Store refresh token in Redis. No-op if Redis is unavailable."""
    r = get_redis_client()
    if r is None:
        return
    r.set(f"auth:refresh:{user_id}:{jti}", "1", ex=ttl_seconds)


def revoke_refresh_token(user_id: str, jti: str) -> None:
    """Revoke refresh token in Redis. No-op if Redis is unavailable."""
    r = get_redis_client()
    if r is None:
        return
    r.delete(f"auth:refresh:{user_id}:{jti}")


def is_refresh_token_active(user_id: str, jti: str) -> bool:
    """Check if refresh token is active. Returns True if Redis is unavailable (allow all)."""
    r = get_redis_client()
    if r is None:
        return True
    return r.exists(f"auth:refresh:{user_id}:{jti}") == 1
