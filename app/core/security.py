from datetime import datetime, timedelta, timezone
from typing import Any, Optional
import uuid

import bcrypt
from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# bcrypt only looks at the first 72 bytes of a secret
BCRYPT_MAX_BYTES = 72
MIN_PASSWORD_LENGTH = 8


def _truncate(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def verify_password(plain_password: str, hashed_password: str) -> bool:
    password_bytes = _truncate(plain_password)
    try:
        return pwd_context.verify(password_bytes, hashed_password)
    except Exception:
        # Newer bcrypt releases break passlib's backend probe; check directly
        pass
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
        )

    password_bytes = _truncate(password)
    try:
        return pwd_context.hash(password_bytes)
    except Exception:
        pass
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")


def create_token(
    subject: str | Any,
    expires_delta: Optional[timedelta],
    token_type: str,
    jti: Optional[str] = None,
    extra_claims: Optional[dict[str, Any]] = None,
) -> str:
    sub = subject if isinstance(subject, str) else str(subject)

    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=15))
    payload: dict[str, Any] = {
        "sub": sub,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
        "iss": settings.JWT_ISSUER,
        "type": token_type,
        "jti": jti or uuid.uuid4().hex,
    }
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_access_token(subject: str | Any, **extra_claims: Any) -> str:
    expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return create_token(subject, expires, token_type="access", extra_claims=extra_claims)


def create_refresh_token(subject: str | Any) -> str:
    expires = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return create_token(subject, expires, token_type="refresh")


def decode_token(token: str, expected_type: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            issuer=settings.JWT_ISSUER,
        )
        if payload.get("type") != expected_type:
            raise JWTError("Invalid token type")
        return payload
    except JWTError as exc:
        raise JWTError("Invalid or expired token") from exc
