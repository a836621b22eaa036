import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from jose import JWTError
from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from sqlalchemy.orm import Session

from app.api.dependencies import (
    enforce_login_attempt_limit,
    get_current_user,
    is_refresh_token_active,
    reset_login_attempts,
    revoke_refresh_token,
    store_refresh_token,
)
from app.core.config import settings
from app.core.database import get_db
from app.core.messages import (
    AUTH_INVALID_CREDENTIALS,
    AUTH_REFRESH_TOKEN_INVALID,
    AUTH_REFRESH_TOKEN_REVOKED,
    AUTH_TOKEN_PAYLOAD_INVALID,
    AUTH_USER_ID_INVALID,
    AUTH_USER_INACTIVE,
    AUTH_USER_NOT_FOUND_OR_INACTIVE,
    REG_USER_EXISTS,
)
from app.core.security import (
    MIN_PASSWORD_LENGTH,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from app.models.user import User


logger = logging.getLogger("app.auth")

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    username: str
    email: EmailStr
    password: str
    public_key: str

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        if len(v) < 3:
            raise ValueError("Username must be at least 3 characters long")
        if len(v) > 50:
            raise ValueError("Username must be less than 50 characters")
        if not v.replace("_", "").replace("-", "").isalnum():
            raise ValueError("Username can only contain letters, numbers, underscores, and hyphens")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        return v

    @field_validator("public_key")
    @classmethod
    def validate_public_key(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Public key is required")
        return v


class LoginRequest(BaseModel):
    username: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    username: str
    email: str
    public_key: str
    created_at: datetime | None = None


def _issue_tokens(user_id: str) -> dict:
    access_token = create_access_token(subject=user_id)
    refresh_token = create_refresh_token(subject=user_id)

    # Remember the refresh token's jti so it can be rotated
    refresh_payload = decode_token(refresh_token, expected_type="refresh")
    ttl_seconds = settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60
    store_refresh_token(user_id, refresh_payload["jti"], ttl_seconds)

    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        "user_id": user_id,
    }


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    existing = db.query(User).filter(
        (User.username == payload.username) | (User.email == payload.email)
    ).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=REG_USER_EXISTS,
        )

    try:
        password_hash = get_password_hash(payload.password)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    user = User(
        username=payload.username,
        email=payload.email,
        password_hash=password_hash,
        public_key=payload.public_key,
        is_active=True,
        created_by="self-registration",
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("User registered: user_id=%s, username=%s", user.id, user.username)
    return user


@router.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    enforce_login_attempt_limit(payload.username)

    user = db.query(User).filter(
        User.username == payload.username,
        User.is_deleted.is_(False),
    ).first()
    if not user or not verify_password(payload.password, user.password_hash):
        logger.info("Failed login attempt: username=%s", payload.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=AUTH_INVALID_CREDENTIALS,
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=AUTH_USER_INACTIVE,
        )

    reset_login_attempts(payload.username)

    user.last_login = datetime.now(timezone.utc)
    db.add(user)
    db.commit()

    return _issue_tokens(str(user.id))


@router.post("/refresh")
def refresh_token(payload: RefreshRequest, db: Session = Depends(get_db)):
    try:
        claims = decode_token(payload.refresh_token, expected_type="refresh")
    except JWTError as e:
        logger.warning("Invalid refresh token: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=AUTH_REFRESH_TOKEN_INVALID,
        )

    user_id: str | None = claims.get("sub")
    jti: str | None = claims.get("jti")
    if not user_id or not jti:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=AUTH_TOKEN_PAYLOAD_INVALID,
        )

    if not is_refresh_token_active(user_id, jti):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=AUTH_REFRESH_TOKEN_REVOKED,
        )

    try:
        user_uuid = uuid.UUID(user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=AUTH_USER_ID_INVALID,
        )

    user = db.query(User).filter(User.id == user_uuid, User.is_deleted.is_(False)).first()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=AUTH_USER_NOT_FOUND_OR_INACTIVE,
        )

    # rotate: revoke old and issue new
    revoke_refresh_token(user_id, jti)
    return _issue_tokens(user_id)


@router.get("/me", response_model=UserResponse)
def read_profile(current_user: User = Depends(get_current_user)):
    return current_user
