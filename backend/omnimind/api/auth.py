import logging
import re
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from omnimind.api.deps import get_email_service, send_email_quietly
from omnimind.core.config import settings
from omnimind.core.database import get_db, isoformat, as_utc
from omnimind.core.security import (
    hash_password,
    verify_password,
    create_access_token,
    generate_token,
    hash_token,
    get_current_user,
)
from omnimind.models.user import User
from omnimind.services.email_service import EmailService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-']+$")

FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a password reset link has been sent."


# --- Schemas ---

def _check_timezone(value: str) -> str:
    if value == "UTC":
        return value
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError("Invalid timezone")
    return value


def _check_name(value: str) -> str:
    value = value.strip()
    if not 2 <= len(value) <= 100:
        raise ValueError("Name must be between 2 and 100 characters")
    if not NAME_PATTERN.match(value):
        raise ValueError("Name can only contain letters, spaces, hyphens, and apostrophes")
    return value


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str
    timezone: str = "UTC"

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _check_name(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        return _check_timezone(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UpdateProfileRequest(BaseModel):
    model_config = {"extra": "forbid"}

    name: str | None = None
    timezone: str | None = None
    avatar_url: str | None = Field(default=None, max_length=2048)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return None if v is None else _check_name(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        return None if v is None else _check_timezone(v)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=6)


def _serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "avatar_url": user.avatar_url,
        "timezone": user.timezone,
        "role": user.role,
        "settings": user.settings or {},
        "email_verified": user.email_verified,
        "last_login": isoformat(user.last_login),
        "created_at": isoformat(user.created_at),
    }


# --- Routes ---

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    email = body.email.lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    user = User(
        email=email,
        name=body.name,
        password_hash=hash_password(body.password),
        timezone=body.timezone,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("User registered: %s", user.id)

    if email_service.enabled:
        background_tasks.add_task(send_email_quietly, email_service.send_welcome_email, user, what="Welcome")

    return {
        "success": True,
        "user": _serialize_user(user),
        "token": create_access_token(user.id, user.email),
    }


@router.post("/login")
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == body.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(body.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    user.last_login = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(user)
    logger.info("User logged in: %s", user.id)

    return {
        "success": True,
        "user": _serialize_user(user),
        "token": create_access_token(user.id, user.email),
    }


@router.get("/me")
async def me(user: User = Depends(get_current_user)):
    return {"success": True, "user": _serialize_user(user)}


@router.put("/profile")
async def update_profile(
    body: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    for key, value in updates.items():
        if value is None and key != "avatar_url":
            raise HTTPException(status_code=400, detail=f"{key} cannot be null")
        setattr(user, key, value)
    user.updated_at = datetime.now(timezone.utc)

    await db.commit()
    await db.refresh(user)
    return {"success": True, "user": _serialize_user(user)}


@router.post("/refresh")
async def refresh(user: User = Depends(get_current_user)):
    return {"success": True, "token": create_access_token(user.id, user.email)}


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    result = await db.execute(select(User).where(User.email == body.email.lower()))
    user = result.scalar_one_or_none()

    if user:
        token = generate_token()
        user.reset_token = hash_token(token)
        user.reset_token_expires = datetime.now(timezone.utc) + timedelta(
            minutes=settings.password_reset_expire_minutes
        )
        await db.commit()
        logger.info("Password reset requested for user %s", user.id)
        if email_service.enabled:
            background_tasks.add_task(
                send_email_quietly, email_service.send_password_reset_email, user, token, what="Password reset"
            )

    return {"success": True, "message": FORGOT_PASSWORD_MESSAGE}


@router.post("/reset-password")
async def reset_password(body: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.reset_token == hash_token(body.token)))
    user = result.scalar_one_or_none()

    if (
        not user
        or not user.reset_token_expires
        or as_utc(user.reset_token_expires) < datetime.now(timezone.utc)
    ):
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    user.password_hash = hash_password(body.password)
    user.reset_token = None
    user.reset_token_expires = None
    user.updated_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("Password reset for user %s", user.id)

    return {"success": True, "message": "Password has been reset"}
