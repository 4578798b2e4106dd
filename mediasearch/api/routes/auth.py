"""
Authentication API Routes for MediaSearch.

Handles:
- Registration and login (token issue)
- Current user retrieval
- Logout, token refresh
- Password change and profile update
"""

from datetime import timedelta

from fastapi import APIRouter, Depends, status
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mediasearch.api.dependencies import Settings, get_current_user, get_db, get_settings
from mediasearch.api.middleware.error_handler import (
    AuthError,
    ConflictError,
    ForbiddenError,
    ValidationError,
)
from mediasearch.api.schemas import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    TokenResponse,
    UserEnvelope,
    UserResponse,
)
from mediasearch.security import create_access_token, get_password_hash, verify_password
from mediasearch.storage.models import User
from mediasearch.storage.user_repository import UserRepository

router = APIRouter(prefix="/auth", tags=["auth"])


def issue_token(user: User, settings: Settings) -> str:
    """Sign an access token for ``user``."""
    return create_access_token(
        data={"sub": user.id},
        secret_key=settings.secret_key,
        algorithm=settings.jwt_algorithm,
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Register a new user and sign them in."""
    repo = UserRepository(db)

    if await repo.find_conflict(email=payload.email, username=payload.username):
        raise ConflictError("User with this email or username already exists")

    user = await repo.create(
        username=payload.username,
        email=payload.email,
        hashed_password=get_password_hash(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
    )

    return AuthResponse(token=issue_token(user, settings), user=UserResponse.model_validate(user))


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Login endpoint.
    Returns a token if credentials are valid.
    """
    repo = UserRepository(db)
    user = await repo.get_by_email(payload.email)

    if not user or not verify_password(payload.password, user.hashed_password):
        logger.info(f"Failed login for {payload.email}")
        raise AuthError("Invalid email or password")

    if not user.is_active:
        raise ForbiddenError("Account is disabled")

    user = await repo.touch_login(user)
    logger.info(f"User {user.id} logged in")

    return AuthResponse(token=issue_token(user, settings), user=UserResponse.model_validate(user))


@router.get("/user", response_model=UserEnvelope)
async def read_current_user(current_user: User = Depends(get_current_user)):
    """Get current user profile."""
    return UserEnvelope(user=UserResponse.model_validate(current_user))


@router.post("/logout", response_model=MessageResponse)
async def logout(current_user: User = Depends(get_current_user)):
    """
    Acknowledge a logout.

    Tokens are stateless; the client discards its copy.
    """
    logger.info(f"User {current_user.id} logged out")
    return MessageResponse(message="Logged out successfully")


@router.post("/password", response_model=MessageResponse)
async def change_password(
    payload: PasswordChangeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Change the signed-in user's password."""
    # 400 rather than 401: a 401 would end the client's session
    if not verify_password(payload.current_password, current_user.hashed_password):
        raise ValidationError(
            "Current password is incorrect",
            errors=[{"field": "currentPassword", "message": "Current password is incorrect"}],
        )

    await UserRepository(db).set_password(current_user, get_password_hash(payload.new_password))
    logger.info(f"User {current_user.id} changed password")

    return MessageResponse(message="Password updated successfully")


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
):
    """Issue a fresh token for a still-valid one."""
    return TokenResponse(token=issue_token(current_user, settings))


@router.post("/profile", response_model=UserEnvelope)
async def update_profile(
    payload: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update username, email or names of the signed-in user."""
    repo = UserRepository(db)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)

    if await repo.find_conflict(
        email=changes.get("email"),
        username=changes.get("username"),
        exclude_id=current_user.id,
    ):
        raise ConflictError("Email or username is already taken")

    user = await repo.update_profile(current_user, **changes)
    return UserEnvelope(user=UserResponse.model_validate(user))
