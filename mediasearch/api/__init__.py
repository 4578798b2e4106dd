"""
MediaSearch - FastAPI Backend.

Openverse search proxy with accounts and per-user search history.
"""

from .main import app, create_app, main
from .dependencies import (
    Settings,
    get_settings,
    get_db,
    get_current_user,
    get_optional_user,
)
from .schemas import (
    RegisterRequest,
    LoginRequest,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    UserResponse,
    AuthResponse,
    SearchHistoryItem,
    SearchHistoryListResponse,
    HealthResponse,
    ErrorResponse,
)

__all__ = [
    # Application
    "app",
    "create_app",
    "main",
    # Dependencies
    "Settings",
    "get_settings",
    "get_db",
    "get_current_user",
    "get_optional_user",
    # Schemas
    "RegisterRequest",
    "LoginRequest",
    "PasswordChangeRequest",
    "ProfileUpdateRequest",
    "UserResponse",
    "AuthResponse",
    "SearchHistoryItem",
    "SearchHistoryListResponse",
    "HealthResponse",
    "ErrorResponse",
]
