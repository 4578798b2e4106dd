"""
API Schemas for MediaSearch

Pydantic models for request validation and response serialization:
- Auth models
- Search history models
- System models

Design Decisions:
1. camelCase on the wire, snake_case in Python (alias generator)
2. Boundary validation: malformed input is rejected before any side effect
3. Search results are upstream passthrough and have no schema here
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# Enums
# =============================================================================

class MediaType(str, Enum):
    """Media type accepted by search."""
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    ALL = "all"


class DetailMediaType(str, Enum):
    """Media type addressable by id."""
    IMAGE = "image"
    AUDIO = "audio"


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _lower(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


Trimmed = Annotated[str, BeforeValidator(_strip)]
NormalizedEmail = Annotated[EmailStr, BeforeValidator(_lower)]


# =============================================================================
# Auth Schemas
# =============================================================================

class RegisterRequest(CamelModel):
    """Account registration."""

    username: Trimmed = Field(..., min_length=3, max_length=50)
    email: NormalizedEmail
    password: str = Field(..., min_length=6, max_length=128)
    first_name: Optional[Trimmed] = Field(None, max_length=100)
    last_name: Optional[Trimmed] = Field(None, max_length=100)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "username": "ada",
                "email": "ada@example.com",
                "password": "correct-horse",
                "firstName": "Ada",
            }
        }
    )


class LoginRequest(CamelModel):
    """Credential exchange."""

    email: NormalizedEmail
    password: str = Field(..., min_length=1)


class PasswordChangeRequest(CamelModel):
    """Password change for the signed-in user."""

    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class ProfileUpdateRequest(CamelModel):
    """Partial profile update."""

    username: Optional[Trimmed] = Field(None, min_length=3, max_length=50)
    email: Optional[NormalizedEmail] = None
    first_name: Optional[Trimmed] = Field(None, max_length=100)
    last_name: Optional[Trimmed] = Field(None, max_length=100)


class UserResponse(CamelModel):
    """Public view of a user."""

    id: str
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: bool = True
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AuthResponse(CamelModel):
    token: str
    user: UserResponse


class UserEnvelope(CamelModel):
    user: UserResponse


class TokenResponse(CamelModel):
    token: str


class MessageResponse(CamelModel):
    message: str


# =============================================================================
# Search History Schemas
# =============================================================================

class SearchHistoryItem(CamelModel):
    """One past search."""

    id: int
    user_id: str
    query: str
    media_type: MediaType
    filters: dict[str, Any] = Field(default_factory=dict)
    result_count: int = 0
    created_at: datetime
    updated_at: datetime


class SearchHistoryListResponse(CamelModel):
    """Paginated search history."""

    total: int
    page: int
    page_size: int
    pages: int
    history: list[SearchHistoryItem]


# =============================================================================
# System Schemas
# =============================================================================

class HealthResponse(BaseModel):
    status: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Standard error body."""

    message: str
    code: str
    detail: Optional[str] = None
    timestamp: datetime
    errors: Optional[list[dict[str, Any]]] = None
