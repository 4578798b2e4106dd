"""
Search History API Routes

Listing and deletion of the signed-in user's past searches.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mediasearch.api.dependencies import get_current_user, get_db
from mediasearch.api.middleware.error_handler import NotFoundError
from mediasearch.api.schemas import (
    ErrorResponse,
    MessageResponse,
    SearchHistoryItem,
    SearchHistoryListResponse,
)
from mediasearch.storage.history_repository import SearchHistoryRepository
from mediasearch.storage.models import User

router = APIRouter(prefix="/history", tags=["history"])


@router.get("", response_model=SearchHistoryListResponse)
async def list_history(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the user's searches, most recent first."""
    result = await SearchHistoryRepository(db).list(current_user.id, page=page, page_size=page_size)

    return SearchHistoryListResponse(
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
        history=[SearchHistoryItem.model_validate(item) for item in result.items],
    )


@router.delete(
    "/{history_id}",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse, "description": "History item not found"}},
)
async def delete_history_item(
    history_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete one history item owned by the user."""
    deleted = await SearchHistoryRepository(db).delete_one(current_user.id, history_id)
    if not deleted:
        raise NotFoundError("History item", history_id)

    return MessageResponse(message="History item deleted")


@router.delete("", response_model=MessageResponse)
async def clear_history(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete all of the user's history."""
    count = await SearchHistoryRepository(db).clear_all(current_user.id)
    return MessageResponse(message=f"Cleared {count} history items")
