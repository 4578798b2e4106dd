"""
Search API Routes

Proxies media search, detail, related and stats lookups to Openverse.
Searches by signed-in users are recorded to their history in the background.
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from loguru import logger

from mediasearch.api.dependencies import (
    get_history_recorder,
    get_openverse_client,
    get_optional_user,
)
from mediasearch.api.middleware.error_handler import (
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from mediasearch.api.schemas import DetailMediaType, ErrorResponse, MediaType
from mediasearch.openverse.client import MediaNotFoundError, OpenverseClient, OpenverseError
from mediasearch.storage.history_recorder import HistoryRecorder, SearchPerformed
from mediasearch.storage.models import User

router = APIRouter(tags=["search"])

# Query keys consumed by the route itself; everything else is a filter
RESERVED_PARAMS = {"q", "mediaType", "page", "pageSize"}


def extract_filters(request: Request) -> dict[str, str]:
    """Non-empty query parameters other than the reserved ones."""
    return {
        key: value
        for key, value in request.query_params.items()
        if key not in RESERVED_PARAMS and value != ""
    }


@router.get(
    "/search",
    responses={
        400: {"model": ErrorResponse, "description": "Invalid search parameters"},
        502: {"model": ErrorResponse, "description": "Openverse unavailable"},
    },
)
async def search_media(
    request: Request,
    background_tasks: BackgroundTasks,
    q: str = Query("", description="Search terms"),
    media_type: MediaType = Query(MediaType.ALL, alias="mediaType"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=50, alias="pageSize"),
    client: OpenverseClient = Depends(get_openverse_client),
    recorder: HistoryRecorder = Depends(get_history_recorder),
    current_user: Optional[User] = Depends(get_optional_user),
):
    """
    Search openly licensed media.

    Any query parameter besides q, mediaType, page and pageSize is forwarded
    to Openverse as a filter (license, source, extension, ...).
    """
    query = q.strip()
    if not query:
        raise ValidationError(
            "Search query is required",
            errors=[{"field": "q", "message": "Search query is required"}],
        )

    filters = extract_filters(request)

    try:
        results = await client.search(
            query,
            media_type=media_type.value,
            page=page,
            page_size=page_size,
            filters=filters,
        )
    except OpenverseError as e:
        logger.error(f"Search failed for '{query}': {e}")
        raise UpstreamError(detail=str(e))

    if current_user is not None:
        background_tasks.add_task(
            recorder.record,
            SearchPerformed(
                user_id=current_user.id,
                query=query,
                media_type=media_type.value,
                result_count=results.get("result_count", 0),
                filters=filters,
            ),
        )

    return results


@router.get(
    "/media/{media_type}/{media_id}",
    responses={
        404: {"model": ErrorResponse, "description": "Media not found"},
        502: {"model": ErrorResponse, "description": "Openverse unavailable"},
    },
)
async def get_media(
    media_type: DetailMediaType,
    media_id: str,
    client: OpenverseClient = Depends(get_openverse_client),
    current_user: Optional[User] = Depends(get_optional_user),
):
    """Get a single image or audio record."""
    try:
        return await client.get_media(media_type.value, media_id)
    except MediaNotFoundError:
        raise NotFoundError(media_type.value.capitalize(), media_id)
    except OpenverseError as e:
        raise UpstreamError(detail=str(e))


@router.get(
    "/media/{media_type}/{media_id}/related",
    responses={
        404: {"model": ErrorResponse, "description": "Media not found"},
        502: {"model": ErrorResponse, "description": "Openverse unavailable"},
    },
)
async def get_related_media(
    media_type: DetailMediaType,
    media_id: str,
    client: OpenverseClient = Depends(get_openverse_client),
    current_user: Optional[User] = Depends(get_optional_user),
):
    """Get media related to an image or audio record."""
    try:
        return await client.get_related(media_type.value, media_id)
    except MediaNotFoundError:
        raise NotFoundError(media_type.value.capitalize(), media_id)
    except OpenverseError as e:
        raise UpstreamError(detail=str(e))


@router.get("/stats", responses={502: {"model": ErrorResponse}})
async def get_stats(client: OpenverseClient = Depends(get_openverse_client)):
    """Per-source media counts from Openverse."""
    try:
        return await client.get_stats()
    except OpenverseError as e:
        raise UpstreamError(detail=str(e))
