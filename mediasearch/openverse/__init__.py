"""
Openverse integration for MediaSearch.
"""

from mediasearch.openverse.client import (
    OpenverseClient,
    OpenverseError,
    MediaNotFoundError,
    MEDIA_ENDPOINTS,
    SEARCH_MEDIA_TYPES,
    build_search_params,
    empty_page,
    merge_pages,
)

__all__ = [
    "OpenverseClient",
    "OpenverseError",
    "MediaNotFoundError",
    "MEDIA_ENDPOINTS",
    "SEARCH_MEDIA_TYPES",
    "build_search_params",
    "empty_page",
    "merge_pages",
]
