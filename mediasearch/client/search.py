"""
Client-side search state.

``SearchOrchestrator`` turns URL-style parameters into backend searches and
keeps the accumulated result list for paging ("load more").

Each request is tagged with an increasing id; only the latest request may
update state, so a slow response for an old query never overwrites a newer
one.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union
from urllib.parse import parse_qsl

from loguru import logger

from .api import MediaSearchAPI
from .gateway import GatewayError

SEARCH_ERROR_MESSAGE = "Failed to load search results. Please try again."
DEFAULT_PAGE_SIZE = 20

# URL keys with a fixed meaning; every other key is a filter
RESERVED_KEYS = ("q", "mediaType", "page")


@dataclass(frozen=True)
class SearchQuery:
    query: str
    media_type: str = "all"
    filters: dict[str, str] = field(default_factory=dict)
    page: int = 1

    def to_params(self) -> dict[str, str]:
        """URL parameters for this query; empty filters are left out."""
        params = {
            "q": self.query,
            "mediaType": self.media_type,
            "page": str(self.page),
        }
        params.update({key: value for key, value in self.filters.items() if value})
        return params

    def with_page(self, page: int) -> "SearchQuery":
        return SearchQuery(self.query, self.media_type, dict(self.filters), page)

    @classmethod
    def from_history(cls, item: Mapping[str, Any]) -> "SearchQuery":
        """Repeat a past search from a history item (first page)."""
        media_type = item.get("mediaType") or item.get("media_type") or "all"
        filters = {str(k): str(v) for k, v in (item.get("filters") or {}).items() if v}
        return cls(query=item["query"], media_type=media_type, filters=filters, page=1)


def parse_query(url_params: Union[str, Mapping[str, Any]]) -> SearchQuery:
    """
    Build a SearchQuery from a query string or a mapping.

    ``mediaType`` defaults to ``all`` and ``page`` to 1; a page that is not
    a positive integer also becomes 1.
    """
    if isinstance(url_params, str):
        params = dict(parse_qsl(url_params.lstrip("?"), keep_blank_values=True))
    else:
        params = dict(url_params)

    try:
        page = int(params.get("page") or 1)
    except (TypeError, ValueError):
        page = 1
    if page < 1:
        page = 1

    filters = {
        str(key): str(value)
        for key, value in params.items()
        if key not in RESERVED_KEYS
    }

    return SearchQuery(
        query=str(params.get("q") or ""),
        media_type=str(params.get("mediaType") or "all"),
        filters=filters,
        page=page,
    )


class SearchOrchestrator:
    """Search results, paging and loading/error flags for one search view."""

    parse_query = staticmethod(parse_query)

    def __init__(self, api: MediaSearchAPI, page_size: int = DEFAULT_PAGE_SIZE):
        self.api = api
        self.page_size = page_size

        self.query: Optional[SearchQuery] = None
        self.results: list[dict[str, Any]] = []
        self.total_results = 0
        self.current_page = 1
        self.has_more = False
        self.is_loading = False
        self.loading_more = False
        self.error: Optional[str] = None

        self._latest_request_id = 0

    @property
    def summary(self) -> str:
        """Heading text, e.g. ``45 results for cats``."""
        if self.query is None:
            return ""
        return f"{self.total_results:,} results for {self.query.query}"

    def _is_latest(self, request_id: int) -> bool:
        return request_id == self._latest_request_id

    async def search(self, query: SearchQuery, append: bool = False) -> bool:
        """
        Run ``query`` and update the result state.

        Args:
            query: What to search for.
            append: Add the page to the current results (load more) instead
                of replacing them.

        Returns:
            True if this call's response was applied.
        """
        self._latest_request_id += 1
        request_id = self._latest_request_id

        if not query.query.strip():
            # Anything still in flight is now stale
            self.is_loading = False
            self.loading_more = False
            return False

        if append:
            self.loading_more = True
        else:
            self.is_loading = True
            self.results = []
        self.error = None

        try:
            response = await self.api.search_media(
                query.query,
                media_type=query.media_type,
                filters=query.filters,
                page=query.page,
                page_size=self.page_size,
            )
        except GatewayError as e:
            if self._is_latest(request_id):
                self.error = SEARCH_ERROR_MESSAGE
                logger.error(f"Search error: {e.message}")
            return False
        finally:
            if self._is_latest(request_id):
                self.is_loading = False
                self.loading_more = False

        if not self._is_latest(request_id):
            logger.debug(f"Discarding stale search response #{request_id}")
            return False

        page_results = response.get("results", [])
        if append:
            seen = {item.get("id") for item in self.results}
            merged = list(self.results)
            for item in page_results:
                if item.get("id") not in seen:
                    seen.add(item.get("id"))
                    merged.append(item)
            self.results = merged
        else:
            self.results = list(page_results)

        self.query = query
        self.total_results = response.get("result_count", 0)
        self.current_page = response.get("page") or query.page
        self.has_more = self.current_page < response.get("page_count", 0)
        return True

    async def load_more(self) -> bool:
        """Fetch the next page of the current query and append it."""
        if self.query is None:
            return False
        return await self.search(self.query.with_page(self.current_page + 1), append=True)
