"""
Openverse API Client

Searches openly licensed images and audio through the Openverse REST API.
Responses are passed through unchanged apart from the merge needed for
``mediaType=all``.
"""

import asyncio
import os
from itertools import zip_longest
from typing import Any, Dict, Optional

import aiohttp
from loguru import logger

MEDIA_ENDPOINTS = {
    "image": "images",
    "audio": "audio",
}

# Media types accepted by search; "video" has no Openverse endpoint
SEARCH_MEDIA_TYPES = ("image", "audio", "video", "all")


class OpenverseError(Exception):
    """Openverse request failed or returned an unusable response."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class MediaNotFoundError(OpenverseError):
    """Openverse has no media with the requested id."""


def empty_page(page: int, page_size: int) -> Dict[str, Any]:
    """Search-result shape with no results."""
    return {
        "result_count": 0,
        "page_count": 0,
        "page_size": page_size,
        "page": page,
        "results": [],
    }


def build_search_params(
    query: str,
    page: int,
    page_size: int,
    filters: Optional[Dict[str, str]] = None,
) -> Dict[str, str]:
    """Openverse query parameters; empty filter values are dropped."""
    params = {
        key: str(value)
        for key, value in (filters or {}).items()
        if value not in (None, "")
    }
    params.update({
        "q": query,
        "page": str(page),
        "page_size": str(page_size),
    })
    return params


def merge_pages(
    image_page: Dict[str, Any],
    audio_page: Dict[str, Any],
    page: int,
    page_size: int,
) -> Dict[str, Any]:
    """
    Combine an image page and an audio page into one result page.

    Results alternate image/audio so neither type is pushed off the first
    screen; counts are summed and the page count is the larger of the two.
    """
    results = []
    for pair in zip_longest(image_page.get("results", []), audio_page.get("results", [])):
        results.extend(item for item in pair if item is not None)

    return {
        "result_count": image_page.get("result_count", 0) + audio_page.get("result_count", 0),
        "page_count": max(image_page.get("page_count", 0), audio_page.get("page_count", 0)),
        "page_size": page_size,
        "page": page,
        "results": results,
    }


class OpenverseClient:
    """Client for the Openverse API."""

    BASE_URL = "https://api.openverse.org/v1"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: float = 10.0,
    ):
        """
        Initialize client.

        Args:
            base_url: API root, defaults to the public Openverse API.
            api_token: Optional OAuth token. If not provided, tries
                OPENVERSE_API_TOKEN env var.
            timeout: Total timeout per upstream request, in seconds.
        """
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.api_token = api_token or os.getenv("OPENVERSE_API_TOKEN")
        self.timeout = timeout
        if not self.api_token:
            logger.info("No Openverse API token configured. Anonymous rate limits apply.")

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json", "User-Agent": "mediasearch/1.0"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    async def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout, headers=self._headers()) as session:
                async with session.get(url, params=params) as resp:
                    if resp.status == 404:
                        raise MediaNotFoundError(f"Not found: {path}", status=404)
                    if resp.status != 200:
                        error_text = await resp.text()
                        logger.error(f"Openverse API error {resp.status} on {path}: {error_text[:500]}")
                        raise OpenverseError(f"Openverse returned {resp.status}", status=resp.status)
                    return await resp.json(content_type=None)
        except OpenverseError:
            raise
        except asyncio.TimeoutError as e:
            raise OpenverseError(f"Openverse request timed out after {self.timeout}s") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise OpenverseError(f"Openverse request failed: {e}") from e

    @staticmethod
    def _endpoint(media_type: str) -> str:
        try:
            return MEDIA_ENDPOINTS[media_type]
        except KeyError:
            raise ValueError(f"Unsupported media type: {media_type}") from None

    async def search(
        self,
        query: str,
        media_type: str = "all",
        page: int = 1,
        page_size: int = 20,
        filters: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Search for media.

        Args:
            query: Search terms.
            media_type: "image", "audio", "video" or "all".
            page: 1-based page number.
            page_size: Results per page (per media type for "all").
            filters: Extra Openverse filters (license, source, ...).

        Returns:
            ``{result_count, page_count, page_size, page, results}``.
        """
        if media_type not in SEARCH_MEDIA_TYPES:
            raise ValueError(f"Unsupported media type: {media_type}")

        if media_type == "video":
            return empty_page(page, page_size)

        params = build_search_params(query, page, page_size, filters)
        logger.info(f"Openverse search: q='{query}' type={media_type} page={page}")

        if media_type == "all":
            return await self._search_all(params, page, page_size)

        return await self._get(f"{self._endpoint(media_type)}/", params)

    async def _search_all(self, params: Dict[str, str], page: int, page_size: int) -> Dict[str, Any]:
        """
        Query images and audio together.

        The two sides run out of pages at different points, so a side that
        fails is merged as an empty page. Only a failure of both is raised.
        """
        outcomes = await asyncio.gather(
            self._get("images/", params),
            self._get("audio/", params),
            return_exceptions=True,
        )

        pages = []
        for endpoint, outcome in zip(("images", "audio"), outcomes):
            if isinstance(outcome, OpenverseError):
                logger.warning(f"Openverse {endpoint} search failed on page {page}: {outcome}")
                pages.append(empty_page(page, page_size))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                pages.append(outcome)

        if all(isinstance(outcome, OpenverseError) for outcome in outcomes):
            raise outcomes[0]

        return merge_pages(pages[0], pages[1], page, page_size)

    async def get_media(self, media_type: str, media_id: str) -> Dict[str, Any]:
        """Get a single image or audio record."""
        return await self._get(f"{self._endpoint(media_type)}/{media_id}/")

    async def get_related(self, media_type: str, media_id: str) -> Dict[str, Any]:
        """Get media related to an image or audio record."""
        return await self._get(f"{self._endpoint(media_type)}/{media_id}/related/")

    async def get_stats(self) -> Dict[str, Any]:
        """Per-source statistics for both media types."""
        image_stats, audio_stats = await asyncio.gather(
            self._get("images/stats/"),
            self._get("audio/stats/"),
        )
        return {"image": image_stats, "audio": audio_stats}
