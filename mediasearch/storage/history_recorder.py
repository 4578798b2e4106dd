"""
Search history recording.

A successful search by a signed-in user emits a ``SearchPerformed`` event.
The recorder persists it off the response path, in its own session, so a
failing write never reaches the search caller.
"""

from dataclasses import dataclass, field
from typing import Callable

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from .history_repository import SearchHistoryRepository


@dataclass(frozen=True)
class SearchPerformed:
    """A search that completed successfully for an authenticated user."""

    user_id: str
    query: str
    media_type: str
    result_count: int
    filters: dict[str, str] = field(default_factory=dict)


class HistoryRecorder:
    """Persists SearchPerformed events."""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory

    async def record(self, event: SearchPerformed) -> bool:
        """
        Write one history row.

        Returns:
            True if the row was stored. Errors are logged and reported as
            False rather than raised: the search has already been answered.
        """
        try:
            async with self.session_factory() as session:
                repo = SearchHistoryRepository(session)
                await repo.create(
                    user_id=event.user_id,
                    query=event.query,
                    media_type=event.media_type,
                    filters=event.filters,
                    result_count=event.result_count,
                )
        except Exception as e:
            logger.error(f"Failed to record search history for user {event.user_id}: {e}")
            return False

        logger.debug(f"Recorded search '{event.query}' for user {event.user_id}")
        return True
