"""
Search History Repository for MediaSearch

Per-user CRUD over executed searches:
- Paginated listing, most recent first
- Owner-scoped single delete
- Idempotent bulk clear

Every query is filtered on ``user_id``; there is no code path that reads or
deletes another user's rows.
"""

import math
from dataclasses import dataclass, field
from typing import Optional

from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import SearchHistory, utcnow


@dataclass
class HistoryPage:
    """One page of a user's search history."""

    items: list[SearchHistory]
    total: int
    page: int
    page_size: int
    pages: int = field(init=False)

    def __post_init__(self):
        self.pages = math.ceil(self.total / self.page_size) if self.page_size else 0


class SearchHistoryRepository:
    """Repository for search history rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        user_id: str,
        query: str,
        media_type: str,
        filters: Optional[dict[str, str]] = None,
        result_count: int = 0,
    ) -> SearchHistory:
        now = utcnow()
        entry = SearchHistory(
            user_id=user_id,
            query=query,
            media_type=media_type,
            filters=dict(filters or {}),
            result_count=result_count,
            created_at=now,
            updated_at=now,
        )
        self.session.add(entry)
        await self.session.commit()
        await self.session.refresh(entry)
        return entry

    async def list(self, user_id: str, page: int = 1, page_size: int = 20) -> HistoryPage:
        """
        List a user's searches, most recent first.

        Args:
            user_id: Owner of the rows.
            page: 1-based page number.
            page_size: Rows per page.
        """
        total = (await self.session.execute(
            select(func.count(SearchHistory.id)).where(SearchHistory.user_id == user_id)
        )).scalar_one()

        stmt = (
            select(SearchHistory)
            .where(SearchHistory.user_id == user_id)
            .order_by(SearchHistory.created_at.desc(), SearchHistory.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        items = list((await self.session.execute(stmt)).scalars().all())

        return HistoryPage(items=items, total=total, page=page, page_size=page_size)

    async def delete_one(self, user_id: str, history_id: int) -> bool:
        """Delete one row if it exists and belongs to ``user_id``."""
        result = await self.session.execute(
            delete(SearchHistory).where(
                SearchHistory.id == history_id,
                SearchHistory.user_id == user_id,
            )
        )
        await self.session.commit()
        return result.rowcount > 0

    async def clear_all(self, user_id: str) -> int:
        """Delete every row of ``user_id``; returns the number removed."""
        result = await self.session.execute(
            delete(SearchHistory).where(SearchHistory.user_id == user_id)
        )
        await self.session.commit()

        logger.info(f"Cleared {result.rowcount} history entries for user {user_id}")
        return result.rowcount
