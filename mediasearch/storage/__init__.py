"""
Storage Module for MediaSearch

Persistent storage for accounts and search history:
- SQLAlchemy models (users, search_history)
- Async repositories
- Off-response history recording
"""

from mediasearch.storage.models import (
    Base,
    User,
    SearchHistory,
)
from mediasearch.storage.user_repository import UserRepository
from mediasearch.storage.history_repository import (
    SearchHistoryRepository,
    HistoryPage,
)
from mediasearch.storage.history_recorder import (
    HistoryRecorder,
    SearchPerformed,
)

__all__ = [
    # Models
    "Base",
    "User",
    "SearchHistory",
    # Repositories
    "UserRepository",
    "SearchHistoryRepository",
    "HistoryPage",
    # Recording
    "HistoryRecorder",
    "SearchPerformed",
]
