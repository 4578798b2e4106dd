"""
API Routes for MediaSearch

Route modules:
- auth: Registration, login and account management
- search: Openverse search, media detail, related media and stats
- history: Per-user search history
"""

from mediasearch.api.routes.auth import router as auth_router
from mediasearch.api.routes.search import router as search_router
from mediasearch.api.routes.history import router as history_router

__all__ = [
    "auth_router",
    "search_router",
    "history_router",
]
