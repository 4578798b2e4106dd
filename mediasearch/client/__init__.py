"""
Python client for the MediaSearch API.

- ApiGateway: HTTP transport with token handling and error classification
- MediaSearchAPI: endpoint wrappers
- AuthSessionManager: login/logout/session restore
- SearchOrchestrator: search state and paging
"""

from mediasearch.client.storage import (
    TokenStorage,
    MemoryTokenStorage,
    FileTokenStorage,
)
from mediasearch.client.gateway import (
    ApiGateway,
    ClientConfig,
    GatewayError,
    NetworkError,
    HttpError,
    RequestSetupError,
    UnexpectedResponseError,
    LOGIN_EXPIRED_LOCATION,
)
from mediasearch.client.api import MediaSearchAPI
from mediasearch.client.session import (
    AuthSessionManager,
    SessionContext,
    SessionState,
)
from mediasearch.client.search import (
    SearchOrchestrator,
    SearchQuery,
    parse_query,
    SEARCH_ERROR_MESSAGE,
)

__all__ = [
    # Storage
    "TokenStorage",
    "MemoryTokenStorage",
    "FileTokenStorage",
    # Gateway
    "ApiGateway",
    "ClientConfig",
    "GatewayError",
    "NetworkError",
    "HttpError",
    "RequestSetupError",
    "UnexpectedResponseError",
    "LOGIN_EXPIRED_LOCATION",
    # Endpoints
    "MediaSearchAPI",
    # Session
    "AuthSessionManager",
    "SessionContext",
    "SessionState",
    # Search
    "SearchOrchestrator",
    "SearchQuery",
    "parse_query",
    "SEARCH_ERROR_MESSAGE",
]
