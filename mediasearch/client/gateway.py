"""
HTTP gateway to the MediaSearch backend.

Every client call goes through ``ApiGateway.request``:
- Attaches the bearer token from the injected ``TokenStorage``
- Classifies failures into ``NetworkError`` / ``HttpError`` / ``RequestSetupError``
- On 401, drops the token and tells listeners where to send the user
"""

import os
from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx
from loguru import logger

from .storage import FileTokenStorage, MemoryTokenStorage, TokenStorage

LOGIN_EXPIRED_LOCATION = "/login?expired=true"

UnauthorizedListener = Callable[[str], None]


@dataclass
class ClientConfig:
    """Client settings loaded from environment."""

    api_url: str = "http://localhost:8000/api"
    token_file: Optional[str] = None
    timeout: float = 15.0

    @classmethod
    def from_env(cls) -> "ClientConfig":
        return cls(
            api_url=os.getenv("MEDIASEARCH_API_URL", cls.api_url),
            token_file=os.getenv("MEDIASEARCH_TOKEN_FILE"),
            timeout=float(os.getenv("MEDIASEARCH_TIMEOUT_SECONDS", cls.timeout)),
        )

    def token_storage(self) -> TokenStorage:
        """File storage when a token file is configured, memory otherwise."""
        if self.token_file:
            return FileTokenStorage(self.token_file)
        return MemoryTokenStorage()


# =============================================================================
# Errors
# =============================================================================

class GatewayError(Exception):
    """Base class for failed backend calls."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NetworkError(GatewayError):
    """No response arrived (connection failure, timeout)."""


class HttpError(GatewayError):
    """The backend answered with a non-2xx status."""

    def __init__(self, status: int, body: Any = None, message: Optional[str] = None):
        if message is None:
            if isinstance(body, dict) and body.get("message"):
                message = str(body["message"])
            else:
                message = f"Request failed with status {status}"
        self.status = status
        self.body = body
        super().__init__(message)


class RequestSetupError(GatewayError):
    """The request could not be built (bad URL, unsupported scheme, unserialisable body)."""


class UnexpectedResponseError(GatewayError):
    """A 2xx response whose body is not the expected shape."""


# =============================================================================
# Gateway
# =============================================================================

class ApiGateway:
    """
    Async JSON client for the MediaSearch API.

    Example:
        async with ApiGateway(storage=MemoryTokenStorage()) as gateway:
            results = await gateway.get("/search", params={"q": "cats"})
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        storage: Optional[TokenStorage] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize gateway.

        Args:
            base_url: API root, e.g. ``http://localhost:8000/api``.
            storage: Token storage shared with the session manager.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (tests use ``MockTransport``).
        """
        self.base_url = (base_url or ClientConfig.api_url).rstrip("/")
        self.storage = storage or MemoryTokenStorage()
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._unauthorized_listeners: list[UnauthorizedListener] = []

    @classmethod
    def from_config(cls, config: Optional[ClientConfig] = None, **kwargs) -> "ApiGateway":
        config = config or ClientConfig.from_env()
        return cls(
            base_url=config.api_url,
            storage=config.token_storage(),
            timeout=config.timeout,
            **kwargs,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    def add_unauthorized_listener(self, listener: UnauthorizedListener) -> Callable[[], None]:
        """
        Register a callback run with the login location after a 401.

        Returns:
            A function that unregisters the listener.
        """
        self._unauthorized_listeners.append(listener)

        def remove() -> None:
            if listener in self._unauthorized_listeners:
                self._unauthorized_listeners.remove(listener)

        return remove

    def _handle_unauthorized(self) -> None:
        self.storage.clear()
        for listener in list(self._unauthorized_listeners):
            try:
                listener(LOGIN_EXPIRED_LOCATION)
            except Exception as e:
                logger.error(f"Unauthorized listener failed: {e}")

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        credential_exchange: bool = False,
    ) -> Any:
        """
        Send one request and return the decoded JSON body.

        Args:
            method: HTTP method.
            path: Path relative to the base URL.
            body: JSON body.
            params: Query parameters.
            headers: Extra headers.
            credential_exchange: Login/register call; its 401 means bad
                credentials, not an expired session.

        Raises:
            NetworkError, HttpError, RequestSetupError.
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        request_headers = dict(headers or {})

        token = self.storage.get()
        if token:
            request_headers["Authorization"] = f"Bearer {token}"

        client = await self._get_client()

        try:
            response = await client.request(
                method.upper(),
                url,
                json=body,
                params=params,
                headers=request_headers,
            )
        except (httpx.UnsupportedProtocol, httpx.InvalidURL) as e:
            logger.error(f"API request setup failed: {e}")
            raise RequestSetupError(f"Invalid request URL: {url}") from e
        except httpx.TransportError as e:
            logger.error(f"API request {method.upper()} {url} got no response: {e}")
            raise NetworkError("Unable to reach the server. Check your connection.") from e
        except (TypeError, ValueError) as e:
            logger.error(f"API request setup failed: {e}")
            raise RequestSetupError(f"Could not build request: {e}") from e

        data = self._parse_body(response)

        if response.is_success:
            return data

        status = response.status_code
        if status == 401 and not credential_exchange:
            self._handle_unauthorized()
        elif status == 429:
            logger.error("Rate limit exceeded")
        elif status >= 500:
            logger.error(f"Server error: {data}")

        raise HttpError(status, data)

    async def get(self, path: str, params: Optional[dict[str, Any]] = None, **kwargs) -> Any:
        return await self.request("GET", path, params=params, **kwargs)

    async def post(self, path: str, body: Any = None, **kwargs) -> Any:
        return await self.request("POST", path, body=body, **kwargs)

    async def put(self, path: str, body: Any = None, **kwargs) -> Any:
        return await self.request("PUT", path, body=body, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ApiGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
