"""
Client-side authentication session.

``AuthSessionManager`` owns the token and the signed-in user. Callers read
an immutable ``SessionContext`` snapshot instead of sharing mutable state.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from loguru import logger

from .api import MediaSearchAPI
from .gateway import ApiGateway, GatewayError, UnexpectedResponseError
from .storage import TokenStorage

Navigate = Callable[[str], None]


def _no_navigation(location: str) -> None:
    pass


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class SessionContext:
    """Snapshot of the session at one point in time."""

    state: SessionState
    user: Optional[dict[str, Any]] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


class AuthSessionManager:
    """
    Login, logout and session restore for one client.

    Args:
        gateway: Gateway used for backend calls; its token storage is the
            manager's token storage.
        navigate: Called with a location after login, logout and expiry.
    """

    def __init__(self, gateway: ApiGateway, navigate: Optional[Navigate] = None):
        self.gateway = gateway
        self.api = MediaSearchAPI(gateway)
        self.navigate = navigate or _no_navigation
        self._state = SessionState.UNAUTHENTICATED
        self._user: Optional[dict[str, Any]] = None
        self._remove_listener = gateway.add_unauthorized_listener(self._on_unauthorized)

    @property
    def storage(self) -> TokenStorage:
        return self.gateway.storage

    @property
    def context(self) -> SessionContext:
        return SessionContext(state=self._state, user=dict(self._user) if self._user else None)

    @property
    def user(self) -> Optional[dict[str, Any]]:
        return dict(self._user) if self._user else None

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    @staticmethod
    def _field(response: Any, key: str) -> Any:
        if not isinstance(response, dict) or not response.get(key):
            raise UnexpectedResponseError(f"Response is missing '{key}'")
        return response[key]

    def _user_from(self, response: Any) -> dict[str, Any]:
        user = self._field(response, "user")
        if not isinstance(user, dict):
            raise UnexpectedResponseError("Response 'user' is not an object")
        return dict(user)

    def _sign_in(self, response: Any) -> dict[str, Any]:
        token = self._field(response, "token")
        user = self._user_from(response)
        self.storage.set(token)
        self._user = user
        self._state = SessionState.AUTHENTICATED
        self.navigate("/")
        return self.user

    def _sign_out_locally(self) -> None:
        self.storage.clear()
        self._user = None
        self._state = SessionState.UNAUTHENTICATED

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """Exchange credentials for a session; errors propagate."""
        self._state = SessionState.LOADING
        try:
            return self._sign_in(await self.api.login(email, password))
        except Exception:
            self._state = SessionState.UNAUTHENTICATED
            raise

    async def register(self, profile: dict[str, Any]) -> dict[str, Any]:
        """Create an account and sign in; errors propagate."""
        self._state = SessionState.LOADING
        try:
            return self._sign_in(await self.api.register(profile))
        except Exception:
            self._state = SessionState.UNAUTHENTICATED
            raise

    async def logout(self) -> None:
        """Tell the server, then clear local state whatever it answered."""
        try:
            await self.api.logout()
        except GatewayError as e:
            logger.error(f"Logout error: {e.message}")
        finally:
            self._sign_out_locally()
            self.navigate("/")

    async def restore_session(self) -> SessionContext:
        """
        Resume a session from a stored token.

        Any failure drops the token; there is no retry.
        """
        token = self.storage.get()
        if not token:
            self._state = SessionState.UNAUTHENTICATED
            return self.context

        self._state = SessionState.LOADING
        try:
            user = self._user_from(await self.api.get_current_user())
        except GatewayError as e:
            logger.info(f"Stored token rejected, starting signed out: {e.message}")
            self._sign_out_locally()
            return self.context

        self._user = user
        self._state = SessionState.AUTHENTICATED
        return self.context

    def update_user(self, patch: dict[str, Any]) -> Optional[dict[str, Any]]:
        """Merge ``patch`` into the local user; no-op when signed out."""
        if self._user is None:
            return None
        self._user = {**self._user, **patch}
        return self.user

    async def update_profile(self, patch: dict[str, Any]) -> Optional[dict[str, Any]]:
        response = await self.api.update_profile(patch)
        return self.update_user(self._user_from(response))

    async def change_password(self, current_password: str, new_password: str) -> str:
        response = await self.api.change_password(current_password, new_password)
        return response["message"]

    async def refresh_token(self) -> str:
        token = self._field(await self.api.refresh_token(), "token")
        self.storage.set(token)
        return token

    def _on_unauthorized(self, location: str) -> None:
        logger.info("Session expired")
        self._user = None
        self._state = SessionState.UNAUTHENTICATED
        self.navigate(location)

    def close(self) -> None:
        """Stop listening to the gateway."""
        self._remove_listener()
