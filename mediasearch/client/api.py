"""
Typed-ish wrappers over the MediaSearch endpoints.
"""

from typing import Any, Optional

from .gateway import ApiGateway


class MediaSearchAPI:
    """One method per backend endpoint."""

    def __init__(self, gateway: ApiGateway):
        self.gateway = gateway

    # -------------------------------------------------------------------------
    # Auth
    # -------------------------------------------------------------------------

    async def register(self, profile: dict[str, Any]) -> dict[str, Any]:
        """Returns ``{token, user}``."""
        return await self.gateway.post("/auth/register", profile, credential_exchange=True)

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """Returns ``{token, user}``."""
        return await self.gateway.post(
            "/auth/login",
            {"email": email, "password": password},
            credential_exchange=True,
        )

    async def logout(self) -> dict[str, Any]:
        return await self.gateway.post("/auth/logout")

    async def get_current_user(self) -> dict[str, Any]:
        """Returns ``{user}``."""
        return await self.gateway.get("/auth/user")

    async def change_password(self, current_password: str, new_password: str) -> dict[str, Any]:
        return await self.gateway.post(
            "/auth/password",
            {"currentPassword": current_password, "newPassword": new_password},
        )

    async def refresh_token(self) -> dict[str, Any]:
        """Returns ``{token}``."""
        return await self.gateway.post("/auth/refresh")

    async def update_profile(self, patch: dict[str, Any]) -> dict[str, Any]:
        """Returns ``{user}``."""
        return await self.gateway.post("/auth/profile", patch)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def search_media(
        self,
        query: str,
        media_type: str = "all",
        filters: Optional[dict[str, str]] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> dict[str, Any]:
        """Search Openverse through the backend; empty filter values are not sent."""
        params: dict[str, Any] = {"q": query, "mediaType": media_type}
        if page:
            params["page"] = page
        if page_size:
            params["pageSize"] = page_size
        for key, value in (filters or {}).items():
            if value:
                params[key] = value
        return await self.gateway.get("/search", params=params)

    async def get_media_details(self, media_type: str, media_id: str) -> dict[str, Any]:
        return await self.gateway.get(f"/media/{media_type}/{media_id}")

    async def get_related_media(self, media_type: str, media_id: str) -> dict[str, Any]:
        return await self.gateway.get(f"/media/{media_type}/{media_id}/related")

    async def get_stats(self) -> dict[str, Any]:
        return await self.gateway.get("/stats")

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    async def get_search_history(self, page: int = 1, page_size: int = 20) -> dict[str, Any]:
        """Returns ``{total, page, pageSize, pages, history}``."""
        return await self.gateway.get("/history", params={"page": page, "pageSize": page_size})

    async def delete_search_history_item(self, history_id: int) -> dict[str, Any]:
        return await self.gateway.delete(f"/history/{history_id}")

    async def clear_search_history(self) -> dict[str, Any]:
        return await self.gateway.delete("/history")
