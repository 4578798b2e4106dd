"""
Token storage for the MediaSearch client.

The gateway and the session manager share one ``TokenStorage`` instance,
injected at construction.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from loguru import logger

TOKEN_KEY = "token"


class TokenStorage(ABC):
    """Where the bearer token lives between requests."""

    @abstractmethod
    def get(self) -> Optional[str]:
        """Stored token, or None."""

    @abstractmethod
    def set(self, token: str) -> None:
        """Replace the stored token."""

    @abstractmethod
    def clear(self) -> None:
        """Forget the stored token."""


class MemoryTokenStorage(TokenStorage):
    """Process-local storage; nothing survives a restart."""

    def __init__(self, token: Optional[str] = None):
        self._token = token

    def get(self) -> Optional[str]:
        return self._token

    def set(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class FileTokenStorage(TokenStorage):
    """
    Durable storage in a small JSON file.

    The file holds ``{"token": "..."}``. A missing or unreadable file reads
    as no token.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def get(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read token file {self.path}: {e}")
            return None
        token = data.get(TOKEN_KEY) if isinstance(data, dict) else None
        return token or None

    def set(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({TOKEN_KEY: token}), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
