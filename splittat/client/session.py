"""
Client-side session storage.

The signed-in token and user are kept in an ``AuthSession`` owned by a
``SessionStore``. The store is handed to the client explicitly.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from ..logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class AuthSession:
    """Bearer token plus the user it was issued for."""

    token: str
    user: Dict[str, Any] = field(default_factory=dict)
    expires_at: Optional[str] = None

    @property
    def user_id(self) -> Optional[str]:
        return self.user.get("id")

    @classmethod
    def from_auth_response(cls, body: Dict[str, Any]) -> "AuthSession":
        """Build a session from a register/login response body."""
        return cls(
            token=body["token"],
            user=body.get("user") or {},
            expires_at=body.get("expiresAt"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SessionStore(ABC):
    """Where the current session lives between calls."""

    @abstractmethod
    def load(self) -> Optional[AuthSession]:
        """Return the stored session, or None when signed out."""

    @abstractmethod
    def save(self, session: AuthSession) -> None:
        """Replace the stored session."""

    @abstractmethod
    def clear(self) -> None:
        """Forget the stored session."""


class MemorySessionStore(SessionStore):
    """Keeps the session in process memory only."""

    def __init__(self, session: Optional[AuthSession] = None) -> None:
        self._session = session

    def load(self) -> Optional[AuthSession]:
        return self._session

    def save(self, session: AuthSession) -> None:
        self._session = session

    def clear(self) -> None:
        self._session = None


class FileSessionStore(SessionStore):
    """
    Persists the session as a JSON file.

    A missing or unreadable file counts as signed out.
    """

    def __init__(self, path) -> None:
        self.path = Path(path)

    def load(self) -> Optional[AuthSession]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return AuthSession(
                token=data["token"],
                user=data.get("user") or {},
                expires_at=data.get("expires_at"),
            )
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable session file", path=str(self.path), error=str(e))
            return None

    def save(self, session: AuthSession) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(session.to_dict()), encoding="utf-8")

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
