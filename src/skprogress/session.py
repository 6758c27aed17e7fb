"""
Fallback sign-in: the device-side session and the backend interface.

The credential check itself belongs to the fallback backend; this
module only keeps the signed-in user on disk between launches and
applies the username/password rules the backend enforces.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError

from .identity import FallbackAuthState
from .models import AuthUser

logger = logging.getLogger("skprogress.session")

USERNAME_RE = re.compile(r"^[a-z0-9_]+$")
MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 4


class AuthResult(BaseModel):
    """Outcome of a fallback sign-in or sign-up."""

    user: Optional[AuthUser] = None
    error: Optional[str] = None


def normalize_username(username: str) -> str:
    return username.strip().lower()


def validate_credentials(username: str, password: str) -> Optional[str]:
    """Check sign-up credentials.

    Returns:
        An error message for the player, or None if they are acceptable.
    """
    clean = normalize_username(username)
    if len(clean) < MIN_USERNAME_LENGTH:
        return f"Username must be at least {MIN_USERNAME_LENGTH} characters"
    if not USERNAME_RE.match(clean):
        return "Username can only contain letters, numbers, and underscores"
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    return None


class FallbackAuthBackend(ABC):
    """Credential backend used when the primary sign-in is unavailable."""

    @abstractmethod
    def sign_in(self, username: str, password: str) -> AuthResult:
        """Verify credentials and return the user or an error."""

    @abstractmethod
    def sign_up(
        self, username: str, password: str, display_name: Optional[str] = None,
    ) -> AuthResult:
        """Create an account and return the new user or an error."""


class SessionStore:
    """The fallback backend's signed-in user, persisted as JSON.

    Args:
        path: Session file (e.g. ~/.skprogress/session.json).
    """

    def __init__(self, path: Path) -> None:
        self.path = path.expanduser()

    def get(self) -> Optional[AuthUser]:
        if not self.path.exists():
            return None
        try:
            return AuthUser.model_validate(
                json.loads(self.path.read_text(encoding="utf-8"))
            )
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Discarding unreadable session: %s", exc)
            return None

    def save(self, user: AuthUser) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(user.model_dump_json(indent=2), encoding="utf-8")
        logger.info("Saved fallback session for %s", user.username or user.id)

    def clear(self) -> bool:
        """Remove the stored session.

        Returns:
            True if there was a session to remove.
        """
        if not self.path.exists():
            return False
        self.path.unlink()
        logger.info("Cleared fallback session")
        return True

    def auth_state(self) -> FallbackAuthState:
        """Loaded fallback state, ready to hand to the identity resolver."""
        return FallbackAuthState(is_loaded=True, user=self.get())
