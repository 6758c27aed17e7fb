"""
Identity resolution across the two sign-in backends.

The primary backend is the hosted sign-in service; the fallback is the
local username/password flow with its session kept on the device.
Either can vouch for a player. When both do, the primary wins.

Each backend's signed-in state is wrapped in a tagged variant
(PrimarySignIn / FallbackSignIn) and turned into one Identity by a
single function, so nothing downstream ever branches on backend type.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from pydantic import BaseModel

from .events import IDENTITY_CHANGED, EventBus
from .models import AuthSource, AuthUser, Identity

logger = logging.getLogger("skprogress.identity")


class PrimaryAuthState(BaseModel):
    """What the hosted sign-in backend reports."""

    is_loaded: bool = False
    is_signed_in: bool = False
    user: Optional[AuthUser] = None


class FallbackAuthState(BaseModel):
    """What the local credential backend reports.

    ``is_loaded`` turns true once the stored session has been read.
    """

    is_loaded: bool = False
    user: Optional[AuthUser] = None


@dataclass(frozen=True)
class PrimarySignIn:
    user: AuthUser


@dataclass(frozen=True)
class FallbackSignIn:
    user: AuthUser


SignIn = Union[PrimarySignIn, FallbackSignIn]


def identity_from_sign_in(sign_in: SignIn) -> Identity:
    """Flatten a backend-tagged sign-in into a canonical Identity."""
    source = (
        AuthSource.PRIMARY if isinstance(sign_in, PrimarySignIn)
        else AuthSource.FALLBACK
    )
    user = sign_in.user
    return Identity(
        id=user.id,
        source=source,
        username=user.username,
        display_name=user.display_name or user.username,
    )


def active_sign_in(
    primary: PrimaryAuthState, fallback: FallbackAuthState,
) -> Optional[SignIn]:
    """Pick the sign-in that counts, primary first."""
    if primary.is_signed_in and primary.user is not None:
        return PrimarySignIn(primary.user)
    if fallback.user is not None:
        return FallbackSignIn(fallback.user)
    return None


def resolve(
    primary: PrimaryAuthState, fallback: FallbackAuthState,
) -> Optional[Identity]:
    """Current canonical identity, or None when nobody is signed in."""
    sign_in = active_sign_in(primary, fallback)
    if sign_in is None:
        return None
    return identity_from_sign_in(sign_in)


def is_ready(primary: PrimaryAuthState, fallback: FallbackAuthState) -> bool:
    """Both backends have settled, so a None identity really means signed out."""
    return primary.is_loaded and fallback.is_loaded


class IdentityResolver:
    """Tracks backend state and announces identity changes.

    Publishes ``identity.changed`` on the bus with
    ``{"identity": dict | None, "ready": bool}`` whenever the
    resolved (identity, ready) pair differs from the last one.

    Args:
        bus: Event bus to publish on.
    """

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self._primary = PrimaryAuthState()
        self._fallback = FallbackAuthState()
        self._last: Optional[tuple[Optional[Identity], bool]] = None

    @property
    def primary(self) -> PrimaryAuthState:
        return self._primary

    @property
    def fallback(self) -> FallbackAuthState:
        return self._fallback

    def resolve(self) -> Optional[Identity]:
        return resolve(self._primary, self._fallback)

    def is_ready(self) -> bool:
        return is_ready(self._primary, self._fallback)

    def update_primary(self, state: PrimaryAuthState) -> None:
        self._primary = state
        self._announce()

    def update_fallback(self, state: FallbackAuthState) -> None:
        self._fallback = state
        self._announce()

    def _announce(self) -> None:
        current = (self.resolve(), self.is_ready())
        if current == self._last:
            return
        self._last = current
        identity, ready = current
        logger.info(
            "Identity now %s (ready=%s)",
            identity.user_key if identity else "signed out", ready,
        )
        self._bus.publish(IDENTITY_CHANGED, {
            "identity": identity.model_dump(mode="json") if identity else None,
            "ready": ready,
        })
