"""
Pydantic models for player progress and sign-in identity.

One snapshot shape serves the device copy, the cloud copy, and the
merged result. Every field either only grows (counters, unlock sets)
or only flips one way (the gate flag), which is what lets two copies
be combined without any version bookkeeping.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

DEFAULT_THEME = "beach"

THEME_PRICES: dict[str, int] = {
    "beach": 0,
    "sunset": 50,
    "night": 75,
    "tropical": 100,
}

POWER_UP_PRICES: dict[str, int] = {
    "double-jump": 25,
    "shield": 25,
    "slow-mo": 25,
}


class AuthSource(str, Enum):
    """Which sign-in backend vouched for the player."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


class AuthUser(BaseModel):
    """A user as reported by either sign-in backend."""

    id: str
    username: Optional[str] = None
    display_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("display_name", "displayName"),
    )


class Identity(BaseModel):
    """Canonical signed-in player, independent of the backend used."""

    id: str
    source: AuthSource
    username: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def user_key(self) -> str:
        """Cloud lookup key derived from (source, id)."""
        return f"{self.source.value}:{self.id}"


class ProgressSnapshot(BaseModel):
    """Point-in-time copy of everything the player has earned.

    Missing or null fields fall back to the most conservative value:
    zero counters, the default theme only, no power-ups, gate not done.
    """

    coins: int = Field(default=0, ge=0)
    total_earned: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("total_earned", "totalEarned"),
    )
    high_score: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("high_score", "highScore"),
    )
    unlocked_themes: frozenset[str] = Field(
        default_factory=lambda: frozenset({DEFAULT_THEME}),
        validation_alias=AliasChoices("unlocked_themes", "unlockedThemes"),
    )
    owned_power_ups: frozenset[str] = Field(
        default_factory=frozenset,
        validation_alias=AliasChoices(
            "owned_power_ups", "ownedPowerUps", "unlocked_powerups",
        ),
    )
    has_completed_gate: bool = Field(
        default=False,
        validation_alias=AliasChoices("has_completed_gate", "hasCompletedGate"),
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data

    @field_validator("unlocked_themes", mode="after")
    @classmethod
    def _keep_default_theme(cls, value: frozenset[str]) -> frozenset[str]:
        return value | {DEFAULT_THEME}

    @model_validator(mode="after")
    def _earned_covers_balance(self) -> "ProgressSnapshot":
        # Lifetime earnings can never be below what is in the wallet.
        if self.total_earned < self.coins:
            self.total_earned = self.coins
        return self

    def to_record(self) -> dict[str, Any]:
        """Plain-JSON dict with sorted id lists."""
        return {
            "coins": self.coins,
            "total_earned": self.total_earned,
            "high_score": self.high_score,
            "unlocked_themes": sorted(self.unlocked_themes),
            "owned_power_ups": sorted(self.owned_power_ups),
            "has_completed_gate": self.has_completed_gate,
        }


class CloudProfile(BaseModel):
    """Cloud-side profile row owning a progress record."""

    id: str
    user_key: str
    username: Optional[str] = None
    has_completed_gate: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CloudRecord(BaseModel):
    """What the cloud holds for one player: profile plus progress."""

    profile: CloudProfile
    progress: ProgressSnapshot = Field(default_factory=ProgressSnapshot)
    updated_at: Optional[datetime] = None
