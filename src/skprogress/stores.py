"""
Local progress stores -- the device-side copy of what the player earned.

Four small stores, each owning one slice of progress and its own
JSON file (or nothing, when kept in memory for tests):

    coins.json       balance + lifetime earnings
    high-score.json  best run
    unlocks.json     themes + power-ups
    gate.json        whether the intro gate was ever cleared

Feature code mutates them directly between syncs. During a sync the
orchestrator reads them all through LocalStores.snapshot() and writes
them all back through LocalStores.apply().
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from .models import DEFAULT_THEME, POWER_UP_PRICES, THEME_PRICES, ProgressSnapshot

logger = logging.getLogger("skprogress.stores")


class _CoinFile(BaseModel):
    coins: int = Field(default=0, ge=0)
    total_earned: int = Field(default=0, ge=0)


class _HighScoreFile(BaseModel):
    high_score: int = Field(default=0, ge=0)


class _UnlockFile(BaseModel):
    unlocked_themes: list[str] = Field(default_factory=lambda: [DEFAULT_THEME])
    owned_power_ups: list[str] = Field(default_factory=list)


class _GateFile(BaseModel):
    has_completed_gate: bool = False


class _JsonStore:
    """Base for a store persisted as one JSON document.

    Subclasses name the file layout in ``_schema``. A file that does not
    parse or does not match the layout is logged and replaced by defaults.
    """

    _schema: type[BaseModel]

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path
        self._data = self._defaults()
        if path is not None and path.exists():
            try:
                loaded = json.loads(path.read_text(encoding="utf-8"))
                self._data = self._coerce(loaded)
            except (OSError, json.JSONDecodeError, TypeError, ValueError) as exc:
                logger.warning("Ignoring unreadable store %s: %s", path.name, exc)

    def _defaults(self) -> dict[str, Any]:
        return self._schema().model_dump()

    def _coerce(self, loaded: Any) -> dict[str, Any]:
        if not isinstance(loaded, dict):
            raise TypeError("store file is not a JSON object")
        # pydantic's ValidationError is a ValueError
        return self._schema.model_validate(loaded).model_dump()

    def _save(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(f".{self._path.name}.tmp")
        tmp_path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")
        tmp_path.replace(self._path)


class CoinStore(_JsonStore):
    """Coin balance and lifetime earnings."""

    _schema = _CoinFile

    def get(self) -> tuple[int, int]:
        return int(self._data["coins"]), int(self._data["total_earned"])

    def set(self, value: tuple[int, int]) -> None:
        coins, total_earned = value
        self.set_coins(coins, total_earned)

    @property
    def coins(self) -> int:
        return int(self._data["coins"])

    @property
    def total_earned(self) -> int:
        return int(self._data["total_earned"])

    def add_coins(self, amount: int) -> None:
        """Credit coins; lifetime earnings grow by the same amount."""
        if amount <= 0:
            raise ValueError("amount must be positive")
        self._data["coins"] = self.coins + amount
        self._data["total_earned"] = self.total_earned + amount
        self._save()

    def spend_coins(self, amount: int) -> bool:
        """Debit coins if the balance covers it.

        Returns:
            True if the coins were spent.
        """
        if amount <= 0:
            raise ValueError("amount must be positive")
        if self.coins < amount:
            return False
        self._data["coins"] = self.coins - amount
        self._save()
        return True

    def set_coins(self, coins: int, total_earned: Optional[int] = None) -> None:
        if coins < 0:
            raise ValueError("coins cannot be negative")
        earned = self.total_earned if total_earned is None else total_earned
        self._data["coins"] = coins
        self._data["total_earned"] = max(earned, coins)
        self._save()

    def reset(self) -> None:
        self._data = self._defaults()
        self._save()


class HighScoreStore(_JsonStore):
    """Best score across all runs."""

    _schema = _HighScoreFile

    def get(self) -> int:
        return int(self._data["high_score"])

    def set(self, value: int) -> None:
        if value < 0:
            raise ValueError("high score cannot be negative")
        self._data["high_score"] = value
        self._save()

    def update(self, score: int) -> bool:
        """Record a run's score; only a new best is kept.

        Returns:
            True if ``score`` is a new high score.
        """
        if score <= self.get():
            return False
        self.set(score)
        return True


class UnlockStore(_JsonStore):
    """Unlocked themes and owned power-ups.

    unlock_theme() and purchase_power_up() only accept catalogue ids;
    set() takes any ids, since a merged snapshot may carry ids this
    build does not know and a merge must never drop them.
    """

    _schema = _UnlockFile

    def get(self) -> tuple[frozenset[str], frozenset[str]]:
        themes = frozenset(self._data["unlocked_themes"]) | {DEFAULT_THEME}
        return themes, frozenset(self._data["owned_power_ups"])

    def set(self, value: tuple[frozenset[str], frozenset[str]]) -> None:
        themes, power_ups = value
        self._data["unlocked_themes"] = sorted(set(themes) | {DEFAULT_THEME})
        self._data["owned_power_ups"] = sorted(power_ups)
        self._save()

    def has_theme(self, theme: str) -> bool:
        return theme in self.get()[0]

    def has_power_up(self, power_up: str) -> bool:
        return power_up in self.get()[1]

    def unlock_theme(self, theme: str) -> None:
        if theme not in THEME_PRICES:
            raise ValueError(f"Unknown theme: {theme}")
        themes, power_ups = self.get()
        self.set((themes | {theme}, power_ups))

    def purchase_power_up(self, power_up: str) -> None:
        if power_up not in POWER_UP_PRICES:
            raise ValueError(f"Unknown power-up: {power_up}")
        themes, power_ups = self.get()
        self.set((themes, power_ups | {power_up}))


class GateStore(_JsonStore):
    """Sticky flag: has the player ever cleared the intro gate."""

    _schema = _GateFile

    def get(self) -> bool:
        return bool(self._data["has_completed_gate"])

    def set(self, value: bool) -> None:
        self._data["has_completed_gate"] = bool(value)
        self._save()

    def complete(self) -> None:
        self.set(True)


class LocalStores:
    """The four progress stores, passed around as one unit.

    Args:
        coins: Coin balance store.
        high_score: High score store.
        unlocks: Theme and power-up store.
        gate: Gate completion store.
    """

    def __init__(
        self,
        coins: CoinStore,
        high_score: HighScoreStore,
        unlocks: UnlockStore,
        gate: GateStore,
    ) -> None:
        self.coins = coins
        self.high_score = high_score
        self.unlocks = unlocks
        self.gate = gate

    @classmethod
    def in_memory(cls) -> "LocalStores":
        return cls(CoinStore(), HighScoreStore(), UnlockStore(), GateStore())

    @classmethod
    def open(cls, stores_dir: Path) -> "LocalStores":
        """Open (or create) file-backed stores under ``stores_dir``."""
        stores_dir = stores_dir.expanduser()
        return cls(
            CoinStore(stores_dir / "coins.json"),
            HighScoreStore(stores_dir / "high-score.json"),
            UnlockStore(stores_dir / "unlocks.json"),
            GateStore(stores_dir / "gate.json"),
        )

    def snapshot(self) -> ProgressSnapshot:
        coins, total_earned = self.coins.get()
        themes, power_ups = self.unlocks.get()
        return ProgressSnapshot(
            coins=coins,
            total_earned=total_earned,
            high_score=self.high_score.get(),
            unlocked_themes=themes,
            owned_power_ups=power_ups,
            has_completed_gate=self.gate.get(),
        )

    def apply(self, snapshot: ProgressSnapshot) -> None:
        """Write every field of ``snapshot`` into the stores in one go."""
        self.coins.set((snapshot.coins, snapshot.total_earned))
        self.high_score.set(snapshot.high_score)
        self.unlocks.set((snapshot.unlocked_themes, snapshot.owned_power_ups))
        self.gate.set(snapshot.has_completed_gate)
