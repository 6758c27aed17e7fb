"""Tests for the local progress stores."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from skprogress.models import ProgressSnapshot
from skprogress.stores import (
    CoinStore,
    GateStore,
    HighScoreStore,
    LocalStores,
    UnlockStore,
)


class TestCoinStore:

    def test_add_grows_balance_and_earnings(self):
        store = CoinStore()
        store.add_coins(10)
        store.add_coins(5)
        assert store.get() == (15, 15)

    def test_spend_keeps_earnings(self):
        store = CoinStore()
        store.add_coins(30)
        assert store.spend_coins(20) is True
        assert store.get() == (10, 30)

    def test_overdraft_refused(self):
        store = CoinStore()
        store.add_coins(5)
        assert store.spend_coins(6) is False
        assert store.coins == 5

    def test_non_positive_amounts_rejected(self):
        store = CoinStore()
        with pytest.raises(ValueError):
            store.add_coins(0)
        with pytest.raises(ValueError):
            store.spend_coins(-3)

    def test_set_coins_keeps_earnings_at_least_balance(self):
        store = CoinStore()
        store.set_coins(40, total_earned=10)
        assert store.get() == (40, 40)

    def test_reset(self):
        store = CoinStore()
        store.add_coins(9)
        store.reset()
        assert store.get() == (0, 0)


class TestOtherStores:

    def test_high_score_only_rises(self):
        store = HighScoreStore()
        assert store.update(100) is True
        assert store.update(50) is False
        assert store.get() == 100

    def test_unlock_theme_and_power_up(self):
        store = UnlockStore()
        store.unlock_theme("night")
        store.purchase_power_up("shield")
        assert store.has_theme("night")
        assert store.has_theme("beach")
        assert store.has_power_up("shield")
        assert not store.has_power_up("slow-mo")

    def test_unknown_catalogue_ids_rejected(self):
        store = UnlockStore()
        with pytest.raises(ValueError):
            store.unlock_theme("volcano")
        with pytest.raises(ValueError):
            store.purchase_power_up("teleport")

    def test_unlock_set_keeps_default_theme(self):
        store = UnlockStore()
        store.set((frozenset({"night"}), frozenset()))
        assert store.get()[0] == {"beach", "night"}

    def test_unlock_set_accepts_ids_outside_catalogue(self):
        store = UnlockStore()
        store.set((frozenset({"volcano"}), frozenset({"teleport"})))
        assert store.has_theme("volcano")
        assert store.has_power_up("teleport")

    def test_gate_complete(self):
        store = GateStore()
        assert store.get() is False
        store.complete()
        assert store.get() is True


class TestPersistence:

    def test_values_survive_reopen(self, tmp_path: Path):
        stores = LocalStores.open(tmp_path / "stores")
        stores.coins.add_coins(12)
        stores.high_score.update(300)
        stores.unlocks.unlock_theme("sunset")
        stores.gate.complete()

        reopened = LocalStores.open(tmp_path / "stores")
        snap = reopened.snapshot()
        assert snap.coins == 12
        assert snap.high_score == 300
        assert "sunset" in snap.unlocked_themes
        assert snap.has_completed_gate is True

    def test_corrupt_file_falls_back_to_defaults(self, tmp_path: Path):
        path = tmp_path / "coins.json"
        path.write_text("{not json")
        assert CoinStore(path).get() == (0, 0)

    def test_non_object_file_falls_back_to_defaults(self, tmp_path: Path):
        path = tmp_path / "gate.json"
        path.write_text(json.dumps([True]))
        assert GateStore(path).get() is False

    @pytest.mark.parametrize(
        "store_cls, filename, content, expected",
        [
            (CoinStore, "coins.json", {"coins": "lots", "total_earned": -4}, (0, 0)),
            (HighScoreStore, "high-score.json", {"high_score": "x"}, 0),
            (HighScoreStore, "high-score.json", {"high_score": -1}, 0),
            (UnlockStore, "unlocks.json", {"unlocked_themes": 7},
             (frozenset({"beach"}), frozenset())),
            (GateStore, "gate.json", {"has_completed_gate": "maybe"}, False),
        ],
    )
    def test_wrongly_typed_file_falls_back_to_defaults(
        self, tmp_path: Path, store_cls, filename, content, expected,
    ):
        path = tmp_path / filename
        path.write_text(json.dumps(content))
        assert store_cls(path).get() == expected

    def test_wrongly_typed_files_give_default_snapshot(self, tmp_path: Path):
        stores_dir = tmp_path / "stores"
        stores_dir.mkdir()
        (stores_dir / "coins.json").write_text(json.dumps({"coins": "lots"}))
        (stores_dir / "high-score.json").write_text(json.dumps({"high_score": -1}))
        (stores_dir / "unlocks.json").write_text(json.dumps({"unlocked_themes": 7}))
        (stores_dir / "gate.json").write_text(json.dumps({"has_completed_gate": []}))
        assert LocalStores.open(stores_dir).snapshot() == ProgressSnapshot()

    def test_unreadable_path_falls_back_to_defaults(self, tmp_path: Path):
        path = tmp_path / "coins.json"
        path.mkdir()
        assert CoinStore(path).get() == (0, 0)

    def test_write_leaves_no_temp_file(self, tmp_path: Path):
        store = CoinStore(tmp_path / "coins.json")
        store.add_coins(1)
        assert [p.name for p in tmp_path.iterdir()] == ["coins.json"]


class TestLocalStores:

    def test_snapshot_apply_roundtrip(self, stores: LocalStores):
        target = ProgressSnapshot(
            coins=50,
            total_earned=90,
            high_score=777,
            unlocked_themes={"beach", "tropical"},
            owned_power_ups={"double-jump"},
            has_completed_gate=True,
        )
        stores.apply(target)
        assert stores.snapshot() == target

    def test_fresh_snapshot_is_default(self, stores: LocalStores):
        assert stores.snapshot() == ProgressSnapshot()
