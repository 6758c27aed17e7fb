"""Tests for the merge engine: field rules and algebraic properties."""

from __future__ import annotations

import itertools

import pytest

from skprogress.merge import merge
from skprogress.models import DEFAULT_THEME, ProgressSnapshot

SAMPLES = [
    ProgressSnapshot(),
    ProgressSnapshot(coins=50, total_earned=80, unlocked_themes={"beach"}),
    ProgressSnapshot(coins=30, total_earned=120, high_score=900,
                     unlocked_themes={"beach", "forest"}),
    ProgressSnapshot(high_score=1200, owned_power_ups={"shield", "slow-mo"},
                     has_completed_gate=True),
    ProgressSnapshot(coins=7, total_earned=7, unlocked_themes={"night", "tropical"},
                     owned_power_ups={"double-jump"}),
]

PAIRS = list(itertools.product(SAMPLES, repeat=2))


class TestFieldRules:

    def test_scenario_local_richer_coins_cloud_richer_themes(self):
        local = ProgressSnapshot(coins=50, unlocked_themes={"beach"})
        cloud = ProgressSnapshot(coins=30, unlocked_themes={"beach", "forest"})
        merged = merge(local, cloud)
        assert merged.coins == 50
        assert merged.unlocked_themes == {"beach", "forest"}

    def test_gate_is_sticky(self):
        local = ProgressSnapshot(has_completed_gate=False)
        cloud = ProgressSnapshot(has_completed_gate=True)
        assert merge(local, cloud).has_completed_gate is True
        assert merge(cloud, local).has_completed_gate is True

    def test_gate_stays_false_when_neither_completed(self):
        assert merge(ProgressSnapshot(), ProgressSnapshot()).has_completed_gate is False

    def test_power_ups_union(self):
        local = ProgressSnapshot(owned_power_ups={"shield"})
        cloud = ProgressSnapshot(owned_power_ups={"slow-mo"})
        assert merge(local, cloud).owned_power_ups == {"shield", "slow-mo"}

    def test_inputs_not_mutated(self):
        local = ProgressSnapshot(coins=1)
        cloud = ProgressSnapshot(coins=2)
        merge(local, cloud)
        assert local.coins == 1
        assert cloud.coins == 2


@pytest.mark.parametrize("a,b", PAIRS)
def test_commutative(a, b):
    assert merge(a, b) == merge(b, a)


@pytest.mark.parametrize("a,b", PAIRS)
def test_idempotent(a, b):
    once = merge(a, b)
    assert merge(once, b) == once
    assert merge(once, once) == once


@pytest.mark.parametrize("a,b", PAIRS)
def test_dominates_both_inputs(a, b):
    merged = merge(a, b)
    for field in ("coins", "total_earned", "high_score"):
        assert getattr(merged, field) == max(getattr(a, field), getattr(b, field))
    assert merged.unlocked_themes == a.unlocked_themes | b.unlocked_themes
    assert DEFAULT_THEME in merged.unlocked_themes
    assert merged.owned_power_ups == a.owned_power_ups | b.owned_power_ups
    assert merged.has_completed_gate == (a.has_completed_gate or b.has_completed_gate)
    assert merged.total_earned >= merged.coins


def test_associative():
    for a, b, c in itertools.product(SAMPLES[:4], repeat=3):
        assert merge(merge(a, b), c) == merge(a, merge(b, c))
