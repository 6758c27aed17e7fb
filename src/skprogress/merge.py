"""
Merge engine -- combine the device and cloud copies of a player's progress.

Every field rule is a join: max for counters, union for unlock sets,
OR for the gate flag. That makes merge commutative, associative and
idempotent, so it can be re-run any number of times, in either order,
without losing progress and without a tie-break.
"""

from __future__ import annotations

from .models import ProgressSnapshot


def merge(local: ProgressSnapshot, cloud: ProgressSnapshot) -> ProgressSnapshot:
    """Merge two snapshots field by field.

    Args:
        local: Snapshot read from the device stores.
        cloud: Snapshot read from the cloud record.

    Returns:
        ProgressSnapshot: A new snapshot that dominates both inputs.
    """
    return ProgressSnapshot(
        coins=max(local.coins, cloud.coins),
        total_earned=max(local.total_earned, cloud.total_earned),
        high_score=max(local.high_score, cloud.high_score),
        unlocked_themes=local.unlocked_themes | cloud.unlocked_themes,
        owned_power_ups=local.owned_power_ups | cloud.owned_power_ups,
        has_completed_gate=local.has_completed_gate or cloud.has_completed_gate,
    )

