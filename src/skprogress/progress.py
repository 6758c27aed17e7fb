"""
Progress loader and writer -- the sync pipeline's view of the cloud.

The loader never raises: a missing record, an unconfigured store and
a failed request all come back as None ("nothing to merge"). The
writer reports success as a bool and never retries on its own; the
next sync resends the same or newer values.

Feature code that saves between syncs (a coin earned, a theme bought)
goes through ProgressWriter.save(), which debounces bursts of small
updates into one write per player.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from .cloud import PROGRESS_FIELDS, CloudStore
from .models import CloudRecord, Identity, ProgressSnapshot

logger = logging.getLogger("skprogress.progress")


class ProgressLoader:
    """Reads a player's cloud record.

    Args:
        store: Cloud store, or None when the cloud is not configured.
    """

    def __init__(self, store: Optional[CloudStore]) -> None:
        self.store = store

    def load(self, identity: Identity) -> Optional[CloudRecord]:
        """Fetch profile and progress for ``identity``.

        Returns:
            The CloudRecord, or None if there is nothing usable.
        """
        if self.store is None:
            logger.debug("Cloud not configured; nothing to load")
            return None
        try:
            record = self.store.read(identity.user_key)
        except Exception as exc:
            logger.warning(
                "Loading cloud progress for %s failed: %s",
                identity.user_key, exc,
            )
            return None
        if record is None:
            logger.info("No cloud record yet for %s", identity.user_key)
        return record


@dataclass
class _PendingSave:
    identity: Identity
    future: "asyncio.Future[bool]"
    fields: dict[str, Any] = field(default_factory=dict)
    handle: Optional[asyncio.TimerHandle] = None


class ProgressWriter:
    """Writes progress back to the cloud.

    Args:
        store: Cloud store, or None when the cloud is not configured.
        debounce_seconds: Quiet period before a save() is written.
    """

    def __init__(
        self, store: Optional[CloudStore], debounce_seconds: float = 1.0,
    ) -> None:
        self.store = store
        self.debounce_seconds = debounce_seconds
        self._pending: dict[str, _PendingSave] = {}
        self._tasks: set[asyncio.Task] = set()

    def persist(self, identity: Identity, progress: ProgressSnapshot) -> bool:
        """Write a full snapshot for ``identity``.

        Returns:
            True if the cloud accepted the write.
        """
        return self._write(identity, progress.to_record())

    def save(self, identity: Identity, **fields: Any) -> "asyncio.Future[bool]":
        """Queue a partial update, coalescing with any save still waiting.

        Must be called from a running event loop. Each call restarts the
        quiet period; when it ends, the latest value of every field given
        since the last write goes out in a single write.

        Returns:
            Future resolving to the result of the write that carries
            these fields.

        Raises:
            ValueError: If a field is not part of progress.
        """
        unknown = set(fields) - PROGRESS_FIELDS
        if unknown:
            raise ValueError(f"Unknown progress fields: {sorted(unknown)}")

        loop = asyncio.get_running_loop()
        key = identity.user_key
        pending = self._pending.get(key)
        if pending is None:
            pending = _PendingSave(identity=identity, future=loop.create_future())
            self._pending[key] = pending
        elif pending.handle is not None:
            pending.handle.cancel()

        pending.fields.update(fields)
        pending.handle = loop.call_later(self.debounce_seconds, self._flush_one, key)
        return pending.future

    async def flush(self) -> None:
        """Write every waiting save now and wait for them to finish."""
        for key in list(self._pending):
            pending = self._pending[key]
            if pending.handle is not None:
                pending.handle.cancel()
            self._flush_one(key)
        if self._tasks:
            await asyncio.gather(*self._tasks)

    def _flush_one(self, key: str) -> None:
        pending = self._pending.pop(key, None)
        if pending is None:
            return
        task = asyncio.get_running_loop().create_task(self._run_save(pending))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_save(self, pending: _PendingSave) -> None:
        ok = await asyncio.to_thread(self._write, pending.identity, pending.fields)
        if not pending.future.done():
            pending.future.set_result(ok)

    def _write(self, identity: Identity, fields: dict[str, Any]) -> bool:
        if self.store is None:
            logger.debug("Cloud not configured; skipping write")
            return False
        try:
            self.store.write(identity.user_key, fields)
        except Exception as exc:
            logger.error(
                "Saving cloud progress for %s failed: %s",
                identity.user_key, exc,
            )
            return False
        logger.info("Saved %s for %s", ", ".join(sorted(fields)), identity.user_key)
        return True
