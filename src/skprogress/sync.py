"""
Sync orchestrator -- reconcile device progress with the cloud on sign-in.

    identity.changed  ->  guard  ->  load cloud  ->  merge  ->  apply local  ->  persist cloud

Runs at most once per signed-in identity. The guard (the id of the
last identity synced) is set before the first await, so re-renders
and repeated notifications while a pass is in flight are dropped.
Signing out clears it, so the next sign-in syncs again.

Nothing here ever raises into the caller. A failed load leaves local
progress untouched; a failed write leaves the merged values on the
device for the next sync to resend.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from .events import IDENTITY_CHANGED, SYNC_COMPLETED, EventBus, TopicMessage
from .merge import merge
from .models import Identity, ProgressSnapshot
from .progress import ProgressLoader, ProgressWriter
from .stores import LocalStores

logger = logging.getLogger("skprogress.sync")


class SyncOutcome(str, Enum):
    """How a sync pass ended."""

    MERGED = "merged"
    NO_CLOUD_RECORD = "no_cloud_record"
    LOAD_FAILED = "load_failed"
    APPLY_FAILED = "apply_failed"
    WRITE_FAILED = "write_failed"


class SyncReport(BaseModel):
    """Result of one sync pass, for logging and listeners."""

    identity_id: str
    user_key: str
    outcome: SyncOutcome
    merged: Optional[ProgressSnapshot] = None
    error: Optional[str] = None


class SyncOrchestrator:
    """Drives one sync pass per signed-in identity.

    Args:
        stores: The device's progress stores.
        loader: Reads the cloud record.
        writer: Writes the merged result back.
        bus: Optional event bus to subscribe to identity changes on.
    """

    def __init__(
        self,
        stores: LocalStores,
        loader: ProgressLoader,
        writer: ProgressWriter,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._stores = stores
        self._loader = loader
        self._writer = writer
        self._bus: Optional[EventBus] = None
        self._last_synced_id: Optional[str] = None
        self._tasks: set[asyncio.Task] = set()
        if bus is not None:
            self.attach(bus)

    @property
    def last_synced_id(self) -> Optional[str]:
        return self._last_synced_id

    def attach(self, bus: EventBus) -> None:
        """Subscribe to identity changes on ``bus`` (once)."""
        if self._bus is bus:
            return
        if self._bus is not None:
            self._bus.unsubscribe(IDENTITY_CHANGED, self._on_identity_changed)
        self._bus = bus
        bus.subscribe(IDENTITY_CHANGED, self._on_identity_changed)

    def _on_identity_changed(self, msg: TopicMessage) -> None:
        raw = msg.payload.get("identity")
        identity = Identity.model_validate(raw) if raw else None
        self.trigger(identity, bool(msg.payload.get("ready")))

    def trigger(
        self, identity: Optional[Identity], ready: bool,
    ) -> Optional["asyncio.Task[SyncReport]"]:
        """React to the current sign-in state.

        Inside a running event loop the pass is scheduled as a task and
        returned. Without one, the pass runs to completion via asyncio.run
        before this returns, blocking the caller for the load and the write;
        that is for one-shot callers like the CLI. Hosts driving sync from
        the event bus (IdentityResolver publishes synchronously) must call
        it from a running loop so the UI is never blocked.

        Args:
            identity: Resolved identity, or None when signed out.
            ready: Whether both sign-in backends have finished loading.

        Returns:
            The scheduled task, or None when nothing was scheduled.
        """
        if not ready:
            return None
        if identity is None:
            if self._last_synced_id is not None:
                logger.info("Signed out; next sign-in will sync again")
            self._last_synced_id = None
            return None
        if identity.id == self._last_synced_id:
            logger.debug("Already synced %s; skipping", identity.user_key)
            return None

        self._last_synced_id = identity.id
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._sync(identity))
            return None

        task = loop.create_task(self._sync(identity))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for every in-flight sync pass to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _sync(self, identity: Identity) -> SyncReport:
        user_key = identity.user_key
        logger.info("Syncing progress for %s", user_key)

        try:
            record = await asyncio.to_thread(self._loader.load, identity)
        except Exception as exc:
            logger.error("Loading progress for %s failed: %s", user_key, exc)
            return self._finish(identity, SyncOutcome.LOAD_FAILED, error=str(exc))

        if record is None:
            return self._finish(identity, SyncOutcome.NO_CLOUD_RECORD)

        if self._last_synced_id != identity.id:
            logger.info("%s signed out mid-sync; finishing pass anyway", user_key)

        # Read, merge and apply without yielding, so feature code cannot
        # change the stores in between and the UI never sees half a merge.
        try:
            local = self._stores.snapshot()
            merged = merge(local, record.progress)
            self._stores.apply(merged)
        except Exception as exc:
            logger.exception("Applying merged progress for %s failed", user_key)
            return self._finish(identity, SyncOutcome.APPLY_FAILED, error=str(exc))

        try:
            ok = await asyncio.to_thread(self._writer.persist, identity, merged)
        except Exception as exc:
            logger.error("Persisting progress for %s failed: %s", user_key, exc)
            return self._finish(
                identity, SyncOutcome.WRITE_FAILED, merged=merged, error=str(exc),
            )
        if not ok:
            return self._finish(identity, SyncOutcome.WRITE_FAILED, merged=merged)
        return self._finish(identity, SyncOutcome.MERGED, merged=merged)

    def _finish(
        self,
        identity: Identity,
        outcome: SyncOutcome,
        merged: Optional[ProgressSnapshot] = None,
        error: Optional[str] = None,
    ) -> SyncReport:
        report = SyncReport(
            identity_id=identity.id,
            user_key=identity.user_key,
            outcome=outcome,
            merged=merged,
            error=error,
        )
        logger.info("Sync for %s finished: %s", report.user_key, outcome.value)
        if self._bus is not None:
            self._bus.publish(SYNC_COMPLETED, report.model_dump(mode="json"))
        return report
