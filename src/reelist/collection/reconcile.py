"""Reconciliation of authoritative snapshots with optimistic local order.

The engine is the single source of truth for what the user currently sees as
the order of one collection. Two writers race against it: the store (fresh
snapshots) and the user (reorder gestures). Optimistic state is only dropped
by a confirming snapshot or by a rollback after a failed persist.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence

from . import position
from .models import CollectionItem

logger = logging.getLogger(__name__)

SnapshotFetcher = Callable[[], Awaitable[List[CollectionItem]]]


class EditState(Enum):
    IDLE = "idle"
    EDITING = "editing"
    PERSISTING = "persisting"


@dataclass
class StaleSnapshotIgnored:
    """Emitted when an inbound snapshot is discarded by the merge rule."""
    collection_id: str
    reason: str
    snapshot_size: int
    optimistic_size: int


@dataclass
class EditSession:
    """Internal state of a ReconciliationEngine."""
    collection_id: str
    authoritative: List[CollectionItem] = field(default_factory=list)
    optimistic: Optional[List[CollectionItem]] = None
    state: EditState = EditState.IDLE
    revision: int = 0
    rolled_back_revision: int = 0
    persisted_revision: int = 0
    confirmed_revision: int = 0
    in_flight: int = 0


class ReconciliationEngine:
    """Owns the effective item order of one collection during editing."""

    def __init__(
        self,
        collection_id: str,
        fetch_snapshot: Optional[SnapshotFetcher] = None,
        max_resync_attempts: int = 3,
        resync_delay: float = 0.5,
        on_stale: Optional[Callable[[StaleSnapshotIgnored], None]] = None,
    ):
        """Initialize the engine.

        Args:
            collection_id: Collection this engine reconciles
            fetch_snapshot: Coroutine function returning a fresh snapshot,
                used to resync after an ignored snapshot or a persist
            max_resync_attempts: Resyncs tried before the store wins
            resync_delay: Seconds to wait before each resync
            on_stale: Optional listener for ignored snapshots
        """
        self.session = EditSession(collection_id=collection_id)
        self.fetch_snapshot = fetch_snapshot
        self.max_resync_attempts = max_resync_attempts
        self.resync_delay = resync_delay
        self.on_stale = on_stale
        self.persist_lock = asyncio.Lock()
        self.ignored_snapshots: List[StaleSnapshotIgnored] = []
        self._resync_attempts = 0
        self._resync_task: Optional[asyncio.Task] = None

    @property
    def collection_id(self) -> str:
        return self.session.collection_id

    @property
    def state(self) -> EditState:
        return self.session.state

    @property
    def authoritative(self) -> List[CollectionItem]:
        return list(self.session.authoritative)

    @property
    def optimistic(self) -> Optional[List[CollectionItem]]:
        if self.session.optimistic is None:
            return None
        return list(self.session.optimistic)

    @property
    def effective_items(self) -> List[CollectionItem]:
        """What the user sees: optimistic state if any, else the snapshot."""
        if self.session.optimistic is not None:
            return list(self.session.optimistic)
        return list(self.session.authoritative)

    @property
    def has_pending_persist(self) -> bool:
        return self.session.in_flight > 0

    def begin_edit(self) -> List[CollectionItem]:
        """Enter Editing with a working copy of the effective order."""
        if self.session.optimistic is None:
            self.session.optimistic = list(self.session.authoritative)
            self.session.state = EditState.EDITING
        return list(self.session.optimistic)

    def cancel_edit(self) -> None:
        """Leave Editing when nothing was changed or sent."""
        if self.session.state != EditState.EDITING or self.session.in_flight:
            return
        settled = max(self.session.persisted_revision, self.session.rolled_back_revision)
        if self.session.revision > settled:
            return
        self.session.optimistic = None
        self.session.state = EditState.IDLE

    def apply_optimistic(self, items: Sequence[CollectionItem]) -> int:
        """Show ``items`` immediately and return the new revision."""
        self.session.optimistic = list(items)
        if self.session.state == EditState.IDLE:
            self.session.state = EditState.EDITING
        self.session.revision += 1
        return self.session.revision

    def is_discarded(self, revision: int) -> bool:
        """True when ``revision`` was thrown away by a rollback."""
        return revision <= self.session.rolled_back_revision

    def persist_started(self, revision: int) -> None:
        self.session.in_flight += 1
        self.session.state = EditState.PERSISTING
        logger.debug(f"Persisting revision {revision} of collection {self.collection_id}")

    def persist_succeeded(self, revision: int) -> None:
        """Record a successful save; confirmation comes with a later snapshot."""
        self.session.in_flight = max(0, self.session.in_flight - 1)
        self.session.persisted_revision = max(self.session.persisted_revision, revision)
        logger.debug(f"Revision {revision} of collection {self.collection_id} saved")
        if not self.session.in_flight:
            self.schedule_resync()

    def persist_failed(self, revision: int, error: Exception) -> None:
        """Roll back to the last good snapshot."""
        self.session.in_flight = max(0, self.session.in_flight - 1)
        server_diverged = self.session.persisted_revision > self.session.confirmed_revision
        self.session.rolled_back_revision = self.session.revision
        self.session.optimistic = None
        self.session.state = EditState.IDLE
        logger.warning(
            f"Rolled back collection {self.collection_id} at revision {revision}: {error}"
        )
        if server_diverged:
            # an earlier revision did reach the store, reload it
            self.schedule_resync()

    def accept_snapshot(self, items: Sequence[CollectionItem]) -> bool:
        """Merge an authoritative snapshot.

        Returns True when the snapshot became the authoritative state, False
        when the merge rule ignored it.
        """
        items = list(items)
        optimistic = self.session.optimistic
        if optimistic is None:
            self._accept(items)
            return True

        if not items and optimistic:
            self._ignore(items, "empty snapshot while a reorder is pending")
            return False

        if position.ordered_ids(items) == position.ordered_ids(optimistic) and \
                self._same_positions(items, optimistic):
            logger.debug(f"Snapshot confirms optimistic order of {self.collection_id}")
            self._accept(items)
            return True

        exhausted = self._resync_attempts >= self.max_resync_attempts
        if exhausted and self.session.state == EditState.PERSISTING and not self.session.in_flight:
            logger.warning(
                f"Snapshot of {self.collection_id} still differs after "
                f"{self._resync_attempts} resyncs, accepting store order"
            )
            self._accept(items)
            return True

        self._ignore(items, "stale snapshot while a reorder is pending")
        return False

    def _same_positions(self, a: Sequence[CollectionItem], b: Sequence[CollectionItem]) -> bool:
        positions_a = {item.id: item.position or 0 for item in position.reorderable(a)}
        positions_b = {item.id: item.position or 0 for item in position.reorderable(b)}
        return positions_a == positions_b

    def _accept(self, items: List[CollectionItem]) -> None:
        self.session.authoritative = items
        self.session.optimistic = None
        self.session.state = EditState.IDLE
        self.session.confirmed_revision = self.session.persisted_revision
        self._resync_attempts = 0

    def _ignore(self, items: List[CollectionItem], reason: str) -> None:
        event = StaleSnapshotIgnored(
            collection_id=self.collection_id,
            reason=reason,
            snapshot_size=len(items),
            optimistic_size=len(self.session.optimistic or []),
        )
        self.ignored_snapshots.append(event)
        logger.info(
            f"Ignored snapshot for {self.collection_id}: {reason} "
            f"({event.snapshot_size} items vs {event.optimistic_size} optimistic)"
        )
        if self.on_stale:
            self.on_stale(event)
        if self._resync_attempts < self.max_resync_attempts:
            self._resync_attempts += 1
            self.schedule_resync()

    def schedule_resync(self) -> Optional[asyncio.Task]:
        """Fetch a fresh snapshot in the background, at most one at a time."""
        if self.fetch_snapshot is None:
            return None
        if self._resync_task and not self._resync_task.done():
            return self._resync_task
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, resync skipped")
            return None
        self._resync_task = loop.create_task(self._resync())
        return self._resync_task

    async def _resync(self) -> None:
        if self.resync_delay:
            await asyncio.sleep(self.resync_delay)
        try:
            items = await self.fetch_snapshot()
        except Exception as e:
            logger.error(f"Resync of collection {self.collection_id} failed: {e}")
            self._resync_task = None
            # failed fetches use up the same budget as ignored snapshots
            if self._resync_attempts < self.max_resync_attempts:
                self._resync_attempts += 1
                self.schedule_resync()
            return
        # let a follow-up resync be scheduled from inside accept_snapshot
        self._resync_task = None
        self.accept_snapshot(items)

    async def wait_for_resync(self) -> None:
        """Wait until the background resync, if any, has finished."""
        while self._resync_task and not self._resync_task.done():
            await asyncio.shield(self._resync_task)

    async def close(self) -> None:
        """Cancel background work; the session is being torn down."""
        if self._resync_task and not self._resync_task.done():
            self._resync_task.cancel()
            try:
                await self._resync_task
            except asyncio.CancelledError:
                pass
        self._resync_task = None
