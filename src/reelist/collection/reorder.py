"""Manual reordering: drag and drop and direct position edits."""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from . import position
from .errors import PersistFailure, StoreError, ValidationError
from .models import CollectionItem, Notice, NoticeLevel, PositionUpdate
from .reconcile import ReconciliationEngine
from .view import SortField, ViewConfig, ViewProjection

logger = logging.getLogger(__name__)

NoticeHandler = Callable[[Notice], None]

_LOG_LEVELS = {
    NoticeLevel.INFO: logging.INFO,
    NoticeLevel.WARNING: logging.WARNING,
    NoticeLevel.ERROR: logging.ERROR,
}


def log_notice(notice: Notice) -> None:
    """Default notice handler."""
    logger.log(_LOG_LEVELS[notice.level], notice.message)


class ReorderStatus(Enum):
    NOOP = "noop"
    REJECTED = "rejected"
    PERSISTED = "persisted"
    ROLLED_BACK = "rolled_back"
    DISCARDED = "discarded"  # superseded by a rollback before it was sent


@dataclass
class ReorderResult:
    status: ReorderStatus
    items: List[CollectionItem]
    error: Optional[PersistFailure] = None
    updates: List[PositionUpdate] = field(default_factory=list)
    reason: Optional[str] = None


class DragReorderController:
    """Turns drop gestures into optimistic writes and persist calls."""

    def __init__(
        self,
        engine: ReconciliationEngine,
        store,
        persist_timeout: float = 10.0,
        on_notice: Optional[NoticeHandler] = None,
    ):
        """Initialize the controller.

        Args:
            engine: Engine holding the collection's effective order
            store: CollectionStore receiving the new positions
            persist_timeout: Seconds after which a save counts as failed
            on_notice: Receives user facing notices, logged when omitted
        """
        self.engine = engine
        self.store = store
        self.persist_timeout = persist_timeout
        self.on_notice = on_notice or log_notice
        self.edit_mode = False

    def can_drag(self, config: ViewConfig) -> bool:
        """Dragging needs edit mode and the collection order sort."""
        return self.edit_mode and config.sort_field == SortField.COLLECTION_ORDER

    def is_draggable(self, item: CollectionItem) -> bool:
        return any(row.id == item.id for row in position.reorderable(self.engine.effective_items))

    def _result(self, status: ReorderStatus, reason: Optional[str] = None, **kwargs) -> ReorderResult:
        if reason:
            logger.debug(f"Reorder of {self.engine.collection_id} {status.value}: {reason}")
        return ReorderResult(
            status=status,
            items=position.collection_order(self.engine.effective_items),
            reason=reason,
            **kwargs
        )

    async def on_drop(
        self,
        projection: ViewProjection,
        source_view_index: int,
        dest_view_index: int
    ) -> ReorderResult:
        """Handle a drop from one view index to another.

        The projection should be a flattened one (see ViewConfig.flattened)
        so view indices are continuous across pages.
        """
        if not self.can_drag(projection.config):
            return self._result(ReorderStatus.REJECTED, "dragging is disabled for this view")
        if source_view_index == dest_view_index:
            return self._result(ReorderStatus.NOOP, "dropped at its original index")

        size = len(projection.view_sequence)
        if not (0 <= source_view_index < size and 0 <= dest_view_index < size):
            return self._result(ReorderStatus.REJECTED, "index out of bounds")
        if projection.index_map(source_view_index) is None or projection.index_map(dest_view_index) is None:
            return self._result(ReorderStatus.REJECTED, "item is not reorderable")

        source_item = projection.view_sequence[source_view_index]
        dest_item = projection.view_sequence[dest_view_index]

        # resolve against the current order so drags compose on pending ones
        sequence_ids = [row.id for row in position.reorder_sequence(self.engine.effective_items)]
        if source_item.id not in sequence_ids or dest_item.id not in sequence_ids:
            return self._result(ReorderStatus.REJECTED, "projection is out of date")

        return await self.move_to(source_item.id, sequence_ids.index(dest_item.id))

    async def move_to(self, item_id: str, dest_index: int) -> ReorderResult:
        """Move an item to ``dest_index`` of the reorderable sequence."""
        base = self.engine.begin_edit()
        sequence = position.reorder_sequence(base)
        item = next((row for row in sequence if row.id == item_id), None)
        if item is None:
            self.engine.cancel_edit()
            return self._result(ReorderStatus.REJECTED, f"item {item_id} is not reorderable")

        reordered = position.insert_at(sequence, item, dest_index)
        new_items = position.collection_order(position.merge(base, reordered))
        updates = position.position_updates(base, new_items)
        if not updates:
            self.engine.cancel_edit()
            return self._result(ReorderStatus.NOOP, "order unchanged")

        revision = self.engine.apply_optimistic(new_items)
        return await self._persist(revision, updates)

    async def _persist(self, revision: int, updates: List[PositionUpdate]) -> ReorderResult:
        async with self.engine.persist_lock:
            if self.engine.is_discarded(revision):
                return self._result(
                    ReorderStatus.DISCARDED, "an earlier save failed", updates=updates
                )

            self.engine.persist_started(revision)
            try:
                await asyncio.wait_for(
                    self.store.persist_order(self.engine.collection_id, updates),
                    timeout=self.persist_timeout
                )
            except asyncio.TimeoutError as e:
                failure = PersistFailure(
                    f"Saving the new order timed out after {self.persist_timeout}s"
                )
                failure.__cause__ = e
            except StoreError as e:
                failure = PersistFailure(f"Failed to update position: {e}")
                failure.__cause__ = e
            else:
                self.engine.persist_succeeded(revision)
                return self._result(ReorderStatus.PERSISTED, updates=updates)

            self.engine.persist_failed(revision, failure)
            self.on_notice(Notice(NoticeLevel.ERROR, "Failed to update position", failure))
            return self._result(ReorderStatus.ROLLED_BACK, error=failure, updates=updates)


class DirectPositionEditor:
    """Moves one item to an absolute 1-based position."""

    def __init__(self, controller: DragReorderController):
        self.controller = controller

    def current_position(self, item: CollectionItem) -> Optional[int]:
        """1-based slot of ``item`` in the reorderable sequence."""
        sequence = position.reorder_sequence(self.controller.engine.effective_items)
        for index, row in enumerate(sequence, start=1):
            if row.id == item.id:
                return index
        return None

    def stored_position(self, item: CollectionItem) -> Optional[int]:
        for row in self.controller.engine.effective_items:
            if row.id == item.id:
                return row.position
        return None

    async def apply(self, item: CollectionItem, requested_position: int, total_count: int) -> ReorderResult:
        """Move ``item`` to ``requested_position``.

        Raises:
            ValidationError: position outside 1..total_count or item not
                reorderable. Nothing is changed in that case.
        """
        if isinstance(requested_position, bool) or not isinstance(requested_position, int):
            raise ValidationError("Position must be a whole number")
        if requested_position < 1 or requested_position > total_count:
            raise ValidationError(f"Position must be between 1 and {total_count}")

        current = self.current_position(item)
        if current is None:
            raise ValidationError(f"{item.title} cannot be reordered in this collection")
        # sparse positions get renumbered even when the slot already matches
        if requested_position == current == self.stored_position(item):
            return ReorderResult(
                status=ReorderStatus.NOOP,
                items=position.collection_order(self.controller.engine.effective_items),
                reason="already at that position"
            )

        return await self.controller.move_to(item.id, requested_position - 1)
