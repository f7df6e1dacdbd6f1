"""Per-view editing session for one collection."""

import logging
from typing import List, Optional

from reelist.config import Config

from . import position
from .errors import ValidationError
from .models import CollectionItem
from .reconcile import ReconciliationEngine
from .reorder import (DirectPositionEditor, DragReorderController, NoticeHandler,
                      ReorderResult)
from .transfer import BulkTransferEngine, Destination, TransferResult
from .view import ViewConfig, ViewProjection, project

logger = logging.getLogger(__name__)


class CollectionSession:
    """Owns the edit state of one open collection.

    Opening the session loads the first snapshot; closing it drops any
    optimistic state and cancels background resyncs. The store stays open,
    it belongs to the caller.
    """

    def __init__(
        self,
        store,
        collection_id: str,
        config: Optional[Config] = None,
        on_notice: Optional[NoticeHandler] = None,
    ):
        """Initialize the session.

        Args:
            store: CollectionStore the collection lives in
            collection_id: Collection being edited
            config: Timeouts, resync bounds and page size
            on_notice: Receives user facing notices
        """
        self.store = store
        self.collection_id = collection_id
        self.config = config or Config()
        self.engine = ReconciliationEngine(
            collection_id,
            fetch_snapshot=self._fetch,
            max_resync_attempts=self.config.max_resync_attempts,
            resync_delay=self.config.resync_delay,
        )
        self.controller = DragReorderController(
            self.engine, store,
            persist_timeout=self.config.persist_timeout,
            on_notice=on_notice
        )
        self.editor = DirectPositionEditor(self.controller)
        self.transfers = BulkTransferEngine(store, on_notice=on_notice)

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _fetch(self) -> List[CollectionItem]:
        return await self.store.fetch_collection(self.collection_id)

    async def open(self) -> None:
        await self.refresh()
        logger.debug(f"Opened collection {self.collection_id} ({len(self.items)} items)")

    async def refresh(self) -> bool:
        """Fetch a snapshot and hand it to the engine.

        Returns:
            False when the snapshot was ignored because a reorder is pending
        """
        return self.engine.accept_snapshot(await self._fetch())

    async def close(self) -> None:
        await self.engine.close()
        logger.debug(f"Closed collection {self.collection_id}")

    @property
    def edit_mode(self) -> bool:
        return self.controller.edit_mode

    @edit_mode.setter
    def edit_mode(self, enabled: bool) -> None:
        self.controller.edit_mode = enabled

    @property
    def items(self) -> List[CollectionItem]:
        """Items in collection order, including unconfirmed moves."""
        return position.collection_order(self.engine.effective_items)

    def default_view(self) -> ViewConfig:
        return ViewConfig(page_size=self.config.page_size)

    def project(self, config: Optional[ViewConfig] = None) -> ViewProjection:
        return project(self.engine.effective_items, config or self.default_view())

    async def drop(self, config: ViewConfig, source_view_index: int,
                   dest_view_index: int) -> ReorderResult:
        """Drop within ``config``'s view; indices span all pages."""
        return await self.controller.on_drop(
            self.project(config.flattened()), source_view_index, dest_view_index
        )

    async def set_position(self, item_id: str, requested_position: int) -> ReorderResult:
        sequence = position.reorder_sequence(self.engine.effective_items)
        item = next((row for row in self.engine.effective_items if row.id == item_id), None)
        if item is None:
            raise ValidationError(f"Item not in collection: {item_id}")
        return await self.editor.apply(item, requested_position, len(sequence))

    def _selection(self, item_ids: List[str]) -> List[CollectionItem]:
        by_id = {item.id: item for item in self.engine.effective_items}
        missing = [item_id for item_id in item_ids if item_id not in by_id]
        if missing:
            raise ValidationError(f"Items not in collection: {', '.join(missing)}")
        return [by_id[item_id] for item_id in item_ids]

    async def copy(self, item_ids: List[str], destination: Destination) -> TransferResult:
        return await self.transfers.copy(
            self.collection_id, self._selection(item_ids), destination,
            source_items=self.engine.effective_items
        )

    async def move(self, item_ids: List[str], destination: Destination) -> TransferResult:
        result = await self.transfers.move(
            self.collection_id, self._selection(item_ids), destination,
            source_items=self.engine.effective_items
        )
        if result.removed_ids:
            await self.refresh()
        return result
