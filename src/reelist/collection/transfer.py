"""Copy and move a selection of items between collections."""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Union

from . import position
from .errors import (CollectionError, PartialTransferFailure, StoreError,
                     TransferFailure, ValidationError)
from .models import CollectionItem, NewCollection, Notice, NoticeLevel
from .reorder import NoticeHandler, log_notice

logger = logging.getLogger(__name__)

Destination = Union[str, NewCollection]


@dataclass
class TransferResult:
    """Outcome of a copy or move."""
    destination_id: Optional[str]
    created: List[CollectionItem] = field(default_factory=list)
    removed_ids: List[str] = field(default_factory=list)
    renumbered: bool = False
    error: Optional[CollectionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


class BulkTransferEngine:
    """Copies or moves selected items into another collection.

    Copies are independent records: new ids, new ``added_at``, positions
    appended after the destination's current maximum in the order the items
    had in the source.
    """

    def __init__(
        self,
        store,
        on_notice: Optional[NoticeHandler] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.on_notice = on_notice or log_notice
        self.clock = clock

    def _draft(self, item: CollectionItem, new_position: int, now: datetime) -> CollectionItem:
        return replace(item, id="", position=new_position, added_at=now, note=None)

    async def copy(
        self,
        source_id: str,
        items: Sequence[CollectionItem],
        destination: Destination,
        source_items: Optional[Sequence[CollectionItem]] = None,
    ) -> TransferResult:
        """Copy ``items`` of ``source_id`` to an existing collection id or a NewCollection.

        ``source_items`` is the source collection as the user sees it; it is
        fetched from the store when omitted.
        """
        self._require_selection(items)
        logger.debug(f"Copying {len(items)} item(s) from {source_id}")
        try:
            selection = await self._in_source_order(source_id, items, source_items)
            result = await self._write_destination(selection, destination)
        except TransferFailure as e:
            self.on_notice(Notice(NoticeLevel.ERROR, "Failed to copy items", e))
            return TransferResult(destination_id=self._destination_id(destination), error=e)

        self.on_notice(Notice(
            NoticeLevel.INFO,
            f"Copied {len(selection)} item{_plural(len(selection))} to collection"
        ))
        return result

    async def move(
        self,
        source_id: str,
        items: Sequence[CollectionItem],
        destination: Destination,
        source_items: Optional[Sequence[CollectionItem]] = None,
    ) -> TransferResult:
        """Copy ``items`` then remove them from ``source_id``.

        Nothing is removed unless the destination write succeeded. Items
        that could not be removed stay duplicated and are reported through a
        PartialTransferFailure.
        """
        self._require_selection(items)
        if destination == source_id:
            raise ValidationError("Cannot move items into the collection they are in")
        try:
            selection = await self._in_source_order(source_id, items, source_items)
            result = await self._write_destination(selection, destination)
        except TransferFailure as e:
            self.on_notice(Notice(NoticeLevel.ERROR, "Failed to move items", e))
            return TransferResult(destination_id=self._destination_id(destination), error=e)

        not_removed = []
        for item in selection:
            try:
                await self.store.delete_item(source_id, item.id)
                result.removed_ids.append(item.id)
            except StoreError as e:
                logger.error(f"Failed to remove {item.id} from {source_id} after copy: {e}")
                not_removed.append(item.id)

        if result.removed_ids:
            result.renumbered = await self._renumber_source(source_id)

        if not_removed:
            result.error = PartialTransferFailure(not_removed)
            self.on_notice(Notice(
                NoticeLevel.WARNING,
                f"Copied but not removed from original: {len(not_removed)} "
                f"item{_plural(len(not_removed))}",
                result.error
            ))
        else:
            self.on_notice(Notice(
                NoticeLevel.INFO,
                f"Moved {len(selection)} item{_plural(len(selection))}"
            ))
        return result

    def _require_selection(self, items: Sequence[CollectionItem]) -> None:
        if not items:
            raise ValidationError("Select at least one item")

    async def _in_source_order(
        self,
        source_id: str,
        items: Sequence[CollectionItem],
        source_items: Optional[Sequence[CollectionItem]]
    ) -> List[CollectionItem]:
        """Order the selection the way the source collection displays it."""
        if source_items is None:
            try:
                source_items = await self.store.fetch_collection(source_id)
            except StoreError as e:
                raise TransferFailure(f"Failed to load source {source_id}: {e}") from e
        rank = {item.id: index for index, item in enumerate(position.collection_order(source_items))}
        return sorted(items, key=lambda item: (rank.get(item.id, len(rank)), position.sort_key(item)))

    def _destination_id(self, destination: Destination) -> Optional[str]:
        return None if isinstance(destination, NewCollection) else destination

    async def _write_destination(
        self,
        selection: List[CollectionItem],
        destination: Destination
    ) -> TransferResult:
        now = self.clock()

        if isinstance(destination, NewCollection):
            drafts = [self._draft(item, index, now) for index, item in enumerate(selection, start=1)]
            try:
                destination_id = await self.store.create_collection(
                    destination.name, destination.kind, drafts
                )
            except StoreError as e:
                raise TransferFailure(f"Failed to create {destination.name}: {e}") from e
            logger.info(f"Created {destination.name} ({destination_id}) with {len(drafts)} items")
            return TransferResult(destination_id=destination_id, created=drafts)

        try:
            existing = await self.store.fetch_collection(destination)
        except StoreError as e:
            raise TransferFailure(f"Failed to load destination {destination}: {e}") from e

        start = max((item.position or 0 for item in existing), default=0)
        created: List[CollectionItem] = []
        for offset, item in enumerate(selection, start=1):
            try:
                created.append(
                    await self.store.create_item(destination, self._draft(item, start + offset, now))
                )
            except StoreError as e:
                await self._discard(destination, created)
                raise TransferFailure(f"Failed to add {item.title} to {destination}: {e}") from e

        return TransferResult(destination_id=destination, created=created)

    async def _discard(self, collection_id: str, created: List[CollectionItem]) -> None:
        """Undo a partially written destination."""
        for item in created:
            try:
                await self.store.delete_item(collection_id, item.id)
            except StoreError as e:
                logger.error(f"Could not undo copy of {item.id} in {collection_id}: {e}")

    async def _renumber_source(self, source_id: str) -> bool:
        try:
            remaining = await self.store.fetch_collection(source_id)
            renumbered = position.renumber(position.reorderable(remaining))
            updates = position.position_updates(remaining, renumbered)
            if updates:
                await self.store.persist_order(source_id, updates)
        except StoreError as e:
            logger.warning(f"Failed to renumber {source_id} after move: {e}")
            self.on_notice(Notice(
                NoticeLevel.WARNING, "Items moved, but the original order could not be updated", e
            ))
            return False
        return True
