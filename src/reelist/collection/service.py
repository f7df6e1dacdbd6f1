"""Collection management on top of a CollectionStore."""

import logging
from datetime import datetime
from typing import List, Optional

from . import position
from .errors import ValidationError
from .models import Collection, CollectionItem, CollectionKind, MediaKind, SourceKind

logger = logging.getLogger(__name__)


class CollectionService:
    """Creates collections and adds, removes or annotates their items."""

    def __init__(self, store):
        """Initialize the collection service.

        Args:
            store: CollectionStore holding the collections
        """
        self.store = store

    async def create_collection(self, name: str,
                                kind: CollectionKind = CollectionKind.LIST) -> str:
        """Create an empty collection.

        Args:
            name: Display name, must not be blank
            kind: List or playlist

        Returns:
            The collection ID
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Collection name cannot be empty")
        collection_id = await self.store.create_collection(name, kind)
        logger.info(f"Created {kind.value} {name} ({collection_id})")
        return collection_id

    async def list_collections(self, kind: Optional[CollectionKind] = None) -> List[Collection]:
        return await self.store.list_collections(kind)

    async def add_item(
        self,
        collection_id: str,
        title: str,
        source_kind: SourceKind = SourceKind.CATALOG,
        catalog_id: Optional[int] = None,
        media_kind: Optional[MediaKind] = None,
        external_id: Optional[str] = None,
        channel_id: Optional[str] = None,
        thumbnail: Optional[str] = None,
        release_date: Optional[str] = None,
        note: Optional[str] = None,
    ) -> CollectionItem:
        """Append an item at the tail of its source kind's sequence.

        Returns:
            The stored item with its assigned id and position
        """
        if not (title or "").strip():
            raise ValidationError("Item title cannot be empty")
        if source_kind == SourceKind.CATALOG and catalog_id is None:
            raise ValidationError("Catalog items need a catalog id")
        if source_kind == SourceKind.EXTERNAL and not external_id:
            raise ValidationError("External items need an external id")

        existing = await self.store.fetch_collection(collection_id)
        item = CollectionItem(
            id="",
            source_kind=source_kind,
            title=title.strip(),
            position=position.next_position(existing, source_kind),
            added_at=datetime.now(),
            catalog_id=catalog_id,
            media_kind=media_kind,
            external_id=external_id,
            channel_id=channel_id,
            note=note,
            thumbnail=thumbnail,
            release_date=release_date,
        )
        created = await self.store.create_item(collection_id, item)
        logger.info(f"Added {created.title} to {collection_id} at position {created.position}")
        return created

    async def remove_item(self, collection_id: str, item_id: str) -> None:
        """Delete an item and close the gap it leaves in the order."""
        await self.store.delete_item(collection_id, item_id)
        remaining = await self.store.fetch_collection(collection_id)
        renumbered = position.renumber(position.reorderable(remaining))
        updates = position.position_updates(remaining, renumbered)
        if updates:
            await self.store.persist_order(collection_id, updates)
            logger.debug(f"Renumbered {len(updates)} item(s) of {collection_id}")

    async def update_note(self, collection_id: str, item_id: str,
                          note: Optional[str]) -> CollectionItem:
        # blank notes clear the note
        note = note.strip() if note else None
        return await self.store.update_item_note(collection_id, item_id, note or None)
