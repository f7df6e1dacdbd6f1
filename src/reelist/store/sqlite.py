"""SQLite backed collection store."""

import logging
import sqlite3
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Union
from uuid import uuid4

import aiosqlite

from reelist.collection.errors import StoreError
from reelist.collection.models import (Collection, CollectionItem, CollectionKind,
                                       MediaKind, PositionUpdate, SourceKind)
from reelist.store.base import CollectionStore

logger = logging.getLogger(__name__)


def _row_to_item(row: sqlite3.Row) -> CollectionItem:
    return CollectionItem(
        id=row['id'],
        source_kind=SourceKind(row['source_kind']),
        title=row['title'],
        position=row['position'] or 0,
        added_at=datetime.fromisoformat(row['added_at']),
        catalog_id=row['catalog_id'],
        media_kind=MediaKind(row['media_kind']) if row['media_kind'] else None,
        external_id=row['external_id'],
        channel_id=row['channel_id'],
        note=row['note'],
        thumbnail=row['thumbnail'],
        release_date=row['release_date']
    )


def _row_to_collection(row: sqlite3.Row) -> Collection:
    return Collection(
        id=row['id'],
        name=row['name'],
        kind=CollectionKind(row['kind']),
        created_at=datetime.fromisoformat(row['created_at']),
        modified_at=datetime.fromisoformat(row['modified_at'])
    )


class SQLiteCollectionStore(CollectionStore):
    """Collection store persisting to a local SQLite database."""

    def __init__(self, db_path: Union[Path, str]):
        """Initialize the store.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path

    async def initialize(self) -> None:
        """Initialize the database schema."""
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute("""
                    CREATE TABLE IF NOT EXISTS collections (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        kind TEXT NOT NULL,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        modified_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                await db.execute("""
                    CREATE TABLE IF NOT EXISTS collection_items (
                        id TEXT PRIMARY KEY,
                        collection_id TEXT NOT NULL,
                        source_kind TEXT NOT NULL,
                        title TEXT NOT NULL,
                        position INTEGER DEFAULT 0,
                        added_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        catalog_id INTEGER,
                        media_kind TEXT,
                        external_id TEXT,
                        channel_id TEXT,
                        note TEXT,
                        thumbnail TEXT,
                        release_date TEXT,
                        FOREIGN KEY (collection_id) REFERENCES collections(id)
                    )
                """)

                await db.execute(
                    "CREATE INDEX IF NOT EXISTS idx_collection_items_collection "
                    "ON collection_items(collection_id)"
                )
                await db.execute("CREATE INDEX IF NOT EXISTS idx_collections_kind ON collections(kind)")

                await db.commit()
                logger.info("Collection database schema initialized")
        except sqlite3.Error as e:
            raise StoreError(f"Failed to initialize database: {e}")

    async def _require_collection(self, db: aiosqlite.Connection, collection_id: str) -> None:
        async with db.execute("SELECT id FROM collections WHERE id = ?", (collection_id,)) as cursor:
            if not await cursor.fetchone():
                raise StoreError(f"Collection not found: {collection_id}", status=404)

    async def _touch(self, db: aiosqlite.Connection, collection_id: str) -> None:
        await db.execute(
            "UPDATE collections SET modified_at = ? WHERE id = ?",
            (datetime.now().isoformat(), collection_id)
        )

    async def _insert_item(self, db: aiosqlite.Connection, collection_id: str,
                           item: CollectionItem) -> None:
        await db.execute("""
            INSERT INTO collection_items
            (id, collection_id, source_kind, title, position, added_at, catalog_id,
             media_kind, external_id, channel_id, note, thumbnail, release_date)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            item.id,
            collection_id,
            item.source_kind.value,
            item.title,
            item.position or 0,
            item.added_at.isoformat(),
            item.catalog_id,
            item.media_kind.value if item.media_kind else None,
            item.external_id,
            item.channel_id,
            item.note,
            item.thumbnail,
            item.release_date
        ))

    async def fetch_collection(self, collection_id: str) -> List[CollectionItem]:
        """Get all items of a collection, ordered by position."""
        try:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = sqlite3.Row
                await self._require_collection(db, collection_id)
                async with db.execute("""
                    SELECT * FROM collection_items
                    WHERE collection_id = ?
                    ORDER BY position IS NULL OR position = 0, position, added_at DESC
                """, (collection_id,)) as cursor:
                    return [_row_to_item(row) async for row in cursor]
        except sqlite3.Error as e:
            raise StoreError(f"Failed to fetch collection {collection_id}: {e}")

    async def persist_order(self, collection_id: str, updates: Sequence[PositionUpdate]) -> None:
        """Apply a batch of positions inside one transaction.

        Raises:
            StoreError: when the batch is empty or names items that do not
                belong to the collection. Nothing is applied in that case.
        """
        if not updates:
            raise StoreError("Position updates cannot be empty", status=400)

        try:
            async with aiosqlite.connect(self.db_path) as db:
                await self._require_collection(db, collection_id)
                async with db.execute(
                    "SELECT id FROM collection_items WHERE collection_id = ?",
                    (collection_id,)
                ) as cursor:
                    existing_ids = {row[0] async for row in cursor}

                unknown = [update.item_id for update in updates if update.item_id not in existing_ids]
                if unknown:
                    raise StoreError(
                        f"Failed to update {len(unknown)} item(s): {', '.join(unknown)}",
                        status=400
                    )

                await db.executemany(
                    "UPDATE collection_items SET position = ? WHERE id = ? AND collection_id = ?",
                    [(update.position, update.item_id, collection_id) for update in updates]
                )
                await self._touch(db, collection_id)
                await db.commit()
                logger.info(f"Updated {len(updates)} position(s) in collection {collection_id}")
        except sqlite3.Error as e:
            raise StoreError(f"Failed to reorder collection {collection_id}: {e}")

    async def create_item(self, collection_id: str, item: CollectionItem) -> CollectionItem:
        """Store a new item; the store assigns its id."""
        created = replace(item, id=str(uuid4()))
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await self._require_collection(db, collection_id)
                await self._insert_item(db, collection_id, created)
                await self._touch(db, collection_id)
                await db.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to add item to {collection_id}: {e}")

        logger.debug(f"Added {created.title} to collection {collection_id} at {created.position}")
        return created

    async def delete_item(self, collection_id: str, item_id: str) -> None:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute(
                    "DELETE FROM collection_items WHERE id = ? AND collection_id = ?",
                    (item_id, collection_id)
                )
                if cursor.rowcount == 0:
                    raise StoreError(f"Item not found: {item_id}", status=404)
                await self._touch(db, collection_id)
                await db.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to remove item {item_id}: {e}")

    async def update_item_note(self, collection_id: str, item_id: str,
                               note: Optional[str]) -> CollectionItem:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = sqlite3.Row
                cursor = await db.execute(
                    "UPDATE collection_items SET note = ? WHERE id = ? AND collection_id = ?",
                    (note, item_id, collection_id)
                )
                if cursor.rowcount == 0:
                    raise StoreError(f"Item not found: {item_id}", status=404)
                await db.commit()
                async with db.execute(
                    "SELECT * FROM collection_items WHERE id = ?", (item_id,)
                ) as item_cursor:
                    return _row_to_item(await item_cursor.fetchone())
        except sqlite3.Error as e:
            raise StoreError(f"Failed to update note of {item_id}: {e}")

    async def create_collection(self, name: str, kind: CollectionKind,
                                items: Sequence[CollectionItem] = ()) -> str:
        """Create a collection together with its initial items."""
        collection = Collection(name=name, kind=kind)
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute("""
                    INSERT INTO collections (id, name, kind, created_at, modified_at)
                    VALUES (?, ?, ?, ?, ?)
                """, (
                    collection.id,
                    collection.name,
                    collection.kind.value,
                    collection.created_at.isoformat(),
                    collection.modified_at.isoformat()
                ))
                for item in items:
                    await self._insert_item(db, collection.id, replace(item, id=str(uuid4())))
                await db.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to create collection {name}: {e}")

        logger.info(f"Created {kind.value}: {name} (ID: {collection.id}) with {len(items)} items")
        return collection.id

    async def get_collection(self, collection_id: str) -> Optional[Collection]:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = sqlite3.Row
                async with db.execute(
                    "SELECT * FROM collections WHERE id = ?", (collection_id,)
                ) as cursor:
                    row = await cursor.fetchone()
                    if not row:
                        return None
                    collection = _row_to_collection(row)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to load collection {collection_id}: {e}")

        collection.items = await self.fetch_collection(collection_id)
        return collection

    async def list_collections(self, kind: Optional[CollectionKind] = None) -> List[Collection]:
        query = "SELECT * FROM collections"
        params: tuple = ()
        if kind:
            query += " WHERE kind = ?"
            params = (kind.value,)
        query += " ORDER BY modified_at DESC, created_at DESC"

        try:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = sqlite3.Row
                async with db.execute(query, params) as cursor:
                    return [_row_to_collection(row) async for row in cursor]
        except sqlite3.Error as e:
            raise StoreError(f"Failed to list collections: {e}")
