"""Test fixtures for reelist."""

import asyncio
import itertools
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

import pytest

from reelist.collection.errors import StoreError
from reelist.collection.models import (Collection, CollectionItem, CollectionKind, MediaKind,
                                       PositionUpdate, SourceKind)
from reelist.store.base import CollectionStore

T0 = datetime(2024, 1, 1, 12, 0, 0)


def make_item(item_id: str, position: Optional[int] = None,
              source_kind: SourceKind = SourceKind.CATALOG, minutes: int = 0,
              **kwargs) -> CollectionItem:
    """Item added ``minutes`` after T0, titled after its id."""
    kwargs.setdefault('title', item_id)
    if source_kind == SourceKind.CATALOG:
        kwargs.setdefault('catalog_id', 100 + len(item_id))
        kwargs.setdefault('media_kind', MediaKind.MOVIE)
    else:
        kwargs.setdefault('external_id', f"vid-{item_id}")
    return CollectionItem(
        id=item_id,
        source_kind=source_kind,
        position=position,
        added_at=T0 + timedelta(minutes=minutes),
        **kwargs
    )


class MemoryStore(CollectionStore):
    """In-memory CollectionStore with switches for injecting failures."""

    def __init__(self):
        self.collections: Dict[str, Collection] = {}
        self.persist_calls: List[List[PositionUpdate]] = []
        self.persist_delay = 0.0
        self.fail_persist = False
        self.fail_create_at: Optional[int] = None  # 1-based create_item call that fails
        self.fail_create_collection = False
        self.fail_delete_ids = set()
        self.create_calls = 0
        self._ids = itertools.count(1)

    def add(self, collection_id: str, items: Sequence[CollectionItem],
            kind: CollectionKind = CollectionKind.LIST) -> None:
        self.collections[collection_id] = Collection(
            name=collection_id, kind=kind, id=collection_id, items=list(items)
        )

    def positions(self, collection_id: str) -> Dict[str, int]:
        return {item.id: item.position for item in self.collections[collection_id].items}

    def _get(self, collection_id: str) -> Collection:
        if collection_id not in self.collections:
            raise StoreError(f"Collection not found: {collection_id}", status=404)
        return self.collections[collection_id]

    async def fetch_collection(self, collection_id: str) -> List[CollectionItem]:
        return [replace(item) for item in self._get(collection_id).items]

    async def persist_order(self, collection_id: str, updates: Sequence[PositionUpdate]) -> None:
        self.persist_calls.append(list(updates))
        if self.persist_delay:
            await asyncio.sleep(self.persist_delay)
        if self.fail_persist:
            raise StoreError("Internal server error", status=500)
        if not updates:
            raise StoreError("Position updates cannot be empty", status=400)

        collection = self._get(collection_id)
        by_id = {item.id: item for item in collection.items}
        unknown = [update.item_id for update in updates if update.item_id not in by_id]
        if unknown:
            raise StoreError(f"Unknown items: {unknown}", status=400)
        for update in updates:
            by_id[update.item_id] = replace(by_id[update.item_id], position=update.position)
        collection.items = [by_id[item.id] for item in collection.items]

    async def create_item(self, collection_id: str, item: CollectionItem) -> CollectionItem:
        self.create_calls += 1
        if self.fail_create_at == self.create_calls:
            raise StoreError("Failed to create item", status=500)
        created = replace(item, id=f"new-{next(self._ids)}")
        self._get(collection_id).items.append(created)
        return created

    async def delete_item(self, collection_id: str, item_id: str) -> None:
        if item_id in self.fail_delete_ids:
            raise StoreError(f"Failed to delete {item_id}", status=500)
        collection = self._get(collection_id)
        remaining = [item for item in collection.items if item.id != item_id]
        if len(remaining) == len(collection.items):
            raise StoreError(f"Item not found: {item_id}", status=404)
        collection.items = remaining

    async def update_item_note(self, collection_id: str, item_id: str,
                               note: Optional[str]) -> CollectionItem:
        collection = self._get(collection_id)
        for index, item in enumerate(collection.items):
            if item.id == item_id:
                collection.items[index] = replace(item, note=note)
                return collection.items[index]
        raise StoreError(f"Item not found: {item_id}", status=404)

    async def create_collection(self, name: str, kind: CollectionKind,
                                items: Sequence[CollectionItem] = ()) -> str:
        if self.fail_create_collection:
            raise StoreError("Failed to create collection", status=500)
        collection_id = f"col-{next(self._ids)}"
        self.collections[collection_id] = Collection(
            name=name, kind=kind, id=collection_id,
            items=[replace(item, id=f"new-{next(self._ids)}") for item in items]
        )
        return collection_id

    async def get_collection(self, collection_id: str) -> Optional[Collection]:
        return self.collections.get(collection_id)

    async def list_collections(self, kind: Optional[CollectionKind] = None) -> List[Collection]:
        return [c for c in self.collections.values() if kind is None or c.kind == kind]


@pytest.fixture
def item_factory():
    return make_item


@pytest.fixture
def abcd() -> List[CollectionItem]:
    """Four catalog items at positions 1..4, A added first."""
    return [make_item(item_id, position, minutes=position)
            for position, item_id in enumerate("ABCD", start=1)]


@pytest.fixture
def mixed_items() -> List[CollectionItem]:
    """Three catalog items and two external videos."""
    return [
        make_item("A", 1, minutes=1),
        make_item("B", 2, minutes=2),
        make_item("C", 3, minutes=3),
        make_item("V1", 1, source_kind=SourceKind.EXTERNAL, minutes=4),
        make_item("V2", 2, source_kind=SourceKind.EXTERNAL, minutes=5),
    ]


@pytest.fixture
def store(abcd) -> MemoryStore:
    memory_store = MemoryStore()
    memory_store.add("list-1", abcd)
    return memory_store


@pytest.fixture
def notices() -> list:
    """Collects notices passed to on_notice."""
    return []
