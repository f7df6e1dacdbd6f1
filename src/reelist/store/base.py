from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from reelist.collection.models import (Collection, CollectionItem, CollectionKind,
                                       PositionUpdate)


class CollectionStore(ABC):
    """Authoritative store for collections and their items.

    Every call is independently atomic. Failures are raised as StoreError.
    """

    @abstractmethod
    async def fetch_collection(self, collection_id: str) -> List[CollectionItem]:
        """Current snapshot of a collection's items"""
        pass

    @abstractmethod
    async def persist_order(self, collection_id: str, updates: Sequence[PositionUpdate]) -> None:
        """Apply a batch of positions; all of them or none"""
        pass

    @abstractmethod
    async def create_item(self, collection_id: str, item: CollectionItem) -> CollectionItem:
        """Store a new item and return it with its store-assigned id"""
        pass

    @abstractmethod
    async def delete_item(self, collection_id: str, item_id: str) -> None:
        pass

    @abstractmethod
    async def update_item_note(self, collection_id: str, item_id: str,
                               note: Optional[str]) -> CollectionItem:
        pass

    @abstractmethod
    async def create_collection(self, name: str, kind: CollectionKind,
                                items: Sequence[CollectionItem] = ()) -> str:
        """Create a collection with initial items and return its id"""
        pass

    @abstractmethod
    async def get_collection(self, collection_id: str) -> Optional[Collection]:
        pass

    @abstractmethod
    async def list_collections(self, kind: Optional[CollectionKind] = None) -> List[Collection]:
        pass

    async def close(self) -> None:
        """Release any held resources"""
        pass
