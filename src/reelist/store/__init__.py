"""Collection store adapters for Reelist."""

from reelist.store.base import CollectionStore
from reelist.store.http import HttpCollectionStore
from reelist.store.sqlite import SQLiteCollectionStore

__all__ = ["CollectionStore", "HttpCollectionStore", "SQLiteCollectionStore"]
