"""Ordered collections: positions, views, reconciliation and reordering."""

from reelist.collection.errors import (CollectionError, PartialTransferFailure, PersistFailure,
                                       StoreError, TransferFailure, ValidationError)
from reelist.collection.models import (Collection, CollectionItem, CollectionKind, MediaKind,
                                       NewCollection, Notice, NoticeLevel, PositionUpdate,
                                       SourceKind)
from reelist.collection.reconcile import EditState, ReconciliationEngine, StaleSnapshotIgnored
from reelist.collection.reorder import (DirectPositionEditor, DragReorderController,
                                        ReorderResult, ReorderStatus)
from reelist.collection.service import CollectionService
from reelist.collection.session import CollectionSession
from reelist.collection.transfer import BulkTransferEngine, TransferResult
from reelist.collection.view import (SortDirection, SortField, TypeFilter, ViewConfig,
                                     ViewProjection, page_numbers, project)

__all__ = [
    "BulkTransferEngine",
    "Collection",
    "CollectionError",
    "CollectionItem",
    "CollectionKind",
    "CollectionService",
    "CollectionSession",
    "DirectPositionEditor",
    "DragReorderController",
    "EditState",
    "MediaKind",
    "NewCollection",
    "Notice",
    "NoticeLevel",
    "PartialTransferFailure",
    "PersistFailure",
    "PositionUpdate",
    "ReconciliationEngine",
    "ReorderResult",
    "ReorderStatus",
    "SortDirection",
    "SortField",
    "SourceKind",
    "StaleSnapshotIgnored",
    "StoreError",
    "TransferFailure",
    "TransferResult",
    "TypeFilter",
    "ValidationError",
    "ViewConfig",
    "ViewProjection",
    "page_numbers",
    "project",
]
