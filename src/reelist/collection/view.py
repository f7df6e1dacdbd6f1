"""Filtered, sorted and paginated views of a collection."""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

from . import position
from .models import CollectionItem, MediaKind, SourceKind


class SortField(Enum):
    COLLECTION_ORDER = "collection_order"
    TITLE = "title"
    ADDED_AT = "added_at"
    RELEASE_YEAR = "release_year"


class SortDirection(Enum):
    ASC = "asc"
    DESC = "desc"


class TypeFilter(Enum):
    ALL = "all"
    MOVIE = "movie"
    SERIES = "series"
    CATALOG = "catalog"
    EXTERNAL = "external"


DEFAULT_PAGE_SIZE = 24


@dataclass(frozen=True)
class ViewConfig:
    """Search, filter, sort and pagination settings of one view."""
    search: str = ""
    type_filter: TypeFilter = TypeFilter.ALL
    sort_field: SortField = SortField.COLLECTION_ORDER
    sort_direction: SortDirection = SortDirection.ASC
    page: int = 1
    page_size: Optional[int] = DEFAULT_PAGE_SIZE  # None disables pagination

    def flattened(self) -> 'ViewConfig':
        """Same view with pagination suspended, as used while dragging."""
        return replace(self, page=1, page_size=None)


@dataclass
class ViewProjection:
    """Result of projecting a collection through a ViewConfig."""
    config: ViewConfig
    view_sequence: List[CollectionItem]
    page_slice: List[CollectionItem]
    total_pages: int
    page: int
    page_start: int
    full_sequence: List[CollectionItem] = field(default_factory=list)
    _full_index: Dict[str, int] = field(default_factory=dict, repr=False)

    @property
    def is_collection_order(self) -> bool:
        return self.config.sort_field == SortField.COLLECTION_ORDER

    def index_map(self, view_index: int) -> Optional[int]:
        """Map a view index to its index in the full reorderable sequence.

        Only defined under collection order. Returns None for out of range
        indices and for items that cannot be reordered.
        """
        if not self.is_collection_order:
            return None
        if view_index < 0 or view_index >= len(self.view_sequence):
            return None
        return self._full_index.get(self.view_sequence[view_index].id)

    def view_index_of_page_index(self, page_index: int) -> int:
        return self.page_start + page_index


def _matches_type(item: CollectionItem, type_filter: TypeFilter) -> bool:
    if type_filter == TypeFilter.ALL:
        return True
    if type_filter == TypeFilter.MOVIE:
        return item.media_kind == MediaKind.MOVIE
    if type_filter == TypeFilter.SERIES:
        return item.media_kind == MediaKind.SERIES
    if type_filter == TypeFilter.CATALOG:
        return item.source_kind == SourceKind.CATALOG
    return item.source_kind == SourceKind.EXTERNAL


def _field_value(item: CollectionItem, sort_field: SortField):
    if sort_field == SortField.TITLE:
        return item.title.lower() if item.title else None
    if sort_field == SortField.ADDED_AT:
        return item.added_at
    return item.release_year


def _sort_by_field(
    items: List[CollectionItem],
    sort_field: SortField,
    direction: SortDirection
) -> List[CollectionItem]:
    # Missing values rank above every present value, so ascending puts them
    # last and descending first.
    def key(item: CollectionItem):
        value = _field_value(item, sort_field)
        return (value is None, value if value is not None else 0)

    return sorted(items, key=key, reverse=direction == SortDirection.DESC)


def project(items: Sequence[CollectionItem], config: ViewConfig) -> ViewProjection:
    """Apply search, type filter, sort and pagination to ``items``."""
    full_sequence = position.reorder_sequence(items)

    query = (config.search or "").strip().lower()
    if config.sort_field == SortField.COLLECTION_ORDER:
        candidates = position.collection_order(items)
    else:
        candidates = list(items)
    if query:
        candidates = [item for item in candidates if query in (item.title or "").lower()]
    candidates = [item for item in candidates if _matches_type(item, config.type_filter)]

    if config.sort_field == SortField.COLLECTION_ORDER:
        # direction intentionally ignored, collection order is ascending
        view_sequence = candidates
    else:
        view_sequence = _sort_by_field(candidates, config.sort_field, config.sort_direction)

    page_size = config.page_size
    if not page_size or page_size < 1:
        total_pages = 1 if view_sequence else 0
        page = 1
        page_start = 0
        page_slice = list(view_sequence)
    else:
        total_pages = math.ceil(len(view_sequence) / page_size)
        page = max(1, min(config.page, total_pages))
        page_start = (page - 1) * page_size
        page_slice = view_sequence[page_start:page_start + page_size]

    return ViewProjection(
        config=config,
        view_sequence=view_sequence,
        page_slice=page_slice,
        total_pages=total_pages,
        page=page,
        page_start=page_start,
        full_sequence=full_sequence,
        _full_index={item.id: index for index, item in enumerate(full_sequence)},
    )


def page_numbers(current: int, total: int) -> List[Union[int, str]]:
    """Pagination strip with "ellipsis" markers for long page ranges."""
    if total <= 7:
        return list(range(1, total + 1))

    pages: List[Union[int, str]] = [1]
    if current > 3:
        pages.append("ellipsis")
    start = max(2, current - 1)
    end = min(total - 1, current + 1)
    pages.extend(range(start, end + 1))
    if current < total - 2:
        pages.append("ellipsis")
    pages.append(total)
    return pages
