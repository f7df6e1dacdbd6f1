"""Position assignment and the "collection order" sort.

Everything in here is pure: inputs are never mutated, results are new item
objects created with ``dataclasses.replace``.
"""

from dataclasses import replace
from typing import Iterable, List, Sequence, Tuple

from .models import CollectionItem, PositionUpdate, SourceKind


def sort_key(item: CollectionItem) -> Tuple:
    """Key implementing collection order.

    Positioned items first, by position. Unpositioned items after them, newest
    first. The id is the final tie-break so the order is total.
    """
    if item.is_positioned:
        return (0, item.position, -item.added_at.timestamp(), item.id)
    return (1, 0, -item.added_at.timestamp(), item.id)


def compare(a: CollectionItem, b: CollectionItem) -> int:
    """Collection order comparator returning -1, 0 or 1."""
    key_a, key_b = sort_key(a), sort_key(b)
    return (key_a > key_b) - (key_a < key_b)


def _number(items: Iterable[CollectionItem]) -> List[CollectionItem]:
    return [replace(item, position=index) for index, item in enumerate(items, start=1)]


def renumber(items: Sequence[CollectionItem]) -> List[CollectionItem]:
    """Sort by collection order and assign dense positions 1..n."""
    return _number(sorted(items, key=sort_key))


def insert_at(
    items: Sequence[CollectionItem],
    item: CollectionItem,
    target_index: int
) -> List[CollectionItem]:
    """Move (or insert) ``item`` to ``target_index`` and renumber.

    The index refers to the sequence after ``item`` has been taken out, which
    is what a drag from one slot to another means. Out of range targets are
    clamped.
    """
    ordered = [row for row in sorted(items, key=sort_key) if row.id != item.id]
    target = max(0, min(target_index, len(ordered)))
    ordered.insert(target, item)
    return _number(ordered)


def is_mixed(items: Iterable[CollectionItem]) -> bool:
    """True when catalog and external items share the collection."""
    return len({item.source_kind for item in items}) > 1


def reorderable(items: Sequence[CollectionItem]) -> List[CollectionItem]:
    """Items manual reordering is allowed to touch.

    Homogeneous collections are reorderable as a whole; in a mixed collection
    only the catalog sub-sequence is.
    """
    if not is_mixed(items):
        return list(items)
    return [item for item in items if item.source_kind == SourceKind.CATALOG]


def reorder_sequence(items: Sequence[CollectionItem]) -> List[CollectionItem]:
    """The reorderable sub-sequence in collection order."""
    return sorted(reorderable(items), key=sort_key)


def collection_order(items: Sequence[CollectionItem]) -> List[CollectionItem]:
    """Full display order under the "collection order" sort.

    External items of a mixed collection follow the catalog items, newest
    first, regardless of any position they carry.
    """
    ordered = reorder_sequence(items)
    if is_mixed(items):
        external = [item for item in items if item.source_kind == SourceKind.EXTERNAL]
        external.sort(key=lambda row: (-row.added_at.timestamp(), row.id))
        ordered.extend(external)
    return ordered


def ordered_ids(items: Sequence[CollectionItem]) -> List[str]:
    return [item.id for item in collection_order(items)]


def next_position(items: Iterable[CollectionItem], source_kind: SourceKind) -> int:
    """Tail position for a new item of ``source_kind``."""
    return max(
        (item.position or 0 for item in items if item.source_kind == source_kind),
        default=0
    ) + 1


def merge(
    base: Sequence[CollectionItem],
    reordered: Iterable[CollectionItem]
) -> List[CollectionItem]:
    """Replace items of ``base`` by their reordered version, matched by id."""
    by_id = {item.id: item for item in reordered}
    return [by_id.get(item.id, item) for item in base]


def position_updates(
    before: Iterable[CollectionItem],
    after: Iterable[CollectionItem]
) -> List[PositionUpdate]:
    """Positions that differ between two versions of a collection."""
    previous = {item.id: item.position or 0 for item in before}
    return [
        PositionUpdate(item.id, item.position)
        for item in after
        if previous.get(item.id) != (item.position or 0)
    ]
