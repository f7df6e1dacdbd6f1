"""Tests for position assignment and collection order."""

import random

import pytest

from reelist.collection import position
from reelist.collection.models import PositionUpdate, SourceKind


def ids(items):
    return [item.id for item in items]


def test_renumber_total_order(item_factory):
    """Positioned items first, unpositioned after them newest first."""
    items = [
        item_factory("old", None, minutes=1),
        item_factory("third", 7, minutes=2),
        item_factory("first", 2, minutes=3),
        item_factory("new", 0, minutes=9),
        item_factory("second", 5, minutes=4),
    ]

    renumbered = position.renumber(items)

    assert ids(renumbered) == ["first", "second", "third", "new", "old"]
    assert [item.position for item in renumbered] == [1, 2, 3, 4, 5]


def test_renumber_does_not_mutate(abcd):
    shuffled = list(reversed(abcd))
    position.renumber(shuffled)
    assert [item.position for item in shuffled] == [4, 3, 2, 1]


def test_renumber_idempotent(item_factory):
    rng = random.Random(7)
    items = [
        item_factory(f"i{n}", rng.choice([None, 0, 1, 2, 3, 8]), minutes=rng.randint(0, 50))
        for n in range(20)
    ]

    once = position.renumber(items)
    twice = position.renumber(once)

    assert [(i.id, i.position) for i in once] == [(i.id, i.position) for i in twice]


def test_duplicate_positions_break_ties_by_recency(item_factory):
    items = [item_factory("older", 1, minutes=1), item_factory("newer", 1, minutes=5)]
    assert ids(position.renumber(items)) == ["newer", "older"]


def test_compare(item_factory):
    a = item_factory("A", 1)
    b = item_factory("B", 2)
    loose = item_factory("C", None)
    assert position.compare(a, b) == -1
    assert position.compare(b, a) == 1
    assert position.compare(loose, b) == 1
    assert position.compare(a, a) == 0


def test_insert_at_moves_item(abcd):
    result = position.insert_at(abcd, abcd[3], 1)
    assert ids(result) == ["A", "D", "B", "C"]
    assert [item.position for item in result] == [1, 2, 3, 4]


@pytest.mark.parametrize("target", [-5, 99])
def test_insert_at_clamps_target(abcd, target):
    result = position.insert_at(abcd, abcd[1], target)
    expected = ["B", "A", "C", "D"] if target < 0 else ["A", "C", "D", "B"]
    assert ids(result) == expected


def test_move_round_trip(abcd):
    sequence = position.renumber(abcd)
    moved = position.insert_at(sequence, sequence[1], 3)
    assert ids(moved) == ["A", "C", "D", "B"]

    back = position.insert_at(moved, moved[3], 1)

    assert ids(back) == ids(sequence)
    assert [item.position for item in back] == [item.position for item in sequence]


def test_mixed_collection_isolation(mixed_items):
    assert position.is_mixed(mixed_items)
    assert ids(position.reorderable(mixed_items)) == ["A", "B", "C"]

    ordered = position.collection_order(mixed_items)
    # videos follow the catalog items, newest first
    assert ids(ordered) == ["A", "B", "C", "V2", "V1"]


def test_homogeneous_external_collection_is_reorderable(item_factory):
    videos = [
        item_factory("V1", 2, source_kind=SourceKind.EXTERNAL, minutes=1),
        item_factory("V2", 1, source_kind=SourceKind.EXTERNAL, minutes=2),
    ]
    assert not position.is_mixed(videos)
    assert ids(position.reorder_sequence(videos)) == ["V2", "V1"]
    assert position.ordered_ids(videos) == ["V2", "V1"]


def test_next_position_per_source_kind(mixed_items):
    assert position.next_position(mixed_items, SourceKind.CATALOG) == 4
    assert position.next_position(mixed_items, SourceKind.EXTERNAL) == 3
    assert position.next_position([], SourceKind.CATALOG) == 1


def test_merge_replaces_by_id(mixed_items):
    reordered = position.insert_at(position.reorderable(mixed_items), mixed_items[2], 0)
    merged = position.merge(mixed_items, reordered)

    assert ids(merged) == ids(mixed_items)
    assert {item.id: item.position for item in merged} == {
        "C": 1, "A": 2, "B": 3, "V1": 1, "V2": 2
    }


def test_position_updates_only_changed(abcd):
    after = position.insert_at(abcd, abcd[3], 2)

    updates = position.position_updates(abcd, after)

    assert updates == [PositionUpdate("D", 3), PositionUpdate("C", 4)]
