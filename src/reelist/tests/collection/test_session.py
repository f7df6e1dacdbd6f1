"""Tests for the per-view collection session."""

import pytest

from reelist.collection.errors import ValidationError
from reelist.collection.models import NewCollection
from reelist.collection.reconcile import EditState
from reelist.collection.reorder import ReorderStatus
from reelist.collection.session import CollectionSession
from reelist.collection.view import SortField, ViewConfig
from reelist.config import Config


def ids(items):
    return [item.id for item in items]


@pytest.fixture
def config():
    return Config(page_size=2, resync_delay=0, persist_timeout=1.0)


async def test_open_loads_snapshot(store, config):
    async with CollectionSession(store, "list-1", config) as session:
        assert ids(session.items) == ["A", "B", "C", "D"]
        projection = session.project()
        assert projection.total_pages == 2
        assert ids(projection.page_slice) == ["A", "B"]


async def test_drop_spans_pages(store, config):
    """Indices address the whole view even though it is paginated."""
    async with CollectionSession(store, "list-1", config) as session:
        session.edit_mode = True
        result = await session.drop(ViewConfig(page=2, page_size=2), 3, 0)

        assert result.status == ReorderStatus.PERSISTED
        assert ids(session.items) == ["D", "A", "B", "C"]
        await session.engine.wait_for_resync()
        assert session.engine.state == EditState.IDLE


async def test_drop_needs_edit_mode(store, config):
    async with CollectionSession(store, "list-1", config) as session:
        result = await session.drop(ViewConfig(), 3, 0)
        assert result.status == ReorderStatus.REJECTED


async def test_drop_rejected_when_sorted_by_title(store, config):
    async with CollectionSession(store, "list-1", config) as session:
        session.edit_mode = True
        result = await session.drop(ViewConfig(sort_field=SortField.TITLE), 3, 0)
        assert result.status == ReorderStatus.REJECTED


async def test_set_position(store, config):
    async with CollectionSession(store, "list-1", config) as session:
        result = await session.set_position("B", 4)

        assert result.status == ReorderStatus.PERSISTED
        assert store.positions("list-1") == {"A": 1, "C": 2, "D": 3, "B": 4}

        with pytest.raises(ValidationError):
            await session.set_position("missing", 1)


async def test_move_refreshes_source(store, config, notices):
    async with CollectionSession(store, "list-1", config, on_notice=notices.append) as session:
        result = await session.move(["A", "C"], NewCollection("Seen"))

        assert result.ok
        assert ids(session.items) == ["B", "D"]
        assert [item.position for item in session.items] == [1, 2]


async def test_copy_unknown_item(store, config):
    async with CollectionSession(store, "list-1", config) as session:
        with pytest.raises(ValidationError):
            await session.copy(["Z"], "list-1")


async def test_refresh_ignored_while_reorder_pending(store, config):
    async with CollectionSession(store, "list-1", config) as session:
        session.engine.begin_edit()
        session.engine.apply_optimistic(list(reversed(session.items)))
        store.collections["list-1"].items = []

        assert not await session.refresh()
        assert len(session.items) == 4
