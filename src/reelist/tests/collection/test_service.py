"""Tests for the collection service."""

import pytest

from reelist.collection.errors import StoreError, ValidationError
from reelist.collection.models import CollectionKind, MediaKind, PositionUpdate, SourceKind
from reelist.collection.service import CollectionService


@pytest.fixture
def service(store):
    return CollectionService(store)


async def test_create_collection(service, store):
    collection_id = await service.create_collection("  Road movies ", CollectionKind.PLAYLIST)

    assert store.collections[collection_id].name == "Road movies"
    assert store.collections[collection_id].kind == CollectionKind.PLAYLIST
    playlists = await service.list_collections(CollectionKind.PLAYLIST)
    assert [c.id for c in playlists] == [collection_id]


async def test_create_collection_requires_name(service):
    with pytest.raises(ValidationError):
        await service.create_collection("   ")


async def test_add_item_appends_to_its_own_sequence(service, store, mixed_items):
    store.add("mixed", mixed_items)

    movie = await service.add_item("mixed", "Stalker", catalog_id=1398,
                                   media_kind=MediaKind.MOVIE, release_date="1979-05-25")
    video = await service.add_item("mixed", "Review", source_kind=SourceKind.EXTERNAL,
                                   external_id="xyz")

    assert movie.position == 4
    assert movie.release_year == 1979
    assert video.position == 3
    assert len(store.collections["mixed"].items) == 7


@pytest.mark.parametrize("kwargs", [
    {'title': ""},
    {'title': "No id"},
    {'title': "Video", 'source_kind': SourceKind.EXTERNAL},
])
async def test_add_item_validation(service, store, kwargs):
    with pytest.raises(ValidationError):
        await service.add_item("list-1", **kwargs)
    assert len(store.collections["list-1"].items) == 4


async def test_remove_item_closes_gap(service, store):
    await service.remove_item("list-1", "B")

    assert store.positions("list-1") == {"A": 1, "C": 2, "D": 3}
    assert store.persist_calls == [[PositionUpdate("C", 2), PositionUpdate("D", 3)]]


async def test_remove_last_item_needs_no_renumber(service, store):
    await service.remove_item("list-1", "D")
    assert store.persist_calls == []


async def test_remove_unknown_item(service):
    with pytest.raises(StoreError) as exc_info:
        await service.remove_item("list-1", "nope")
    assert exc_info.value.status == 404


async def test_update_note(service, store):
    item = await service.update_note("list-1", "A", "  rewatch  ")
    assert item.note == "rewatch"

    cleared = await service.update_note("list-1", "A", "   ")
    assert cleared.note is None
