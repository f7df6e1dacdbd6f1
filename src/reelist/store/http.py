"""REST API backed collection store."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Set

import aiohttp

from reelist.collection.errors import StoreError
from reelist.collection.models import (Collection, CollectionItem, CollectionKind,
                                       MediaKind, PositionUpdate, SourceKind,
                                       parse_timestamp)
from reelist.store.base import CollectionStore

_KIND_PATHS = {
    CollectionKind.LIST: "lists",
    CollectionKind.PLAYLIST: "playlists",
}

# response envelope of a single collection
_ENVELOPES = {
    CollectionKind.LIST: "list",
    CollectionKind.PLAYLIST: "playlist",
}

# lists number their items by "position", playlists by "order"
_POSITION_KEYS = {
    CollectionKind.LIST: "position",
    CollectionKind.PLAYLIST: "order",
}

_MEDIA_TYPES = {
    MediaKind.MOVIE: "movie",
    MediaKind.SERIES: "tv",
}


def item_from_api(row: Dict[str, Any], kind: CollectionKind,
                  source_kind: SourceKind = SourceKind.CATALOG) -> CollectionItem:
    """Map an API item (catalog or YouTube) to a CollectionItem."""
    try:
        created_at = row.get('createdAt')
        media_type = row.get('mediaType')
        if source_kind == SourceKind.EXTERNAL:
            external = {
                'external_id': row['videoId'],
                'channel_id': row.get('channelId'),
                'thumbnail': row.get('thumbnail'),
                'release_date': row.get('publishedAt'),
            }
        else:
            external = {
                'catalog_id': row['tmdbId'],
                'media_kind': MediaKind.SERIES if media_type == "tv" else MediaKind.MOVIE,
                'thumbnail': row.get('posterPath'),
                'release_date': row.get('releaseDate') or row.get('firstAirDate'),
            }
        item = CollectionItem(
            id=str(row['id']),
            source_kind=source_kind,
            title=row.get('title') or "",
            position=int(row.get(_POSITION_KEYS[kind]) or 0),
            note=row.get('note'),
            **external
        )
        if created_at:
            item.added_at = parse_timestamp(created_at)
        return item
    except (KeyError, TypeError, ValueError) as e:
        raise StoreError(f"Invalid item in API response: {e}")


def item_to_api(item: CollectionItem, kind: CollectionKind) -> Dict[str, Any]:
    """Map a CollectionItem to the API's create payload."""
    payload: Dict[str, Any] = {
        'title': item.title,
        _POSITION_KEYS[kind]: item.position or 0,
    }
    if item.source_kind == SourceKind.EXTERNAL:
        payload.update({
            'videoId': item.external_id,
            'channelId': item.channel_id,
            'thumbnail': item.thumbnail,
            'publishedAt': item.release_date,
        })
    else:
        media_kind = item.media_kind or MediaKind.MOVIE
        date_key = 'firstAirDate' if media_kind == MediaKind.SERIES else 'releaseDate'
        payload.update({
            'tmdbId': item.catalog_id,
            'mediaType': _MEDIA_TYPES[media_kind],
            'posterPath': item.thumbnail,
            date_key: item.release_date,
        })
    if item.note:
        payload['note'] = item.note
    return payload


def collection_from_api(row: Dict[str, Any], kind: CollectionKind) -> Collection:
    try:
        collection = Collection(id=str(row['id']), name=row['name'], kind=kind)
        if row.get('createdAt'):
            collection.created_at = parse_timestamp(row['createdAt'])
        if row.get('updatedAt'):
            collection.modified_at = parse_timestamp(row['updatedAt'])
    except (KeyError, TypeError, ValueError) as e:
        raise StoreError(f"Invalid collection in API response: {e}")
    return collection


class HttpCollectionStore(CollectionStore):
    """Collection store talking to the application's REST API"""

    def __init__(
        self,
        base_url: str,
        kind: CollectionKind = CollectionKind.LIST,
        api_token: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip('/')
        self.kind = kind
        self.api_token = api_token
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)
        self._session: aiohttp.ClientSession | None = None
        self.max_retry = 3
        self.retry_delay = 1  # seconds, GET requests only
        # ids of YouTube items seen in fetched playlists, they have their own routes
        self._external_ids: Set[str] = set()

    async def __aenter__(self):
        await self._init_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _init_session(self) -> None:
        if not self._session:
            headers = {'Accept': 'application/json'}
            if self.api_token:
                headers['Authorization'] = f"Bearer {self.api_token}"
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout, headers=headers)

    async def close(self) -> None:
        """Close the aiohttp session"""
        if self._session:
            await self._session.close()
            self._session = None

    def _url(self, *parts: str, kind: Optional[CollectionKind] = None) -> str:
        path = "/".join(str(part) for part in parts)
        prefix = f"{self.base_url}/api/{_KIND_PATHS[kind or self.kind]}"
        return f"{prefix}/{path}" if path else prefix

    async def _request(self, method: str, url: str, payload: Optional[Dict[str, Any]] = None,
                       params: Optional[Dict[str, str]] = None) -> Any:
        if not self._session:
            raise StoreError("Session not initialized. Use async with context.")

        # only idempotent reads are retried, writes are reported as they fail
        attempts = self.max_retry if method == 'GET' else 1
        for attempt in range(1, attempts + 1):
            try:
                async with self._session.request(method, url, json=payload, params=params) as response:
                    if response.status >= 400:
                        error_text = await response.text()
                        raise StoreError(
                            f"{method} {url} failed ({response.status}): {error_text}",
                            status=response.status
                        )
                    if response.status == 204:
                        return None
                    return await response.json()

            except StoreError as e:
                if e.status is not None and e.status < 500 or attempt == attempts:
                    raise
                self.logger.warning(f"Retrying {method} {url} after server error: {e}")
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if attempt == attempts:
                    raise StoreError(f"API error: {e}")
                self.logger.warning(f"Retrying {method} {url} after {type(e).__name__}: {e}")
            except json.JSONDecodeError as e:
                raise StoreError(f"Invalid API response: {e}")

            await asyncio.sleep(self.retry_delay * attempt)

    def _unwrap(self, data: Any, key: str, expected: type) -> Any:
        body = data.get(key) if isinstance(data, dict) else None
        if not isinstance(body, expected):
            raise StoreError(f"Invalid API response format: missing '{key}'")
        return body

    def _is_external(self, item_id: str) -> bool:
        return self.kind == CollectionKind.PLAYLIST and item_id in self._external_ids

    async def _fetch_body(self, collection_id: str) -> Dict[str, Any]:
        data = await self._request('GET', self._url(collection_id))
        return self._unwrap(data, _ENVELOPES[self.kind], dict)

    def _items_of(self, body: Dict[str, Any]) -> List[CollectionItem]:
        rows = self._unwrap(body, 'items', list)
        items = [item_from_api(row, self.kind) for row in rows]
        if self.kind == CollectionKind.PLAYLIST:
            videos = [
                item_from_api(row, self.kind, SourceKind.EXTERNAL)
                for row in body.get('youtubeItems') or []
            ]
            self._external_ids.update(item.id for item in videos)
            items.extend(videos)
        return items

    async def fetch_collection(self, collection_id: str) -> List[CollectionItem]:
        return self._items_of(await self._fetch_body(collection_id))

    async def persist_order(self, collection_id: str, updates: Sequence[PositionUpdate]) -> None:
        if not updates:
            raise StoreError("Position updates cannot be empty", status=400)

        position_key = _POSITION_KEYS[self.kind]
        batches = {
            "tmdb": [u for u in updates if not self._is_external(u.item_id)],
            "youtube": [u for u in updates if self._is_external(u.item_id)],
        }
        for item_type, batch in batches.items():
            if not batch:
                continue
            payload: Dict[str, Any] = {
                'items': [{'id': u.item_id, position_key: u.position} for u in batch]
            }
            if self.kind == CollectionKind.PLAYLIST:
                payload['itemType'] = item_type
            await self._request('PATCH', self._url(collection_id, 'reorder'), payload)
        self.logger.info(f"Sent {len(updates)} position(s) for collection {collection_id}")

    async def create_item(self, collection_id: str, item: CollectionItem) -> CollectionItem:
        external = item.source_kind == SourceKind.EXTERNAL
        route = 'youtube-items' if external and self.kind == CollectionKind.PLAYLIST else 'items'
        data = await self._request(
            'POST', self._url(collection_id, route), item_to_api(item, self.kind)
        )
        row = data.get('item') if isinstance(data, dict) else None
        if not isinstance(row, dict):
            raise StoreError("Invalid API response format: missing 'item'")
        created = item_from_api(row, self.kind, item.source_kind)
        if external:
            self._external_ids.add(created.id)
        return created

    async def delete_item(self, collection_id: str, item_id: str) -> None:
        if self.kind == CollectionKind.LIST:
            await self._request('DELETE', self._url(collection_id, 'items', item_id))
        elif self._is_external(item_id):
            await self._request('DELETE', self._url(collection_id, 'youtube-items', item_id))
        else:
            await self._request(
                'DELETE', self._url(collection_id, 'items'), params={'itemId': item_id}
            )
        self._external_ids.discard(item_id)

    async def update_item_note(self, collection_id: str, item_id: str,
                               note: Optional[str]) -> CollectionItem:
        data = await self._request(
            'PATCH', self._url(collection_id, 'items', item_id), {'note': note}
        )
        key = 'listItem' if self.kind == CollectionKind.LIST else 'playlistItem'
        return item_from_api(self._unwrap(data, key, dict), self.kind)

    async def create_collection(self, name: str, kind: CollectionKind,
                                items: Sequence[CollectionItem] = ()) -> str:
        payload: Dict[str, Any] = {
            'name': name,
            'items': [
                item_to_api(item, kind) for item in items
                if item.source_kind == SourceKind.CATALOG
            ],
        }
        videos = [item for item in items if item.source_kind == SourceKind.EXTERNAL]
        if videos:
            if kind != CollectionKind.PLAYLIST:
                raise StoreError("Lists cannot hold YouTube items", status=400)
            payload['youtubeItems'] = [item_to_api(item, kind) for item in videos]

        data = await self._request('POST', self._url(kind=kind), payload)
        collection = self._unwrap(data, _ENVELOPES[kind], dict)
        self.logger.info(f"Created {kind.value} {name} with {len(items)} items")
        return str(collection['id'])

    async def get_collection(self, collection_id: str) -> Optional[Collection]:
        try:
            body = await self._fetch_body(collection_id)
        except StoreError as e:
            if e.status == 404:
                return None
            raise
        collection = collection_from_api(body, self.kind)
        collection.items = self._items_of(body)
        return collection

    async def list_collections(self, kind: Optional[CollectionKind] = None) -> List[Collection]:
        kinds = [kind] if kind else list(_KIND_PATHS)
        collections = []
        for collection_kind in kinds:
            data = await self._request('GET', self._url(kind=collection_kind))
            rows = self._unwrap(data, _KIND_PATHS[collection_kind], list)
            collections.extend(collection_from_api(row, collection_kind) for row in rows)
        return collections
