"""Data models for ordered media collections."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4


class SourceKind(Enum):
    """Where a collection item comes from."""
    CATALOG = "catalog"
    EXTERNAL = "external"


class MediaKind(Enum):
    """Kind of catalog reference."""
    MOVIE = "movie"
    SERIES = "series"


class CollectionKind(Enum):
    """Flavour of collection. Both share the same ordering rules."""
    LIST = "list"
    PLAYLIST = "playlist"


class NoticeLevel(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp into a naive local datetime.

    Accepts the trailing ``Z`` that JSON APIs emit, which
    ``datetime.fromisoformat`` only understands from Python 3.11 on.
    """
    if value.endswith(('Z', 'z')):
        value = value[:-1] + '+00:00'
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        # keep comparable with datetime.now() values
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


@dataclass
class CollectionItem:
    """An entry in an ordered collection."""
    id: str
    source_kind: SourceKind
    title: str
    position: Optional[int] = None  # None or 0 means "no explicit position"
    added_at: datetime = field(default_factory=datetime.now)
    catalog_id: Optional[int] = None
    media_kind: Optional[MediaKind] = None
    external_id: Optional[str] = None  # e.g. hosted video id
    channel_id: Optional[str] = None
    note: Optional[str] = None
    thumbnail: Optional[str] = None
    release_date: Optional[str] = None  # ISO date captured at add-time

    @property
    def is_positioned(self) -> bool:
        return bool(self.position) and self.position > 0

    @property
    def release_year(self) -> Optional[int]:
        if not self.release_date:
            return None
        try:
            return int(str(self.release_date)[:4])
        except ValueError:
            return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            'id': self.id,
            'source_kind': self.source_kind.value,
            'title': self.title,
            'position': self.position or 0,
            'added_at': self.added_at.isoformat(),
            'catalog_id': self.catalog_id,
            'media_kind': self.media_kind.value if self.media_kind else None,
            'external_id': self.external_id,
            'channel_id': self.channel_id,
            'note': self.note,
            'thumbnail': self.thumbnail,
            'release_date': self.release_date,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CollectionItem':
        """Create an item from a dictionary produced by to_dict."""
        added_at = data.get('added_at')
        if isinstance(added_at, str):
            added_at = parse_timestamp(added_at)
        media_kind = data.get('media_kind')
        return cls(
            id=str(data['id']),
            source_kind=SourceKind(data['source_kind']),
            title=data.get('title') or "",
            position=int(data.get('position') or 0),
            added_at=added_at or datetime.now(),
            catalog_id=data.get('catalog_id'),
            media_kind=MediaKind(media_kind) if media_kind else None,
            external_id=data.get('external_id'),
            channel_id=data.get('channel_id'),
            note=data.get('note'),
            thumbnail=data.get('thumbnail'),
            release_date=data.get('release_date'),
        )


@dataclass
class Collection:
    """A named, ordered collection owning its items."""
    name: str
    kind: CollectionKind = CollectionKind.LIST
    id: str = field(default_factory=lambda: str(uuid4()))
    items: List[CollectionItem] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    modified_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'kind': self.kind.value,
            'created_at': self.created_at.isoformat(),
            'modified_at': self.modified_at.isoformat(),
            'items': [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Collection':
        collection = cls(
            id=str(data['id']),
            name=data['name'],
            kind=CollectionKind(data.get('kind', CollectionKind.LIST.value)),
            items=[CollectionItem.from_dict(row) for row in data.get('items', [])],
        )
        for attr in ('created_at', 'modified_at'):
            if isinstance(data.get(attr), str):
                setattr(collection, attr, parse_timestamp(data[attr]))
        return collection


@dataclass(frozen=True)
class PositionUpdate:
    """One entry of a batch "set positions" call."""
    item_id: str
    position: int

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.item_id, 'position': self.position}


@dataclass(frozen=True)
class NewCollection:
    """Destination that is created on the fly by a bulk transfer."""
    name: str
    kind: CollectionKind = CollectionKind.PLAYLIST


@dataclass
class Notice:
    """Non-blocking, user facing notification."""
    level: NoticeLevel
    message: str
    error: Optional[Exception] = None
