import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from reelist.collection.errors import CollectionError
from reelist.collection.models import (CollectionKind, MediaKind, NewCollection, Notice,
                                       NoticeLevel, SourceKind)
from reelist.collection.reorder import ReorderStatus
from reelist.collection.service import CollectionService
from reelist.collection.session import CollectionSession
from reelist.collection.transfer import TransferResult
from reelist.collection.view import (SortDirection, SortField, TypeFilter, ViewConfig,
                                     page_numbers)
from reelist.config import Config, load_config
from reelist.store import HttpCollectionStore, SQLiteCollectionStore

logger = logging.getLogger(__name__)

console = Console()

_NOTICE_STYLES = {
    NoticeLevel.INFO: "green",
    NoticeLevel.WARNING: "yellow",
    NoticeLevel.ERROR: "bold red",
}


def setup_logging(verbosity: int = 0, log_file: Optional[Path] = None):
    """Configure logging based on verbosity level."""
    log_level = logging.WARNING
    if verbosity == 1:
        log_level = logging.INFO
    elif verbosity >= 2:
        log_level = logging.DEBUG

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )


def print_notice(notice: Notice) -> None:
    console.print(f"[{_NOTICE_STYLES[notice.level]}]{notice.message}")
    if notice.error:
        logger.info(f"{notice.message}: {notice.error}")


@asynccontextmanager
async def open_store(config: Config, kind: CollectionKind = CollectionKind.LIST):
    """Open the configured store: the REST API if configured, else SQLite."""
    if config.api_base_url:
        async with HttpCollectionStore(
            config.api_base_url, kind=kind, api_token=config.api_token
        ) as store:
            yield store
        return

    Path(config.db_path).parent.mkdir(parents=True, exist_ok=True)
    store = SQLiteCollectionStore(config.db_path)
    await store.initialize()
    try:
        yield store
    finally:
        await store.close()


def _kind(args: argparse.Namespace) -> CollectionKind:
    return CollectionKind(getattr(args, 'kind', None) or CollectionKind.LIST.value)


def _view_config(args: argparse.Namespace, config: Config) -> ViewConfig:
    return ViewConfig(
        search=getattr(args, 'search', None) or "",
        type_filter=TypeFilter(getattr(args, 'type', None) or TypeFilter.ALL.value),
        sort_field=SortField(getattr(args, 'sort', None) or SortField.COLLECTION_ORDER.value),
        sort_direction=SortDirection(getattr(args, 'direction', None) or SortDirection.ASC.value),
        page=getattr(args, 'page', None) or 1,
        page_size=config.page_size
    )


async def collections_command(args: argparse.Namespace, config: Config):
    """List collections."""
    kind = CollectionKind(args.kind) if args.kind else None
    async with open_store(config, kind or CollectionKind.LIST) as store:
        collections = await CollectionService(store).list_collections(kind)

    if not collections:
        console.print("No collections found")
        return

    table = Table(title="Collections")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Kind")
    table.add_column("Modified")
    for collection in collections:
        table.add_row(
            collection.id,
            collection.name,
            collection.kind.value,
            collection.modified_at.strftime('%Y-%m-%d %H:%M')
        )
    console.print(table)


async def create_command(args: argparse.Namespace, config: Config):
    """Create an empty collection."""
    kind = _kind(args)
    async with open_store(config, kind) as store:
        collection_id = await CollectionService(store).create_collection(args.name, kind)
    console.print(f"Created {kind.value} [bold]{args.name}[/bold]: {collection_id}")


async def show_command(args: argparse.Namespace, config: Config):
    """Show one page of a collection."""
    async with open_store(config, _kind(args)) as store:
        async with CollectionSession(store, args.collection_id, config) as session:
            projection = session.project(_view_config(args, config))

    if not projection.view_sequence:
        console.print("No items match")
        return

    table = Table()
    table.add_column("#", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("Type")
    table.add_column("Year", justify="right")
    table.add_column("Added")
    table.add_column("ID", style="dim")
    table.add_column("Note")
    for page_index, item in enumerate(projection.page_slice):
        kind = item.media_kind.value if item.media_kind else item.source_kind.value
        table.add_row(
            str(projection.view_index_of_page_index(page_index) + 1),
            item.title,
            kind,
            str(item.release_year or ""),
            item.added_at.strftime('%Y-%m-%d'),
            item.id,
            item.note or ""
        )
    console.print(table)

    if projection.total_pages > 1:
        strip = " ".join(
            "…" if page == "ellipsis" else
            f"[bold]{page}[/bold]" if page == projection.page else str(page)
            for page in page_numbers(projection.page, projection.total_pages)
        )
        console.print(f"Page {projection.page} of {projection.total_pages}: {strip}")


async def add_command(args: argparse.Namespace, config: Config):
    """Add an item at the end of a collection."""
    source_kind = SourceKind.EXTERNAL if args.external_id else SourceKind.CATALOG
    async with open_store(config, _kind(args)) as store:
        item = await CollectionService(store).add_item(
            args.collection_id,
            args.title,
            source_kind=source_kind,
            catalog_id=args.catalog_id,
            media_kind=MediaKind(args.media_kind) if args.media_kind else None,
            external_id=args.external_id,
            channel_id=args.channel_id,
            release_date=args.release_date,
            note=args.note
        )
    console.print(f"Added [bold]{item.title}[/bold] at position {item.position} ({item.id})")


async def remove_command(args: argparse.Namespace, config: Config):
    async with open_store(config, _kind(args)) as store:
        await CollectionService(store).remove_item(args.collection_id, args.item_id)
    console.print(f"Removed {args.item_id}")


async def note_command(args: argparse.Namespace, config: Config):
    async with open_store(config, _kind(args)) as store:
        item = await CollectionService(store).update_note(
            args.collection_id, args.item_id, args.text
        )
    console.print(f"Note for [bold]{item.title}[/bold]: {item.note or '(cleared)'}")


def _report_reorder(status: ReorderStatus, reason: Optional[str]) -> int:
    if status == ReorderStatus.PERSISTED:
        console.print("[green]Order updated")
        return 0
    if status == ReorderStatus.NOOP:
        console.print(f"Nothing to do: {reason}")
        return 0
    if status == ReorderStatus.REJECTED:
        console.print(f"[yellow]Cannot move: {reason}")
    return 1


async def move_command(args: argparse.Namespace, config: Config):
    """Drag an item from one view number to another."""
    view = ViewConfig(
        search=args.search or "",
        type_filter=TypeFilter(args.type or TypeFilter.ALL.value)
    )
    async with open_store(config, _kind(args)) as store:
        async with CollectionSession(store, args.collection_id, config,
                                     on_notice=print_notice) as session:
            session.edit_mode = True
            result = await session.drop(view, args.source - 1, args.dest - 1)
    return _report_reorder(result.status, result.reason)


async def set_position_command(args: argparse.Namespace, config: Config):
    """Move an item to an absolute position."""
    async with open_store(config, _kind(args)) as store:
        async with CollectionSession(store, args.collection_id, config,
                                     on_notice=print_notice) as session:
            result = await session.set_position(args.item_id, args.position)
    return _report_reorder(result.status, result.reason)


def _destination(args: argparse.Namespace):
    if args.new:
        return NewCollection(args.new, CollectionKind(args.new_kind))
    return args.to


def _report_transfer(result: TransferResult, verb: str) -> int:
    if result.error and not result.created:
        return 1
    console.print(f"{verb} {len(result.created)} item(s) to {result.destination_id}")
    return 1 if result.error else 0


async def copy_command(args: argparse.Namespace, config: Config):
    async with open_store(config, _kind(args)) as store:
        async with CollectionSession(store, args.collection_id, config,
                                     on_notice=print_notice) as session:
            result = await session.copy(args.item_ids, _destination(args))
    return _report_transfer(result, "Copied")


async def transfer_command(args: argparse.Namespace, config: Config):
    """Move items into another collection."""
    async with open_store(config, _kind(args)) as store:
        async with CollectionSession(store, args.collection_id, config,
                                     on_notice=print_notice) as session:
            result = await session.move(args.item_ids, _destination(args))
    return _report_transfer(result, "Moved")


def run_command(args: argparse.Namespace):
    """Load configuration and run an async command."""
    try:
        config = load_config(Path(args.config) if args.config else None)
    except (OSError, ValueError) as e:
        console.print(f"[bold red]Invalid configuration: {e}")
        sys.exit(1)

    setup_logging(args.verbose, config.log_file)

    try:
        exit_code = asyncio.run(args.func(args, config))
    except CollectionError as e:
        logger.error(f"{args.command} failed: {e}")
        console.print(f"[bold red]{e}")
        sys.exit(1)

    if exit_code:
        sys.exit(exit_code)


def _add_collection_argument(parser: argparse.ArgumentParser):
    parser.add_argument('collection_id', help="Collection ID")
    parser.add_argument(
        '-k', '--kind',
        choices=[kind.value for kind in CollectionKind],
        default=CollectionKind.LIST.value,
        help="Collection kind (selects the API route)"
    )


def _add_filter_arguments(parser: argparse.ArgumentParser):
    parser.add_argument('--search', help="Only items whose title contains this text")
    parser.add_argument(
        '--type',
        choices=[value.value for value in TypeFilter],
        default=TypeFilter.ALL.value,
        help="Only items of this type"
    )


def _add_destination_arguments(parser: argparse.ArgumentParser):
    parser.add_argument('item_ids', nargs='+', help="IDs of the items to transfer")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument('--to', help="ID of an existing destination collection")
    target.add_argument('--new', help="Name of a new destination collection")
    parser.add_argument(
        '--new-kind',
        choices=[kind.value for kind in CollectionKind],
        default=CollectionKind.PLAYLIST.value,
        help="Kind of the new destination collection"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reelist: ordered movie and video collections"
    )
    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help="Increase verbosity (can be used multiple times)"
    )
    parser.add_argument(
        '-c', '--config',
        help="Path to configuration file"
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        required=True
    )

    collections_parser = subparsers.add_parser('collections', help="List collections")
    collections_parser.add_argument(
        '-k', '--kind',
        choices=[kind.value for kind in CollectionKind],
        help="Only collections of this kind"
    )
    collections_parser.set_defaults(func=collections_command)

    create_parser = subparsers.add_parser('create', help="Create a collection")
    create_parser.add_argument('name', help="Collection name")
    create_parser.add_argument(
        '-k', '--kind',
        choices=[kind.value for kind in CollectionKind],
        default=CollectionKind.LIST.value,
        help="Collection kind"
    )
    create_parser.set_defaults(func=create_command)

    show_parser = subparsers.add_parser('show', help="Show the items of a collection")
    _add_collection_argument(show_parser)
    _add_filter_arguments(show_parser)
    show_parser.add_argument(
        '--sort',
        choices=[field.value for field in SortField],
        default=SortField.COLLECTION_ORDER.value,
        help="Sort field"
    )
    show_parser.add_argument(
        '--direction',
        choices=[direction.value for direction in SortDirection],
        default=SortDirection.ASC.value,
        help="Sort direction (ignored for collection order)"
    )
    show_parser.add_argument('--page', type=int, default=1, help="Page to show")
    show_parser.set_defaults(func=show_command)

    add_parser = subparsers.add_parser('add', help="Add an item to a collection")
    _add_collection_argument(add_parser)
    add_parser.add_argument('title', help="Display title")
    source = add_parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--catalog-id', type=int, help="Catalog id of a movie or series")
    source.add_argument('--external-id', help="Id of an externally hosted video")
    add_parser.add_argument(
        '--media-kind',
        choices=[kind.value for kind in MediaKind],
        help="Movie or series (catalog items)"
    )
    add_parser.add_argument('--channel-id', help="Channel of an external video")
    add_parser.add_argument('--release-date', help="Release date, YYYY-MM-DD")
    add_parser.add_argument('--note', help="Note to attach")
    add_parser.set_defaults(func=add_command)

    remove_parser = subparsers.add_parser('remove', help="Remove an item")
    _add_collection_argument(remove_parser)
    remove_parser.add_argument('item_id', help="Item ID")
    remove_parser.set_defaults(func=remove_command)

    note_parser = subparsers.add_parser('note', help="Set or clear an item's note")
    _add_collection_argument(note_parser)
    note_parser.add_argument('item_id', help="Item ID")
    note_parser.add_argument('text', nargs='?', help="Note text, omit to clear")
    note_parser.set_defaults(func=note_command)

    move_parser = subparsers.add_parser(
        'move',
        help="Move an item from one row number to another, as shown by 'show'"
    )
    _add_collection_argument(move_parser)
    _add_filter_arguments(move_parser)
    move_parser.add_argument('source', type=int, help="Current row number")
    move_parser.add_argument('dest', type=int, help="Target row number")
    move_parser.set_defaults(func=move_command)

    position_parser = subparsers.add_parser(
        'set-position',
        help="Move an item to an absolute position"
    )
    _add_collection_argument(position_parser)
    position_parser.add_argument('item_id', help="Item ID")
    position_parser.add_argument('position', type=int, help="New position, starting at 1")
    position_parser.set_defaults(func=set_position_command)

    copy_parser = subparsers.add_parser('copy', help="Copy items to another collection")
    _add_collection_argument(copy_parser)
    _add_destination_arguments(copy_parser)
    copy_parser.set_defaults(func=copy_command)

    transfer_parser = subparsers.add_parser('transfer', help="Move items to another collection")
    _add_collection_argument(transfer_parser)
    _add_destination_arguments(transfer_parser)
    transfer_parser.set_defaults(func=transfer_command)

    return parser


def main(argv: Optional[List[str]] = None):
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    run_command(args)


if __name__ == '__main__':
    main()
