"""CLI entry point for the bookmark library.

Lists collections, searches bookmarks, summarises tags and applies bulk mutations
(favourite, archive, delete, tag, list membership) against a Karakeep backend.
Bulk commands report progress through the tracker and exit non-zero when any
bookmark failed.
"""

from __future__ import annotations

# Standard library imports (alphabetical within groups)
import argparse
import logging
import sys
from typing import TYPE_CHECKING

# Third-party imports
from dotenv import load_dotenv

# Internal imports
from bookmark_library.client import KarakeepClient
from bookmark_library.config import DEFAULT_PAGE_SIZE, TAG_SUMMARY_SAMPLE, Settings
from bookmark_library.errors import ConfigurationError, KarakeepAPIError
from bookmark_library.models import BookmarkUpdate
from bookmark_library.tracker import BulkOperationTracker

if TYPE_CHECKING:  # pragma: no cover
    from bookmark_library.models import BulkResult
    from bookmark_library.tracker import BulkOperationState

LOGGER = logging.getLogger("bookmark_library")

BULK_COMMANDS: dict[str, str] = {
    "favourite": "Mark bookmarks as favourites",
    "unfavourite": "Remove bookmarks from favourites",
    "archive": "Archive bookmarks",
    "unarchive": "Move bookmarks out of the archive",
    "delete": "Delete bookmarks",
    "tag": "Attach tags to bookmarks",
    "untag": "Detach tags from bookmarks",
    "add-to-list": "Add bookmarks to a list",
    "remove-from-list": "Remove bookmarks from a list",
}


def configure_logging(*, verbose: bool) -> None:
    """Configure root logging (debug when verbose)."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage a Karakeep bookmark library")
    parser.add_argument(
        "--concurrency",
        type=int,
        help="Concurrent requests per bulk command (default: BOOKMARK_BULK_CONCURRENCY or 3)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("lists", help="Show the list hierarchy")

    search = commands.add_parser("search", help="Search bookmarks")
    search.add_argument("query", nargs="?", default="", help="Search query (empty for recent)")
    search.add_argument("--limit", type=int, default=DEFAULT_PAGE_SIZE, help="Maximum results")

    tags = commands.add_parser("tags", help="Show tag usage across recent bookmarks")
    tags.add_argument(
        "--limit", type=int, default=TAG_SUMMARY_SAMPLE, help="Recent bookmarks to sample",
    )

    memberships = commands.add_parser("bookmark-lists", help="Show the lists containing a bookmark")
    memberships.add_argument("bookmark_id", help="Bookmark id")

    for name, description in BULK_COMMANDS.items():
        sub = commands.add_parser(name, help=description)
        sub.add_argument("ids", nargs="+", help="Bookmark ids")
        if name in {"tag", "untag"}:
            sub.add_argument("--tags", nargs="+", required=True, help="Tag names")
        if name in {"add-to-list", "remove-from-list"}:
            sub.add_argument("--list", dest="list_id", required=True, help="Target list id")
    return parser.parse_args(argv)


def _log_progress(state: BulkOperationState) -> None:
    snapshot = state.to_snapshot()
    LOGGER.info(
        "Progress %d/%d (%d failed, %d in flight, %.0f%%)",
        snapshot.completed + snapshot.failed,
        snapshot.total,
        snapshot.failed,
        snapshot.in_progress,
        snapshot.percent,
    )


def _run_bulk(args: argparse.Namespace, tracker: BulkOperationTracker) -> BulkResult:
    command = args.command
    ids: list[str] = args.ids
    if command in {"favourite", "unfavourite"}:
        return tracker.update_bookmarks(ids, BookmarkUpdate(favourited=command == "favourite"))
    if command in {"archive", "unarchive"}:
        return tracker.update_bookmarks(ids, BookmarkUpdate(archived=command == "archive"))
    if command == "delete":
        return tracker.delete_bookmarks(ids)
    if command == "tag":
        return tracker.attach_tags(ids, args.tags)
    if command == "untag":
        return tracker.detach_tags(ids, args.tags)
    if command == "add-to-list":
        return tracker.add_to_list(ids, args.list_id)
    return tracker.remove_from_list(ids, args.list_id)


def _report(result: BulkResult) -> int:
    LOGGER.info("%d succeeded, %d failed", len(result.succeeded), len(result.failed))
    for failure in result.failed:
        print(f"FAILED {failure.id}: {failure.error}", file=sys.stderr)  # noqa: T201
    return 0 if result.all_succeeded else 1


def _show_lists(client: KarakeepClient) -> None:
    for depth, node in client.get_list_tree().walk():
        icon = node.bookmark_list.icon if node.bookmark_list else ""
        list_id = node.bookmark_list.id if node.bookmark_list else ""
        print(f"{'  ' * depth}{icon} {node.name} [{list_id}]".rstrip())  # noqa: T201


def _show_search(client: KarakeepClient, query: str, limit: int) -> None:
    if query:
        bookmarks = client.search_bookmarks(query, limit=limit, include_content=True).bookmarks
    else:
        bookmarks = client.get_recent_bookmarks(limit)
    for bookmark in bookmarks:
        flags = ("*" if bookmark.favourited else " ") + ("A" if bookmark.archived else " ")
        print(f"{bookmark.id}  {flags}  {bookmark.display_title}")  # noqa: T201


def _show_tags(client: KarakeepClient, limit: int) -> None:
    for summary in client.get_tag_summary(limit):
        counts = f"ai {summary.ai_count}, human {summary.human_count}"
        print(f"{summary.count:>4}  {summary.name}  ({counts})")  # noqa: T201


def _show_bookmark_lists(client: KarakeepClient, bookmark_id: str) -> None:
    for bookmark_list in client.get_bookmark_lists(bookmark_id):
        print(f"{bookmark_list.icon} {bookmark_list.name} [{bookmark_list.id}]".strip())  # noqa: T201


def main(argv: list[str] | None = None) -> int:
    """Entry point for the bookmark library CLI."""
    load_dotenv()
    args = _parse_args(argv)
    configure_logging(verbose=args.verbose)
    try:
        settings = Settings.from_env()
    except ConfigurationError as exc:
        raise SystemExit(str(exc)) from exc
    client = KarakeepClient.from_settings(settings)

    try:
        if args.command == "lists":
            _show_lists(client)
            return 0
        if args.command == "search":
            _show_search(client, args.query, args.limit)
            return 0
        if args.command == "tags":
            _show_tags(client, args.limit)
            return 0
        if args.command == "bookmark-lists":
            _show_bookmark_lists(client, args.bookmark_id)
            return 0
        concurrency = args.concurrency if args.concurrency is not None else settings.concurrency
        tracker = BulkOperationTracker(client, concurrency=concurrency)
        tracker.subscribe(_log_progress)
        return _report(_run_bulk(args, tracker))
    except ConfigurationError as exc:
        raise SystemExit(str(exc)) from exc
    except KarakeepAPIError as exc:
        LOGGER.error("Backend request failed: %s", exc)  # noqa: TRY400
        return 1


if __name__ == "__main__":
    sys.exit(main())
