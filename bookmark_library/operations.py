"""Bulk bookmark mutations: one backend call per id, run through the bulk executor."""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

from .bulk import execute_bulk_operation
from .config import DEFAULT_CONCURRENCY
from .errors import ConfigurationError
from .models import BookmarkUpdate

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Callable, Iterable, Mapping, Sequence

    from .client import KarakeepClient
    from .models import BulkResult, ProgressSnapshot

    ProgressCallback = Callable[[ProgressSnapshot], None]

LOGGER = logging.getLogger(__name__)


def bulk_update(
    client: KarakeepClient,
    bookmark_ids: Iterable[str],
    updates: BookmarkUpdate | Mapping[str, object],
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    on_progress: ProgressCallback | None = None,
) -> BulkResult:
    """PATCH the same field updates onto every bookmark."""
    model = (
        updates if isinstance(updates, BookmarkUpdate) else BookmarkUpdate.model_validate(updates)
    )
    if not model.to_payload():
        msg = "No bookmark fields to update"
        raise ConfigurationError(msg)
    return execute_bulk_operation(
        bookmark_ids,
        partial(client.update_bookmark, updates=model),
        concurrency=concurrency,
        on_progress=on_progress,
    )


def bulk_favourite(
    client: KarakeepClient,
    bookmark_ids: Iterable[str],
    *,
    favourited: bool = True,
    concurrency: int = DEFAULT_CONCURRENCY,
    on_progress: ProgressCallback | None = None,
) -> BulkResult:
    return bulk_update(
        client,
        bookmark_ids,
        BookmarkUpdate(favourited=favourited),
        concurrency=concurrency,
        on_progress=on_progress,
    )


def bulk_archive(
    client: KarakeepClient,
    bookmark_ids: Iterable[str],
    *,
    archived: bool = True,
    concurrency: int = DEFAULT_CONCURRENCY,
    on_progress: ProgressCallback | None = None,
) -> BulkResult:
    return bulk_update(
        client,
        bookmark_ids,
        BookmarkUpdate(archived=archived),
        concurrency=concurrency,
        on_progress=on_progress,
    )


def bulk_delete(
    client: KarakeepClient,
    bookmark_ids: Iterable[str],
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    on_progress: ProgressCallback | None = None,
) -> BulkResult:
    return execute_bulk_operation(
        bookmark_ids, client.delete_bookmark, concurrency=concurrency, on_progress=on_progress,
    )


def bulk_attach_tags(
    client: KarakeepClient,
    bookmark_ids: Iterable[str],
    tags: Sequence[str],
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    on_progress: ProgressCallback | None = None,
) -> BulkResult:
    return execute_bulk_operation(
        bookmark_ids,
        partial(client.attach_tags, tags=_require_tags(tags)),
        concurrency=concurrency,
        on_progress=on_progress,
    )


def bulk_detach_tags(
    client: KarakeepClient,
    bookmark_ids: Iterable[str],
    tags: Sequence[str],
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    on_progress: ProgressCallback | None = None,
) -> BulkResult:
    return execute_bulk_operation(
        bookmark_ids,
        partial(client.detach_tags, tags=_require_tags(tags)),
        concurrency=concurrency,
        on_progress=on_progress,
    )


def bulk_add_to_list(
    client: KarakeepClient,
    bookmark_ids: Iterable[str],
    list_id: str,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    on_progress: ProgressCallback | None = None,
) -> BulkResult:
    return execute_bulk_operation(
        bookmark_ids,
        partial(client.add_to_list, list_id=_require_list_id(list_id)),
        concurrency=concurrency,
        on_progress=on_progress,
    )


def bulk_remove_from_list(
    client: KarakeepClient,
    bookmark_ids: Iterable[str],
    list_id: str,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    on_progress: ProgressCallback | None = None,
) -> BulkResult:
    return execute_bulk_operation(
        bookmark_ids,
        partial(client.remove_from_list, list_id=_require_list_id(list_id)),
        concurrency=concurrency,
        on_progress=on_progress,
    )


def _require_tags(tags: Sequence[str]) -> list[str]:
    cleaned = [tag.strip() for tag in tags if tag and tag.strip()]
    if not cleaned:
        msg = "At least one tag is required"
        raise ConfigurationError(msg)
    if len(cleaned) != len(tags):
        LOGGER.debug("Dropped %d blank tag names", len(tags) - len(cleaned))
    return cleaned


def _require_list_id(list_id: str) -> str:
    if not list_id or not list_id.strip():
        msg = "A list id is required"
        raise ConfigurationError(msg)
    return list_id.strip()
