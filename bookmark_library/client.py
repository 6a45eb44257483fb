"""HTTP client for the Karakeep bookmark manager REST API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import requests

from .config import DEFAULT_API_URL, DEFAULT_PAGE_SIZE, DEFAULT_TIMEOUT, TAG_SUMMARY_SAMPLE
from .errors import KarakeepAPIError
from .models import (
    Bookmark,
    BookmarkList,
    BookmarkSearchResponse,
    BookmarkUpdate,
    ListCreate,
    ListsResponse,
    ListTreeNode,
    ListUpdate,
    TagSummary,
    build_list_tree,
    summarise_tags,
)

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterator, Mapping, Sequence

    from .config import Settings

LOGGER = logging.getLogger(__name__)

HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class KarakeepClient:
    """Thin wrapper over ``requests.Session`` for the ``/api/v1`` endpoints.

    Every request carries the configured timeout. Non-2xx responses and transport
    failures raise ``KarakeepAPIError``; the error message prefers the ``error`` or
    ``message`` field of a JSON body and falls back to ``"<status> <reason>"``.

    The session is shared by worker threads during bulk calls. Only per-request
    arguments change between calls, never the session's own state.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        api_key: str = "",
        *,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(HEADERS)
        if api_key:
            self._session.headers["Authorization"] = f"Bearer {api_key}"

    @classmethod
    def from_settings(
        cls, settings: Settings, session: requests.Session | None = None,
    ) -> KarakeepClient:
        return cls(
            settings.api_url, settings.api_key, timeout=settings.timeout, session=session,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    # --- Transport --------------------------------------------------------------------------

    def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Mapping[str, str] | None = None,
        json: object | None = None,
    ) -> Any:
        url = f"{self._base_url}/api/v1{endpoint}"
        LOGGER.debug("%s %s", method, url)
        try:
            response = self._session.request(
                method, url, params=params, json=json, timeout=self._timeout,
            )
        except requests.RequestException as exc:
            msg = f"Karakeep API request failed: {exc}"
            raise KarakeepAPIError(msg) from exc

        if not response.ok:
            raise KarakeepAPIError(_error_message(response), status_code=response.status_code)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    # --- Reads ------------------------------------------------------------------------------

    def search_bookmarks(
        self,
        query: str = "",
        *,
        limit: int | None = None,
        cursor: str | None = None,
        sort_order: str | None = None,
        include_content: bool | None = None,
    ) -> BookmarkSearchResponse:
        """Search bookmarks, or list all of them when ``query`` is empty."""
        params = _page_params(limit, cursor, sort_order, include_content)
        if query:
            params = {"q": query, **params}
            endpoint = "/bookmarks/search"
        else:
            endpoint = "/bookmarks"
        data = self._request("GET", endpoint, params=params)
        return BookmarkSearchResponse.model_validate(data or {})

    def iter_bookmarks(
        self, query: str = "", *, page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Iterator[Bookmark]:
        """Yield every bookmark matching ``query``, following the page cursor."""
        cursor: str | None = None
        while True:
            page = self.search_bookmarks(query, limit=page_size, cursor=cursor)
            yield from page.bookmarks
            if not page.next_cursor or not page.bookmarks:
                return
            cursor = page.next_cursor

    def get_bookmarks_by_list(
        self,
        list_id: str,
        *,
        limit: int | None = None,
        cursor: str | None = None,
        sort_order: str | None = None,
        include_content: bool | None = None,
    ) -> BookmarkSearchResponse:
        params = _page_params(limit, cursor, sort_order, include_content)
        data = self._request("GET", f"/lists/{list_id}/bookmarks", params=params)
        return BookmarkSearchResponse.model_validate(data or {})

    def get_bookmark(self, bookmark_id: str, *, include_content: bool = True) -> Bookmark:
        params = {"includeContent": _flag(include_content)}
        data = self._request("GET", f"/bookmarks/{bookmark_id}", params=params)
        return Bookmark.model_validate(data)

    def get_recent_bookmarks(self, limit: int = DEFAULT_PAGE_SIZE) -> list[Bookmark]:
        page = self.search_bookmarks(limit=limit, sort_order="desc", include_content=True)
        return page.bookmarks

    def get_favourited_bookmarks(self, limit: int = DEFAULT_PAGE_SIZE) -> list[Bookmark]:
        page = self.search_bookmarks(
            "is:fav", limit=limit, sort_order="desc", include_content=True,
        )
        return page.bookmarks

    def get_lists(self) -> list[BookmarkList]:
        data = self._request("GET", "/lists")
        return ListsResponse.model_validate(data or {}).lists

    def get_bookmark_lists(self, bookmark_id: str) -> list[BookmarkList]:
        """Lists that currently contain ``bookmark_id``."""
        data = self._request("GET", f"/bookmarks/{bookmark_id}/lists")
        return ListsResponse.model_validate(data or {}).lists

    def get_list_tree(self) -> ListTreeNode:
        return build_list_tree(self.get_lists())

    def get_tag_summary(self, limit: int = TAG_SUMMARY_SAMPLE) -> list[TagSummary]:
        """Tag usage across the ``limit`` most recent bookmarks."""
        return summarise_tags(self.get_recent_bookmarks(limit))

    def asset_url(self, asset_id: str) -> str:
        return f"{self._base_url}/api/assets/{asset_id}"

    def screenshot_url(self, bookmark: Bookmark) -> str | None:
        """Screenshot URL from the assets array, else ``content.screenshotAssetId``."""
        for asset in bookmark.assets:
            if asset.asset_type == "screenshot":
                return self.asset_url(asset.id)
        if bookmark.content.screenshot_asset_id:
            return self.asset_url(bookmark.content.screenshot_asset_id)
        return None

    @staticmethod
    def bookmark_title(bookmark: Bookmark) -> str:
        return bookmark.display_title

    # --- Bookmark mutations -----------------------------------------------------------------

    def update_bookmark(
        self, bookmark_id: str, updates: BookmarkUpdate | Mapping[str, object],
    ) -> Bookmark | None:
        """PATCH the given fields onto a bookmark and return the updated resource."""
        model = (
            updates if isinstance(updates, BookmarkUpdate)
            else BookmarkUpdate.model_validate(updates)
        )
        data = self._request("PATCH", f"/bookmarks/{bookmark_id}", json=model.to_payload())
        return Bookmark.model_validate(data) if data else None

    def delete_bookmark(self, bookmark_id: str) -> None:
        self._request("DELETE", f"/bookmarks/{bookmark_id}")

    def attach_tags(self, bookmark_id: str, tags: Sequence[str]) -> None:
        self._request("POST", f"/bookmarks/{bookmark_id}/tags", json=_tags_payload(tags))

    def detach_tags(self, bookmark_id: str, tags: Sequence[str]) -> None:
        self._request("DELETE", f"/bookmarks/{bookmark_id}/tags", json=_tags_payload(tags))

    def add_to_list(self, bookmark_id: str, list_id: str) -> None:
        self._request("PUT", f"/lists/{list_id}/bookmarks/{bookmark_id}")

    def remove_from_list(self, bookmark_id: str, list_id: str) -> None:
        self._request("DELETE", f"/lists/{list_id}/bookmarks/{bookmark_id}")

    # --- List mutations ---------------------------------------------------------------------

    def create_list(self, payload: ListCreate | Mapping[str, object]) -> BookmarkList:
        model = payload if isinstance(payload, ListCreate) else ListCreate.model_validate(payload)
        data = self._request("POST", "/lists", json=model.to_payload())
        LOGGER.info("Created list %s", model.name)
        return BookmarkList.model_validate(data)

    def update_list(
        self, list_id: str, payload: ListUpdate | Mapping[str, object],
    ) -> BookmarkList:
        model = payload if isinstance(payload, ListUpdate) else ListUpdate.model_validate(payload)
        data = self._request("PATCH", f"/lists/{list_id}", json=model.to_payload())
        return BookmarkList.model_validate(data)

    def delete_list(self, list_id: str) -> None:
        self._request("DELETE", f"/lists/{list_id}")


def _flag(value: bool) -> str:  # noqa: FBT001
    return "true" if value else "false"


def _page_params(
    limit: int | None,
    cursor: str | None,
    sort_order: str | None,
    include_content: bool | None,
) -> dict[str, str]:
    params: dict[str, str] = {}
    if limit:
        params["limit"] = str(limit)
    if cursor:
        params["cursor"] = cursor
    if sort_order:
        params["sortOrder"] = sort_order
    if include_content is not None:
        params["includeContent"] = _flag(include_content)
    return params


def _tags_payload(tags: Sequence[str]) -> dict[str, list[dict[str, str]]]:
    return {"tags": [{"tagName": tag} for tag in tags]}


def _error_message(response: requests.Response) -> str:
    fallback = f"{response.status_code} {response.reason or ''}".strip()
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        for key in ("error", "message"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return fallback
