"""Data models for bookmark resources and bulk mutation results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from attrs import Factory, define
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import LIST_DESCRIPTION_MAX_LENGTH, LIST_NAME_MAX_LENGTH

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable


class _ApiModel(BaseModel):
    """Base for resources exchanged with the backend (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)


class Tag(_ApiModel):
    """Tag attached to a bookmark, either by AI or human."""

    id: str
    name: str
    attached_by: str = Field(default="human", alias="attachedBy")


class Asset(_ApiModel):
    """Asset associated with a bookmark (screenshot, banner image or archived HTML)."""

    id: str
    asset_type: str = Field(alias="assetType")
    file_name: str | None = Field(default=None, alias="fileName")


class BookmarkContent(_ApiModel):
    """Content metadata for a bookmark."""

    type: str = "link"
    url: str = ""
    title: str | None = None
    description: str | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")
    screenshot_asset_id: str | None = Field(default=None, alias="screenshotAssetId")
    favicon: str | None = None
    author: str | None = None
    publisher: str | None = None


class Bookmark(_ApiModel):
    """A saved bookmark with all metadata."""

    id: str
    created_at: str = Field(alias="createdAt")
    modified_at: str | None = Field(default=None, alias="modifiedAt")
    title: str | None = None
    archived: bool = False
    favourited: bool = False
    note: str | None = None
    summary: str | None = None
    source: str | None = None
    tags: list[Tag] = Field(default_factory=list)
    content: BookmarkContent = Field(default_factory=BookmarkContent)
    assets: list[Asset] = Field(default_factory=list)

    @property
    def display_title(self) -> str:
        return self.title or self.content.title or "Untitled"


class BookmarkList(_ApiModel):
    """A list (collection) of bookmarks. Smart lists carry a search query."""

    id: str
    name: str
    icon: str = ""
    parent_id: str | None = Field(default=None, alias="parentId")
    query: str | None = None


class BookmarkSearchResponse(_ApiModel):
    """One page of bookmarks plus the cursor for the next page."""

    bookmarks: list[Bookmark] = Field(default_factory=list)
    next_cursor: str | None = Field(default=None, alias="nextCursor")


class ListsResponse(_ApiModel):
    lists: list[BookmarkList] = Field(default_factory=list)


class BookmarkUpdate(_ApiModel):
    """Partial update applied to a bookmark. Only explicitly set fields are sent."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    title: str | None = None
    note: str | None = None
    archived: bool | None = None
    favourited: bool | None = None

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(exclude_unset=True, by_alias=True)


class ListCreate(_ApiModel):
    """Payload for creating a list."""

    name: str = Field(min_length=1, max_length=LIST_NAME_MAX_LENGTH)
    icon: str = Field(min_length=1)
    description: str | None = Field(default=None, max_length=LIST_DESCRIPTION_MAX_LENGTH)
    type: Literal["manual", "smart"] = "manual"
    query: str | None = None
    parent_id: str | None = Field(default=None, alias="parentId")

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _smart_lists_need_query(self) -> ListCreate:
        if self.type == "smart" and not (self.query and self.query.strip()):
            msg = "Smart lists require a query"
            raise ValueError(msg)
        return self

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(exclude_none=True, by_alias=True)


class ListUpdate(_ApiModel):
    """Partial update applied to a list."""

    name: str | None = Field(default=None, min_length=1, max_length=LIST_NAME_MAX_LENGTH)
    icon: str | None = None
    description: str | None = Field(default=None, max_length=LIST_DESCRIPTION_MAX_LENGTH)
    query: str | None = None
    parent_id: str | None = Field(default=None, alias="parentId")

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(exclude_unset=True, by_alias=True)


@dataclass(slots=True)
class TagSummary:
    """How often a tag name is used across bookmarks, split by who attached it."""

    name: str
    count: int = 0
    ai_count: int = 0
    human_count: int = 0


def summarise_tags(bookmarks: Iterable[Bookmark]) -> list[TagSummary]:
    """Aggregate tag usage by name, most used first (ties keep first-seen order)."""
    summaries: dict[str, TagSummary] = {}
    for bookmark in bookmarks:
        for tag in bookmark.tags:
            summary = summaries.setdefault(tag.name, TagSummary(name=tag.name))
            summary.count += 1
            if tag.attached_by == "ai":
                summary.ai_count += 1
            else:
                summary.human_count += 1
    return sorted(summaries.values(), key=lambda summary: summary.count, reverse=True)


# --- Bulk mutation values -----------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class Succeeded:
    """Terminal outcome for an id whose operation returned normally."""

    id: str


@dataclass(slots=True, frozen=True)
class Failed:
    """Terminal outcome for an id whose operation raised."""

    id: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"bookmarkId": self.id, "error": self.error}


Outcome = Succeeded | Failed


@dataclass(slots=True, frozen=True)
class ProgressSnapshot:
    """Point-in-time counters for one bulk call."""

    total: int
    completed: int
    failed: int
    in_progress: int
    errors: tuple[Failed, ...] = ()

    @property
    def finished(self) -> bool:
        return self.completed + self.failed == self.total

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 100.0
        return (self.completed + self.failed) / self.total * 100

    def to_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
            "inProgress": self.in_progress,
            "errors": [failure.to_dict() for failure in self.errors],
        }


@dataclass(slots=True, frozen=True)
class BulkResult:
    """Final partition of a bulk call into succeeded ids and failures."""

    succeeded: tuple[str, ...] = ()
    failed: tuple[Failed, ...] = ()

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def failed_ids(self) -> list[str]:
        return [failure.id for failure in self.failed]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict[str, object]:
        return {
            "succeeded": list(self.succeeded),
            "failed": [failure.to_dict() for failure in self.failed],
        }


@define(slots=True, init=False)
class ListTreeNode:
    """Node of the list hierarchy; the root node carries no list."""

    name: str
    bookmark_list: BookmarkList | None = None
    children: list[ListTreeNode] = Factory(lambda: list[ListTreeNode]())

    def __init__(self, name: str, bookmark_list: BookmarkList | None = None) -> None:
        """Initialise the tree node."""
        self.name = name
        self.bookmark_list = bookmark_list
        self.children = []

    def add_child(self, child: ListTreeNode) -> None:
        self.children.append(child)

    def walk(self, depth: int = 0) -> list[tuple[int, ListTreeNode]]:
        """Return ``(depth, node)`` pairs in depth-first order, children sorted by name."""
        pairs: list[tuple[int, ListTreeNode]] = []
        for child in sorted(self.children, key=lambda node: node.name.lower()):
            pairs.append((depth, child))
            pairs.extend(child.walk(depth + 1))
        return pairs


def build_list_tree(lists: list[BookmarkList]) -> ListTreeNode:
    """Arrange flat lists into their parent/child hierarchy.

    Lists whose parent is unknown, or whose parent chain loops back to
    themselves, are attached to the root.
    """
    root = ListTreeNode(name="Lists")
    nodes = {item.id: ListTreeNode(name=item.name, bookmark_list=item) for item in lists}
    parents = {item.id: item.parent_id for item in lists if item.parent_id in nodes}
    for item in lists:
        if item.id in parents and not _in_cycle(item.id, parents):
            nodes[parents[item.id]].add_child(nodes[item.id])
        else:
            root.add_child(nodes[item.id])
    return root


def _in_cycle(list_id: str, parents: dict[str, str | None]) -> bool:
    """Whether following parent links from ``list_id`` leads back to it."""
    seen: set[str] = set()
    current: str | None = list_id
    while current in parents:
        if current in seen:
            return False
        seen.add(current)
        current = parents[current]
        if current == list_id:
            return True
    return False
