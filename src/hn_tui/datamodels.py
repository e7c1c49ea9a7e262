from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from .config import HN_DISCUSSION_URL_BASE
from .errors import MalformedItemError

UNKNOWN_AUTHOR = "unknown"


# --- Data models ---
class Feed(enum.Enum):
    TOP = "top"
    NEW = "new"
    ASK = "ask"
    SHOW = "show"
    JOBS = "jobs"
    BEST = "best"

    @property
    def endpoint(self) -> str:
        return _FEED_ENDPOINTS[self]

    @property
    def label(self) -> str:
        return self.value

    @property
    def posts_title(self) -> str:
        return _FEED_TITLES[self]

    def shifted(self, delta: int) -> "Feed":
        """Return the feed `delta` tabs away, wrapping around."""
        feeds = list(Feed)
        return feeds[(feeds.index(self) + delta) % len(feeds)]


_FEED_ENDPOINTS = {
    Feed.TOP: "topstories",
    Feed.NEW: "newstories",
    Feed.ASK: "askstories",
    Feed.SHOW: "showstories",
    Feed.JOBS: "jobstories",
    Feed.BEST: "beststories",
}

_FEED_TITLES = {
    Feed.TOP: "Top Stories",
    Feed.NEW: "New Stories",
    Feed.ASK: "Ask HN",
    Feed.SHOW: "Show HN",
    Feed.JOBS: "Jobs",
    Feed.BEST: "Best Stories",
}


class PostType(enum.Enum):
    STORY = "story"
    JOB = "job"


def discussion_url(item_id: int) -> str:
    return f"{HN_DISCUSSION_URL_BASE}{item_id}"


_STR_FIELDS = ("type", "title", "url", "text", "by")
_INT_FIELDS = ("time", "score", "descendants")


def _author(value: Optional[str]) -> str:
    return value if value else UNKNOWN_AUTHOR


@dataclass(frozen=True)
class Item:
    """A raw record from the API. Everything but the id is optional."""

    id: int
    kind: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None
    text: Optional[str] = None
    by: Optional[str] = None
    time: Optional[int] = None
    score: Optional[int] = None
    descendants: Optional[int] = None
    kids: Tuple[int, ...] = ()
    dead: bool = False
    deleted: bool = False

    @classmethod
    def from_json(cls, data: Any) -> "Item":
        if not isinstance(data, dict):
            raise MalformedItemError(f"expected an item object, got {type(data).__name__}")
        item_id = data.get("id")
        if isinstance(item_id, bool) or not isinstance(item_id, int):
            raise MalformedItemError(f"item has no integer id: {item_id!r}")
        kids = data.get("kids") or []
        if not isinstance(kids, list) or not all(
            isinstance(k, int) and not isinstance(k, bool) for k in kids
        ):
            raise MalformedItemError(f"item {item_id} has malformed kids")
        for key in _STR_FIELDS:
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise MalformedItemError(f"item {item_id} has a non-string {key!r}")
        for key in _INT_FIELDS:
            value = data.get(key)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise MalformedItemError(f"item {item_id} has a non-integer {key!r}")
        return cls(
            id=item_id,
            kind=data.get("type"),
            title=data.get("title"),
            url=data.get("url"),
            text=data.get("text"),
            by=data.get("by"),
            time=data.get("time"),
            score=data.get("score"),
            descendants=data.get("descendants"),
            kids=tuple(kids),
            dead=bool(data.get("dead", False)),
            deleted=bool(data.get("deleted", False)),
        )


@dataclass(frozen=True)
class Post:
    id: int
    title: str
    url: str
    post_type: PostType
    points: int = 0
    comments: int = 0
    author: str = UNKNOWN_AUTHOR
    published_at: int = 0

    @classmethod
    def from_item(cls, item: Item) -> Optional["Post"]:
        """Build a post from a story or job item; anything else yields None."""
        if item.dead or item.deleted:
            return None
        try:
            post_type = PostType(item.kind)
        except ValueError:
            return None
        if not item.title:
            return None
        return cls(
            id=item.id,
            title=item.title,
            url=item.url or discussion_url(item.id),
            post_type=post_type,
            points=item.score or 0,
            comments=item.descendants or 0,
            author=_author(item.by),
            published_at=item.time or 0,
        )

    @property
    def discussion_url(self) -> str:
        return discussion_url(self.id)


@dataclass(frozen=True)
class CommentNode:
    author: str
    text: str
    published_at: int
    depth: int
    ancestor_has_next_sibling: Tuple[bool, ...] = ()
    is_last_sibling: bool = True


class PostsFetchMode(enum.Enum):
    REPLACE = "replace"
    APPEND = "append"


@dataclass(frozen=True)
class PostsPage:
    """Result of one posts request."""

    mode: PostsFetchMode
    posts: List[Post]
    next_story_index: int
    story_ids: Optional[List[int]] = None


@dataclass
class FeedCacheEntry:
    story_ids: List[int] = field(default_factory=list)
    next_story_index: int = 0
    has_more_posts: bool = True
    posts: List[Post] = field(default_factory=list)
    selected_index: Optional[int] = None
    last_fetched: Optional[str] = None


@dataclass(frozen=True)
class CommentsCacheEntry:
    nodes: Tuple[CommentNode, ...]
    fetched_at: float
