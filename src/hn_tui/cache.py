from __future__ import annotations

import logging
import math
import time
from dataclasses import replace
from typing import Callable, Dict, Iterable, Optional

from .config import (
    COMMENTS_FRESH_SECONDS,
    LOAD_MORE_TRIGGER_DENOMINATOR,
    LOAD_MORE_TRIGGER_NUMERATOR,
)
from .datamodels import CommentNode, CommentsCacheEntry, Feed, FeedCacheEntry

logger = logging.getLogger("hn")


class FeedPaginationCache:
    """Last known pagination state of every feed visited this session."""

    def __init__(self) -> None:
        self._entries: Dict[Feed, FeedCacheEntry] = {}

    def snapshot(self, feed: Feed) -> Optional[FeedCacheEntry]:
        entry = self._entries.get(feed)
        if entry is None:
            logger.debug("No cached state for feed %s", feed.label)
            return None
        logger.debug("Cache hit for feed %s (%d posts)", feed.label, len(entry.posts))
        return _copy_entry(entry)

    def store(self, feed: Feed, entry: FeedCacheEntry) -> None:
        self._entries[feed] = _copy_entry(entry)


def _copy_entry(entry: FeedCacheEntry) -> FeedCacheEntry:
    return replace(entry, story_ids=list(entry.story_ids), posts=list(entry.posts))


def has_reached_load_more_threshold(
    post_count: int, selected_index: Optional[int], has_more_posts: bool
) -> bool:
    """True once the selection is in the last quarter of the loaded posts."""
    if post_count == 0:
        return has_more_posts
    if selected_index is None:
        return False
    threshold = math.ceil(
        post_count * LOAD_MORE_TRIGGER_NUMERATOR / LOAD_MORE_TRIGGER_DENOMINATOR
    )
    return selected_index + 1 >= max(threshold, 1)


class CommentsCache:
    """Materialized comments per post, with a freshness window."""

    def __init__(
        self,
        ttl: float = COMMENTS_FRESH_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[int, CommentsCacheEntry] = {}

    def get(self, post_id: int) -> Optional[CommentsCacheEntry]:
        entry = self._entries.get(post_id)
        if entry is not None:
            logger.debug("Cache hit for comments of %d (age %.1fs)", post_id, self.age(entry))
        return entry

    def put(self, post_id: int, nodes: Iterable[CommentNode]) -> CommentsCacheEntry:
        entry = CommentsCacheEntry(nodes=tuple(nodes), fetched_at=self.clock())
        self._entries[post_id] = entry
        logger.debug("Cache set for comments of %d (%d nodes)", post_id, len(entry.nodes))
        return entry

    def __contains__(self, post_id: int) -> bool:
        return post_id in self._entries

    def age(self, entry: CommentsCacheEntry) -> float:
        return self.clock() - entry.fetched_at

    def is_fresh(self, entry: CommentsCacheEntry) -> bool:
        return self.age(entry) < self.ttl
