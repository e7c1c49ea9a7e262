"""UI-independent state of the reader.

`Reader` owns everything the screen shows: the current feed and its posts,
the comment view and the session bookmarks. It never performs I/O itself.
Operations that need the network return a request object; the UI runs
`load_posts` / `load_comments` for it on a worker and hands the outcome back
through `apply_posts` / `apply_comments`, which ignore superseded
generations.
"""
from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import Any, Callable, List, Optional

from .cache import CommentsCache, FeedPaginationCache, has_reached_load_more_threshold
from .comments import CommentTreeBuilder
from .config import COMMENTS_FRESH_SECONDS, COMMENTS_LIMIT, POSTS_PAGE_SIZE
from .datamodels import (
    CommentNode,
    Feed,
    FeedCacheEntry,
    Post,
    PostsFetchMode,
    PostsPage,
    PostType,
)
from .errors import TransportError
from .fetcher import fetch_many, fetch_one
from .lifecycle import CancellationToken, RequestLifecycleManager
from .navigation import (
    next_comment_index,
    next_sibling_or_outer_index,
    previous_comment_index,
    previous_sibling_or_parent_index,
)
from .sources.base import ItemSource

logger = logging.getLogger("hn")

JOB_NOTICE = "Jobs do not have comment threads."


@dataclass(frozen=True)
class PostsRequest:
    generation: int
    token: CancellationToken
    feed: Feed
    mode: PostsFetchMode
    page_ids: List[int] = field(default_factory=list)
    next_story_index: int = 0


@dataclass(frozen=True)
class CommentsRequest:
    generation: int
    token: CancellationToken
    post_id: int
    limit: int


def load_posts(
    source: ItemSource, request: PostsRequest, page_size: int = POSTS_PAGE_SIZE
) -> PostsPage:
    """Worker side of a posts request."""
    request.token.raise_if_cancelled()
    story_ids: Optional[List[int]] = None
    if request.mode is PostsFetchMode.REPLACE:
        story_ids = fetch_one(source.fetch_story_ids, request.feed, cancel=request.token)
        next_story_index = min(len(story_ids), page_size)
        page_ids = story_ids[:next_story_index]
    else:
        next_story_index = request.next_story_index
        page_ids = request.page_ids

    results = fetch_many(source.fetch_item, page_ids, request.token)
    posts: List[Post] = []
    for item_id in page_ids:
        result = results[item_id]
        if isinstance(result, TransportError):
            continue
        post = Post.from_item(result)
        if post is not None:
            posts.append(post)
    logger.debug(
        "Loaded %d/%d posts for %s (%s)",
        len(posts),
        len(page_ids),
        request.feed.label,
        request.mode.value,
    )
    return PostsPage(
        mode=request.mode,
        posts=posts,
        next_story_index=next_story_index,
        story_ids=story_ids,
    )


def load_comments(builder: CommentTreeBuilder, request: CommentsRequest) -> List[CommentNode]:
    """Worker side of a comments request."""
    return builder.build(request.post_id, request.limit, request.token)


class CommentsState(enum.Enum):
    CLOSED = "closed"
    LOADING = "loading"
    READY = "ready"
    NOTICE = "notice"
    ERROR = "error"


@dataclass
class CommentsView:
    post: Optional[Post] = None
    nodes: List[CommentNode] = field(default_factory=list)
    loading: bool = False
    notice: Optional[str] = None
    error: Optional[str] = None
    cursor: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.post is not None

    @property
    def state(self) -> CommentsState:
        if self.post is None:
            return CommentsState.CLOSED
        if self.notice is not None:
            return CommentsState.NOTICE
        if self.error is not None:
            return CommentsState.ERROR
        if self.loading and not self.nodes:
            return CommentsState.LOADING
        return CommentsState.READY

    @property
    def refreshing(self) -> bool:
        """Cached comments are on screen while a newer copy is fetched."""
        return self.loading and bool(self.nodes)


class Reader:
    def __init__(
        self,
        source: ItemSource,
        feed: Feed = Feed.TOP,
        comments_limit: int = COMMENTS_LIMIT,
        page_size: int = POSTS_PAGE_SIZE,
        comments_ttl: float = COMMENTS_FRESH_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.builder = CommentTreeBuilder(source)
        self.feed = feed
        self.comments_limit = comments_limit
        self.page_size = page_size

        self.posts_requests = RequestLifecycleManager("posts")
        self.comments_requests = RequestLifecycleManager("comments")
        self.feed_cache = FeedPaginationCache()
        self.comments_cache = CommentsCache(ttl=comments_ttl, clock=clock)

        self.story_ids: List[int] = []
        self.next_story_index = 0
        self.has_more_posts = True
        self.posts: List[Post] = []
        self.selected_index: Optional[int] = None
        self.posts_notice: Optional[str] = None
        self.last_fetched: Optional[str] = None

        self.comments = CommentsView()
        self.bookmarks: List[Post] = []

    # --- Posts ---
    @property
    def loading(self) -> bool:
        return self.posts_requests.in_flight

    def refresh(self) -> PostsRequest:
        """Reload the current feed from the top, closing the comment view."""
        self.posts_notice = None
        self.close_comments()
        return self.refresh_posts()

    def refresh_posts(self) -> PostsRequest:
        generation, token = self.posts_requests.begin()
        if not self.posts:
            self.story_ids = []
            self.next_story_index = 0
            self.has_more_posts = True
            self.selected_index = None
        self.posts_notice = None
        return PostsRequest(
            generation=generation,
            token=token,
            feed=self.feed,
            mode=PostsFetchMode.REPLACE,
        )

    def request_more_posts(self) -> Optional[PostsRequest]:
        if self.loading or not self.has_more_posts:
            return None
        if self.next_story_index >= len(self.story_ids):
            self.has_more_posts = False
            return None

        generation, token = self.posts_requests.begin()
        start = self.next_story_index
        end = min(start + self.page_size, len(self.story_ids))
        return PostsRequest(
            generation=generation,
            token=token,
            feed=self.feed,
            mode=PostsFetchMode.APPEND,
            page_ids=self.story_ids[start:end],
            next_story_index=end,
        )

    def load_more_posts(self) -> Optional[PostsRequest]:
        """Request the next page if the selection is near the end of the list."""
        if self.loading or self.comments.is_open or not self.has_more_posts:
            return None
        if not has_reached_load_more_threshold(
            len(self.posts), self.selected_index, self.has_more_posts
        ):
            return None
        return self.request_more_posts()

    def apply_posts(self, generation: int, outcome: Any) -> bool:
        return self.posts_requests.on_result(generation, outcome, self._apply_posts_outcome)

    def _apply_posts_outcome(self, outcome: Any) -> None:
        if isinstance(outcome, Exception):
            logger.warning("Failed to load posts for %s: %s", self.feed.label, outcome)
            if not self.posts:
                self.posts_notice = f"Failed to load posts: {outcome}"
            return

        page: PostsPage = outcome
        self.posts_notice = None
        if page.story_ids is not None:
            self.story_ids = list(page.story_ids)
        self.next_story_index = page.next_story_index
        if page.mode is PostsFetchMode.REPLACE:
            self.posts = list(page.posts)
        else:
            self.posts.extend(page.posts)
        self.last_fetched = datetime.now().strftime("%H:%M:%S")
        self.has_more_posts = self.next_story_index < len(self.story_ids)
        self.selected_index = self._clamp_selection(self.selected_index or 0)
        self.store_current_feed()

    def _clamp_selection(self, index: Optional[int]) -> Optional[int]:
        if not self.posts or index is None:
            return None
        return min(index, len(self.posts) - 1)

    # --- Feeds ---
    def store_current_feed(self) -> None:
        self.feed_cache.store(
            self.feed,
            FeedCacheEntry(
                story_ids=self.story_ids,
                next_story_index=self.next_story_index,
                has_more_posts=self.has_more_posts,
                posts=self.posts,
                selected_index=self.selected_index,
                last_fetched=self.last_fetched,
            ),
        )

    def restore_feed(self, feed: Feed) -> bool:
        entry = self.feed_cache.snapshot(feed)
        if entry is None:
            return False
        self.story_ids = entry.story_ids
        self.next_story_index = entry.next_story_index
        self.has_more_posts = entry.has_more_posts
        self.posts = entry.posts
        self.last_fetched = entry.last_fetched
        self.posts_notice = None
        self.selected_index = self._clamp_selection(entry.selected_index or 0)
        return True

    def clear_feed_state(self) -> None:
        self.story_ids = []
        self.next_story_index = 0
        self.has_more_posts = True
        self.posts = []
        self.posts_notice = None
        self.last_fetched = None
        self.selected_index = None

    def switch_feed(self, delta: int) -> Optional[PostsRequest]:
        return self.switch_to_feed(self.feed.shifted(delta))

    def switch_to_feed(self, feed: Feed) -> Optional[PostsRequest]:
        if feed is self.feed:
            return None
        self.store_current_feed()
        self.feed = feed
        if not self.restore_feed(feed):
            self.clear_feed_state()
        logger.info("Switched to feed %s", feed.label)
        return self.refresh()

    # --- Selection ---
    @property
    def selected_post(self) -> Optional[Post]:
        if self.selected_index is None or self.selected_index >= len(self.posts):
            return None
        return self.posts[self.selected_index]

    def select(self, index: int) -> None:
        self.selected_index = self._clamp_selection(max(index, 0))

    def select_next(self) -> None:
        if not self.posts:
            self.selected_index = None
        elif self.selected_index is not None and self.selected_index + 1 < len(self.posts):
            self.selected_index += 1
        else:
            self.selected_index = 0

    def select_previous(self) -> None:
        if not self.posts:
            self.selected_index = None
        elif not self.selected_index:
            self.selected_index = len(self.posts) - 1
        else:
            self.selected_index -= 1

    # --- Comments ---
    def open_selected_comments(self) -> Optional[CommentsRequest]:
        post = self.selected_post
        if post is None:
            return None
        return self.open_comments(post)

    def open_comments(self, post: Post) -> Optional[CommentsRequest]:
        """Show the comments of `post`, returning a request if a fetch is needed."""
        self.comments_requests.cancel()
        view = CommentsView(post=post)
        self.comments = view

        if post.post_type is PostType.JOB:
            view.notice = JOB_NOTICE
            return None

        cached = self.comments_cache.get(post.id)
        if cached is not None:
            view.nodes = list(cached.nodes)
            view.cursor = 0 if view.nodes else None
            if self.comments_cache.is_fresh(cached):
                return None
            logger.debug("Comments of %d are stale, revalidating", post.id)

        view.loading = True
        generation, token = self.comments_requests.begin()
        return CommentsRequest(
            generation=generation,
            token=token,
            post_id=post.id,
            limit=self.comments_limit,
        )

    def close_comments(self) -> None:
        self.comments_requests.cancel()
        self.comments = CommentsView()

    def apply_comments(self, generation: int, post_id: int, outcome: Any) -> bool:
        return self.comments_requests.on_result(
            generation, outcome, partial(self._apply_comments_outcome, post_id)
        )

    def _apply_comments_outcome(self, post_id: int, outcome: Any) -> None:
        view = self.comments
        if view.post is None or view.post.id != post_id:
            return
        view.loading = False

        if isinstance(outcome, Exception):
            if post_id in self.comments_cache:
                logger.info("Refresh of comments for %d failed, keeping cache: %s", post_id, outcome)
                view.error = None
            else:
                logger.warning("Failed to load comments for %d: %s", post_id, outcome)
                view.nodes = []
                view.cursor = None
                view.notice = None
                view.error = str(outcome)
            return

        entry = self.comments_cache.put(post_id, outcome)
        view.nodes = list(entry.nodes)
        view.error = None
        view.notice = None
        view.cursor = 0 if view.nodes else None

    def _jump(self, target: Optional[int]) -> Optional[int]:
        if target is not None:
            self.comments.cursor = target
        return target

    def jump_next_comment(self) -> Optional[int]:
        if self.comments.cursor is None:
            return None
        return self._jump(next_comment_index(len(self.comments.nodes), self.comments.cursor))

    def jump_previous_comment(self) -> Optional[int]:
        if self.comments.cursor is None:
            return None
        return self._jump(previous_comment_index(self.comments.cursor))

    def jump_next_sibling(self) -> Optional[int]:
        if self.comments.cursor is None:
            return None
        return self._jump(next_sibling_or_outer_index(self.comments.nodes, self.comments.cursor))

    def jump_previous_sibling(self) -> Optional[int]:
        if self.comments.cursor is None:
            return None
        return self._jump(
            previous_sibling_or_parent_index(self.comments.nodes, self.comments.cursor)
        )

    # --- Bookmarks ---
    def bookmark(self, post: Post) -> bool:
        if any(b.id == post.id for b in self.bookmarks):
            return False
        self.bookmarks.append(post)
        return True

    def remove_bookmark(self, post_id: int) -> bool:
        remaining = [b for b in self.bookmarks if b.id != post_id]
        removed = len(remaining) != len(self.bookmarks)
        self.bookmarks = remaining
        return removed
