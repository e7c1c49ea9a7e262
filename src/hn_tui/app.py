from __future__ import annotations

import logging
import webbrowser
from functools import partial
from typing import Any, Optional

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Header, ListView, LoadingIndicator, Rule, Static

from .config import DEFAULT_THEME, UI_DEFAULTS, comments_limit_from_config
from .datamodels import Feed, Post, PostsFetchMode
from .errors import HNError
from .messages import CommentsFetched, PostsFetched
from .reader import (
    CommentsRequest,
    CommentsState,
    PostsRequest,
    Reader,
    load_comments,
    load_posts,
)
from .screens import BookmarksScreen
from .sources.base import ItemSource
from .sources.hackernews import HackerNewsSource
from .widgets import (
    CommentItem,
    CommentsPane,
    ErrorMessage,
    FeedTabItem,
    NoticeMessage,
    PostItem,
    StatusBar,
)

logger = logging.getLogger("hn")


class HackerNewsApp(App):
    TITLE = "Hacker News"
    SUB_TITLE = "Top Stories"

    CSS = """
    #main { height: 1fr; }
    #left { width: 12; }
    #posts-pane { width: 1fr; }
    #comments-pane { width: 2fr; display: none; }
    #comments-pane.open { display: block; }
    .pane-title { text-style: bold; padding: 0 1; }
    .post-flag { width: 2; color: $warning; }
    .post-meta { padding-left: 2; }
    CommentItem { padding: 0 1 1 0; }
    CommentItem.current { background: $boost; }
    StatusBar { height: 1; dock: bottom; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("r", "refresh", "Refresh"),
        Binding("b", "bookmark", "Bookmark"),
        Binding("B", "show_bookmarks", "Show Bookmarks"),
        Binding("o", "open_in_browser", "Open in browser"),
        Binding("c", "open_discussion", "Open discussion"),
        Binding("j", "next_post", "Next post", show=False),
        Binding("k", "previous_post", "Previous post", show=False),
        Binding("escape", "close_comments", "Close comments"),
        Binding("[", "previous_feed", "Previous feed"),
        Binding("]", "next_feed", "Next feed"),
        Binding("ctrl+l", "toggle_left_pane", "Toggle Feeds"),
    ]

    def __init__(
        self,
        theme: Optional[str] = None,
        config: Optional[dict[str, Any]] = None,
        source: Optional[ItemSource] = None,
        feed: Feed = Feed.TOP,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self._theme_name = theme or DEFAULT_THEME
        self.config = config or {}
        self.reader = Reader(
            source or HackerNewsSource(),
            feed=feed,
            comments_limit=comments_limit_from_config(self.config),
        )

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="main"):
            with Vertical(id="left"):
                yield Static("Feeds", classes="pane-title")
                yield ListView(*[FeedTabItem(f) for f in Feed], id="feeds-list")
            yield Rule(orientation="vertical")
            with Vertical(id="posts-pane"):
                yield Static("", id="posts-title", classes="pane-title")
                yield ListView(id="posts-list")
            with Vertical(id="comments-pane"):
                yield Static("Comments", id="comments-title", classes="pane-title")
                yield CommentsPane(id="comments-scroll")
        yield StatusBar()

    def on_mount(self) -> None:
        if self._theme_name in self.available_themes:
            self.theme = self._theme_name
        else:
            logger.warning("Theme '%s' not found, keeping %s", self._theme_name, self.theme)

        feeds_list = self.query_one("#feeds-list", ListView)
        feeds_list.index = list(Feed).index(self.reader.feed)
        self.query_one("#posts-list", ListView).focus()

        keybindings_text = self.config.get("ui", {}).get(
            "statusbar_keybindings", UI_DEFAULTS["statusbar_keybindings"]
        )
        self.query_one(StatusBar).set_keybindings(keybindings_text.format(color="$accent"))

        self._start_posts_request(self.reader.refresh())

    # --- Workers ---
    def _start_posts_request(self, request: Optional[PostsRequest]) -> None:
        if request is None:
            return
        self._update_status()
        if request.mode is PostsFetchMode.REPLACE and not self.reader.posts:
            posts_list = self.query_one("#posts-list", ListView)
            posts_list.clear()
            posts_list.mount(LoadingIndicator())
        self.run_worker(
            partial(self._fetch_posts, request),
            name="posts_loader",
            group="posts",
            thread=True,
        )

    def _fetch_posts(self, request: PostsRequest) -> None:
        try:
            outcome: Any = load_posts(self.reader.source, request)
        except HNError as e:
            outcome = e
        self.post_message(PostsFetched(request.generation, outcome))

    def _start_comments_request(self, request: Optional[CommentsRequest]) -> None:
        self._render_comments()
        if request is None:
            return
        self.run_worker(
            partial(self._fetch_comments, request),
            name="comments_loader",
            group="comments",
            thread=True,
        )

    def _fetch_comments(self, request: CommentsRequest) -> None:
        try:
            outcome: Any = load_comments(self.reader.builder, request)
        except HNError as e:
            outcome = e
        self.post_message(CommentsFetched(request.generation, request.post_id, outcome))

    # --- Results ---
    def on_posts_fetched(self, message: PostsFetched) -> None:
        if not self.reader.apply_posts(message.generation, message.outcome):
            return
        self._render_posts()
        if self.reader.posts_notice:
            self.notify(self.reader.posts_notice, severity="error")

    def on_comments_fetched(self, message: CommentsFetched) -> None:
        if not self.reader.apply_comments(message.generation, message.post_id, message.outcome):
            return
        self._render_comments()
        if self.reader.comments.state is CommentsState.ERROR:
            self.notify(f"Failed to load comments: {self.reader.comments.error}", severity="error")

    # --- Rendering ---
    def _update_status(self) -> None:
        reader = self.reader
        if reader.loading:
            status = f"Loading {reader.feed.label}..."
        elif reader.last_fetched:
            status = f"Updated {reader.last_fetched}"
        else:
            status = ""
        self.query_one(StatusBar).loading_status = status

    def _render_posts(self) -> None:
        reader = self.reader
        self.sub_title = reader.feed.posts_title
        self.query_one("#posts-title", Static).update(reader.feed.posts_title)
        self._update_status()

        posts_list = self.query_one("#posts-list", ListView)
        posts_list.clear()
        if reader.posts_notice:
            posts_list.mount(ErrorMessage(reader.posts_notice))
            return

        bookmarked = {b.id for b in reader.bookmarks}
        for post in reader.posts:
            posts_list.append(PostItem(post, bookmarked=post.id in bookmarked))
        if reader.selected_index is not None:
            self.call_after_refresh(setattr, posts_list, "index", reader.selected_index)

    def _render_comments(self) -> None:
        view = self.reader.comments
        pane = self.query_one("#comments-pane")
        pane.set_class(view.is_open, "open")
        if not view.is_open:
            return

        title = f"{view.post.title} | {view.post.comments} comments"
        if view.refreshing:
            title += " (refreshing)"
        self.query_one("#comments-title", Static).update(title)

        scroll = self.query_one("#comments-scroll", CommentsPane)
        scroll.remove_children()
        state = view.state
        if state is CommentsState.LOADING:
            scroll.mount(LoadingIndicator())
        elif state is CommentsState.NOTICE:
            scroll.mount(NoticeMessage(view.notice or ""))
        elif state is CommentsState.ERROR:
            scroll.mount(ErrorMessage(f"Failed to load comments: {view.error}"))
        elif not view.nodes:
            scroll.mount(NoticeMessage("No comments found."))
        else:
            scroll.mount_all(CommentItem(node, i) for i, node in enumerate(view.nodes))
            self.call_after_refresh(self._highlight_comment)
        scroll.scroll_home(animate=False)

    def _highlight_comment(self) -> None:
        cursor = self.reader.comments.cursor
        for item in self.query(CommentItem):
            is_current = item.comment_index == cursor
            item.set_class(is_current, "current")
            if is_current:
                self.query_one("#comments-scroll", CommentsPane).scroll_to_widget(item)

    # --- Events ---
    def on_list_view_highlighted(self, event: ListView.Highlighted) -> None:
        if event.list_view.id != "posts-list" or not isinstance(event.item, PostItem):
            return
        if event.list_view.index is not None:
            self.reader.select(event.list_view.index)
        self._start_posts_request(self.reader.load_more_posts())

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        if event.list_view.id == "feeds-list":
            if isinstance(event.item, FeedTabItem):
                self._switch_to_feed(event.item.feed)
        elif event.list_view.id == "posts-list":
            if isinstance(event.item, PostItem):
                self._open_comments(event.item.post)

    def _open_comments(self, post: Post) -> None:
        self._start_comments_request(self.reader.open_comments(post))
        self.query_one("#comments-scroll", CommentsPane).focus()

    def _switch_to_feed(self, feed: Feed) -> None:
        self._show_feed(self.reader.switch_to_feed(feed))

    def _show_feed(self, request: Optional[PostsRequest]) -> None:
        if request is None:
            return
        self.query_one("#feeds-list", ListView).index = list(Feed).index(self.reader.feed)
        self._render_posts()
        self._render_comments()
        self._start_posts_request(request)

    # --- Actions ---
    def action_refresh(self) -> None:
        self._start_posts_request(self.reader.refresh())
        self._render_comments()

    def action_next_feed(self) -> None:
        self._show_feed(self.reader.switch_feed(1))

    def action_previous_feed(self) -> None:
        self._show_feed(self.reader.switch_feed(-1))

    def action_close_comments(self) -> None:
        if not self.reader.comments.is_open:
            return
        self.reader.close_comments()
        self._render_comments()
        self.query_one("#posts-list", ListView).focus()

    def _focused_post(self) -> Optional[Post]:
        if self.reader.comments.is_open and self.query_one("#comments-scroll").has_focus:
            return self.reader.comments.post
        return self.reader.selected_post

    def action_bookmark(self) -> None:
        post = self._focused_post()
        if post is None:
            return
        if self.reader.bookmark(post):
            self.notify(f"Bookmarked: {post.title}")
            self._render_posts()

    def action_show_bookmarks(self) -> None:
        if not self.reader.bookmarks:
            self.notify("No bookmarks yet.")
            return
        self.push_screen(BookmarksScreen(self.reader), self.on_bookmarks_closed)

    def on_bookmarks_closed(self, post: Optional[Post]) -> None:
        self._render_posts()
        if post is not None:
            self._open_comments(post)

    def action_open_in_browser(self) -> None:
        post = self._focused_post()
        if post is not None:
            webbrowser.open(post.url)

    def action_open_discussion(self) -> None:
        post = self._focused_post()
        if post is not None:
            webbrowser.open(post.discussion_url)

    def action_next_post(self) -> None:
        self.reader.select_next()
        self._sync_post_selection()

    def action_previous_post(self) -> None:
        self.reader.select_previous()
        self._sync_post_selection()

    def _sync_post_selection(self) -> None:
        if self.reader.selected_index is not None:
            self.query_one("#posts-list", ListView).index = self.reader.selected_index

    def action_next_comment(self) -> None:
        if self.reader.jump_next_comment() is not None:
            self._highlight_comment()

    def action_previous_comment(self) -> None:
        if self.reader.jump_previous_comment() is not None:
            self._highlight_comment()

    def action_next_sibling(self) -> None:
        if self.reader.jump_next_sibling() is not None:
            self._highlight_comment()

    def action_previous_sibling(self) -> None:
        if self.reader.jump_previous_sibling() is not None:
            self._highlight_comment()

    def action_toggle_left_pane(self) -> None:
        """Toggle the left pane."""
        left_pane = self.query_one("#left")
        left_pane.display = not left_pane.display
