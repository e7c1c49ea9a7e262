from __future__ import annotations

import time
from typing import Optional, Tuple

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, VerticalScroll
from textual.widgets import ListItem, Static
from textual.reactive import reactive
from rich.text import Text

from .datamodels import CommentNode, Feed, Post, PostType

_AGE_STEPS = (
    (60, 1, "s"),
    (3_600, 60, "m"),
    (86_400, 3_600, "h"),
    (604_800, 86_400, "d"),
    (2_592_000, 604_800, "w"),
    (31_536_000, 2_592_000, "mo"),
)


def format_age(unix_seconds: int, now: Optional[float] = None) -> str:
    if not unix_seconds:
        return "-"
    now = time.time() if now is None else now
    elapsed = max(int(now) - unix_seconds, 0)
    for bound, unit, suffix in _AGE_STEPS:
        if elapsed < bound:
            return f"{elapsed // unit}{suffix} ago"
    return f"{elapsed // 31_536_000}y ago"


def tree_prefix(node: CommentNode) -> Tuple[str, str]:
    """Return the (header, body) prefixes that draw the thread lines."""
    header = ""
    body = "   " if node.depth == 0 else ""
    for level, has_next in enumerate(node.ancestor_has_next_sibling):
        # The root level is drawn as plain indentation.
        segment = "│  " if has_next and level > 0 else "   "
        header += segment
        body += segment
    if node.depth > 0:
        if node.is_last_sibling:
            header += "└─ "
            body += "   "
        else:
            header += "├─ "
            body += "│  "
    return header, body


# --- UI Widgets ---
class FeedTabItem(ListItem):
    def __init__(self, feed: Feed):
        super().__init__()
        self.feed = feed

    def compose(self) -> ComposeResult:
        yield Static(self.feed.label)


class PostItem(ListItem):
    def __init__(self, post: Post, bookmarked: bool = False):
        super().__init__()
        self.post = post
        self.bookmarked = bookmarked

    def compose(self) -> ComposeResult:
        post = self.post
        flag = "*" if self.bookmarked else ""
        if post.post_type is PostType.JOB:
            meta = f"job | {post.author} | {format_age(post.published_at)}"
        else:
            meta = (
                f"{post.points} points | {post.comments} comments | "
                f"{post.author} | {format_age(post.published_at)}"
            )
        with Horizontal(classes="post-container"):
            yield Static(flag, classes="post-flag")
            yield Static(Text(post.title, style="bold"), classes="post-title")
        yield Static(Text(meta, style="dim"), classes="post-meta")


class CommentItem(Static):
    """One comment, with thread lines drawn from its tree position."""

    def __init__(self, node: CommentNode, index: int):
        super().__init__(self.render_node(node))
        self.comment = node
        self.comment_index = index

    @staticmethod
    def render_node(node: CommentNode) -> Text:
        header_prefix, body_prefix = tree_prefix(node)
        text = Text()
        text.append(header_prefix, style="grey37")
        text.append(node.author, style="bold dark_orange")
        text.append(" • ", style="grey54")
        text.append(format_age(node.published_at), style="grey54")
        for line in node.text.splitlines():
            text.append("\n")
            text.append(body_prefix, style="grey37")
            # Quoted lines are dimmed.
            text.append(line, style="grey54" if line.lstrip().startswith(">") else "")
        return text


class StatusBar(Static):
    loading_status = reactive("")
    keybinding_hint = reactive("")

    def on_mount(self) -> None:
        self.update_display()

    def set_keybindings(self, hint: str) -> None:
        """Set the keybinding hint text."""
        self.keybinding_hint = hint

    def update_display(self) -> None:
        """Update the status bar display."""
        status_items = []
        if self.loading_status:
            status_items.append(self.loading_status)

        if self.keybinding_hint:
            status_items.append(self.keybinding_hint)

        self.update(" | ".join(status_items))

    def watch_loading_status(self, loading_status: str) -> None:
        self.update_display()

    def watch_keybinding_hint(self, keybinding_hint: str) -> None:
        self.update_display()


class ErrorMessage(Static):
    def __init__(self, message: str):
        super().__init__(Text(message, style="bold red"))


class NoticeMessage(Static):
    def __init__(self, message: str):
        super().__init__(Text(message, style="dim"))


class CommentsPane(VerticalScroll):
    """Scrollable comment thread; arrow keys move between comments."""

    BINDINGS = [
        Binding("down", "app.next_comment", "Next", show=False),
        Binding("up", "app.previous_comment", "Previous", show=False),
        Binding("right,l", "app.next_sibling", "Next thread", show=False),
        Binding("left,h", "app.previous_sibling", "Parent", show=False),
        Binding("j", "scroll_down", "Scroll Down", show=False),
        Binding("k", "scroll_up", "Scroll Up", show=False),
    ]
