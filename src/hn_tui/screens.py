from __future__ import annotations

import webbrowser
from typing import Optional

from textual.app import ComposeResult
from textual.binding import Binding
from textual.screen import Screen
from textual.widgets import DataTable, Footer, Header

from .datamodels import Post
from .reader import Reader


class BookmarksScreen(Screen[Optional[Post]]):
    """Posts bookmarked during this session. Dismisses with a post to open."""

    BINDINGS = [
        Binding("escape,q,left", "close", "Back"),
        Binding("o", "open_in_browser", "Open in browser"),
        Binding("a", "open_all", "Open all"),
        Binding("d,delete,backspace", "delete_bookmark", "Delete"),
    ]

    def __init__(self, reader: Reader):
        super().__init__()
        self.reader = reader

    def compose(self) -> ComposeResult:
        yield Header()
        yield Footer()
        yield DataTable(id="bookmarks-table")

    def on_mount(self) -> None:
        self.title = "Bookmarks"
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.add_column("Title", key="title")
        table.add_column("Points", key="points")
        table.add_column("Author", key="author")
        for post in self.reader.bookmarks:
            table.add_row(post.title, post.points, post.author, key=str(post.id))
        table.focus()

    def _selected_post(self) -> Optional[Post]:
        table = self.query_one(DataTable)
        if not table.is_valid_row_index(table.cursor_row):
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        post_id = int(str(row_key.value))
        return next((p for p in self.reader.bookmarks if p.id == post_id), None)

    def action_close(self) -> None:
        self.dismiss(None)

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        post = self._selected_post()
        if post is not None:
            self.dismiss(post)

    def action_open_in_browser(self) -> None:
        post = self._selected_post()
        if post is not None:
            webbrowser.open(post.url)

    def action_open_all(self) -> None:
        for post in self.reader.bookmarks:
            webbrowser.open(post.url)

    def action_delete_bookmark(self) -> None:
        """Delete the selected bookmark."""
        table = self.query_one(DataTable)
        post = self._selected_post()
        if post is None:
            return
        self.reader.remove_bookmark(post.id)
        table.remove_row(str(post.id))
        self.app.notify("Bookmark deleted.")
