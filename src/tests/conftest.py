from __future__ import annotations

import threading
from typing import Any, Dict, Iterable, List, Optional

import pytest

from hn_tui.datamodels import Feed, Item
from hn_tui.errors import TransportError
from hn_tui.sources.base import ItemSource


class FakeSource(ItemSource):
    """In-memory item source that records every request."""

    def __init__(
        self,
        items: Iterable[Item] = (),
        story_ids: Optional[Dict[Feed, List[int]]] = None,
        failing: Iterable[int] = (),
    ):
        self.items = {item.id: item for item in items}
        self.story_ids = story_ids or {}
        self.failing = set(failing)
        self.payloads: Dict[int, Any] = {}
        self.calls: List[object] = []
        self._lock = threading.Lock()

    def add(self, *items: Item) -> None:
        for item in items:
            self.items[item.id] = item

    def add_payload(self, item_id: int, payload: Any) -> None:
        """Serve `payload` as the raw JSON of `item_id`."""
        self.payloads[item_id] = payload

    def fetch_item(self, item_id: int) -> Item:
        with self._lock:
            self.calls.append(item_id)
        if item_id in self.payloads:
            return Item.from_json(self.payloads[item_id])
        if item_id in self.failing or item_id not in self.items:
            raise TransportError(f"item {item_id} unavailable")
        return self.items[item_id]

    def fetch_story_ids(self, feed: Feed) -> List[int]:
        with self._lock:
            self.calls.append(feed)
        if feed not in self.story_ids:
            raise TransportError(f"feed {feed.label} unavailable")
        return list(self.story_ids[feed])

    def item_calls(self) -> List[int]:
        return [c for c in self.calls if isinstance(c, int)]


def _comment(item_id: int, text: str, kids: Iterable[int] = (), **kwargs) -> Item:
    kwargs.setdefault("by", "alice")
    kwargs.setdefault("time", 1_700_000_000)
    return Item(id=item_id, kind="comment", text=text, kids=tuple(kids), **kwargs)


def _story(item_id: int, kids: Iterable[int] = (), **kwargs) -> Item:
    kwargs.setdefault("title", f"Story {item_id}")
    kwargs.setdefault("kind", "story")
    return Item(id=item_id, kids=tuple(kids), **kwargs)


@pytest.fixture
def make_comment():
    return _comment


@pytest.fixture
def make_story():
    return _story


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def thread_source():
    """post 1 -> [10, 20]; 10 -> [11]."""
    return FakeSource(
        [
            _story(1, kids=[10, 20]),
            _comment(10, "<p>Hi</p>", kids=[11]),
            _comment(11, "Reply"),
            _comment(20, "Second"),
        ]
    )


@pytest.fixture
def make_source():
    return FakeSource
