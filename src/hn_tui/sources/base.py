from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from ..datamodels import Feed, Item


class ItemSource(ABC):
    """Abstract base class for something that serves items by id."""

    @abstractmethod
    def fetch_item(self, item_id: int) -> Item:
        """Return the item, or raise TransportError."""
        pass

    @abstractmethod
    def fetch_story_ids(self, feed: Feed) -> List[int]:
        """Return the ordered root ids of a feed, or raise TransportError."""
        pass
