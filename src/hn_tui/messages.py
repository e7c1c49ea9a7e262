from __future__ import annotations

from typing import Any

from textual.message import Message


class PostsFetched(Message):
    """Outcome of a posts request: a PostsPage or the exception it raised."""
    def __init__(self, generation: int, outcome: Any) -> None:
        self.generation = generation
        self.outcome = outcome
        super().__init__()


class CommentsFetched(Message):
    """Outcome of a comments request: the nodes or the exception it raised."""
    def __init__(self, generation: int, post_id: int, outcome: Any) -> None:
        self.generation = generation
        self.post_id = post_id
        self.outcome = outcome
        super().__init__()
