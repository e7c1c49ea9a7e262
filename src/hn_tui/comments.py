"""Comment tree materialization.

A post only lists the ids of its direct replies, and each reply only lists its
own replies, so the thread has to be discovered one level at a time. The
builder alternates between two steps until it has enough comments:

* a *materialization pass*: a pre-order walk over the items fetched so far,
  which either produces the display list or reports that an item it needs is
  still unknown;
* a *fetch round*: up to `MAX_CONCURRENCY` ids from the frontier, fetched
  concurrently, whose children extend the frontier.

Ids that fail to fetch are never retried; their whole subtree is left out.
"""
from __future__ import annotations

import logging
import re
import warnings
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

from .config import MAX_CONCURRENCY
from .datamodels import CommentNode, Item, UNKNOWN_AUTHOR
from .errors import TransportError
from .fetcher import fetch_many, fetch_one
from .lifecycle import CancellationToken
from .sources.base import ItemSource

logger = logging.getLogger("hn")

_BREAK_RE = re.compile(r"<p>|<br\s*/?>", re.I)
_PARAGRAPH_CLOSE_RE = re.compile(r"</p>", re.I)


def clean_comment_text(text: str) -> str:
    """Turn the HTML fragment of a comment into plain text lines."""
    if not text:
        return ""
    normalized = _PARAGRAPH_CLOSE_RE.sub("", _BREAK_RE.sub("\n", text))
    with warnings.catch_warnings():
        # Short comments that look like a URL or a path are still comments.
        warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
        plain = BeautifulSoup(normalized, "lxml").get_text()

    lines: List[str] = []
    last_blank = False
    for line in plain.splitlines():
        line = line.strip()
        if not line:
            if last_blank:
                continue
            last_blank = True
        else:
            last_blank = False
        lines.append(line)
    return "\n".join(lines).strip()


@dataclass
class PendingNode:
    id: int
    depth: int
    ancestor_has_next_sibling: Tuple[bool, ...]
    is_last_sibling: bool


def _children(
    ids: Sequence[int], depth: int, ancestors: Tuple[bool, ...]
) -> List[PendingNode]:
    """Pending nodes for `ids`, reversed so that popping yields them in order."""
    count = len(ids)
    return [
        PendingNode(
            id=child_id,
            depth=depth,
            ancestor_has_next_sibling=ancestors,
            is_last_sibling=index + 1 == count,
        )
        for index, child_id in reversed(list(enumerate(ids)))
    ]


def _to_node(item: Item, pending: PendingNode) -> Optional[CommentNode]:
    if item.dead or item.deleted or item.kind != "comment":
        return None
    text = clean_comment_text(item.text or "")
    if not text:
        return None
    return CommentNode(
        author=item.by or UNKNOWN_AUTHOR,
        text=text,
        published_at=item.time or 0,
        depth=pending.depth,
        ancestor_has_next_sibling=pending.ancestor_has_next_sibling,
        is_last_sibling=pending.is_last_sibling,
    )


def materialize(
    root_ids: Sequence[int],
    limit: int,
    items: Dict[int, Item],
    failed: Set[int],
    strict: bool = True,
) -> Optional[List[CommentNode]]:
    """Walk the known part of the thread in pre-order.

    Returns None when the walk reaches an id that is neither fetched nor
    failed, since nothing after it can be placed yet. With `strict=False`
    such ids are treated as failed instead.
    """
    stack = _children(root_ids, 0, ())
    nodes: List[CommentNode] = []
    visited: Set[int] = set()

    while stack and len(nodes) < limit:
        pending = stack.pop()
        if pending.id in failed or pending.id in visited:
            continue
        item = items.get(pending.id)
        if item is None:
            if strict:
                return None
            continue
        visited.add(pending.id)

        if item.kids:
            stack.extend(
                _children(
                    item.kids,
                    pending.depth + 1,
                    pending.ancestor_has_next_sibling + (not pending.is_last_sibling,),
                )
            )

        node = _to_node(item, pending)
        if node is not None:
            nodes.append(node)

    return nodes


class CommentTreeBuilder:
    def __init__(self, source: ItemSource, max_concurrency: int = MAX_CONCURRENCY):
        self.source = source
        self.max_concurrency = max_concurrency

    def build(
        self,
        post_id: int,
        limit: int,
        cancel: Optional[CancellationToken] = None,
    ) -> List[CommentNode]:
        """Return up to `limit` comments of a post in thread order.

        Raises TransportError when the post itself cannot be fetched and
        Cancelled when `cancel` fires.
        """
        if limit <= 0:
            return []

        post = fetch_one(self.source.fetch_item, post_id, cancel=cancel)
        root_ids = list(post.kids)
        if not root_ids:
            return []

        frontier: List[int] = list(reversed(root_ids))
        scheduled: Set[int] = set(root_ids)
        items: Dict[int, Item] = {}
        failed: Set[int] = set()
        rounds = 0

        while True:
            nodes = materialize(root_ids, limit, items, failed)
            if nodes is not None and (len(nodes) >= limit or not frontier):
                logger.debug(
                    "Built %d comments for %d in %d rounds (%d fetched, %d failed)",
                    len(nodes),
                    post_id,
                    rounds,
                    len(items),
                    len(failed),
                )
                return nodes
            if not frontier:
                break

            batch = [frontier.pop() for _ in range(min(self.max_concurrency, len(frontier)))]
            rounds += 1
            results = fetch_many(
                self.source.fetch_item, batch, cancel, max_workers=self.max_concurrency
            )
            # Walk the batch backwards so the first item's children end up on
            # top of the frontier.
            for item_id in reversed(batch):
                result = results[item_id]
                if isinstance(result, TransportError):
                    failed.add(item_id)
                    continue
                items[item_id] = result
                self._schedule(result.kids, frontier, scheduled)

        logger.debug("Frontier exhausted for %d without a complete pass", post_id)
        return materialize(root_ids, limit, items, failed, strict=False) or []

    @staticmethod
    def _schedule(kids: Iterable[int], frontier: List[int], scheduled: Set[int]) -> None:
        for kid in reversed(list(kids)):
            if kid not in scheduled:
                scheduled.add(kid)
                frontier.append(kid)
