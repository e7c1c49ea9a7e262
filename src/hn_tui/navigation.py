from __future__ import annotations

from typing import Optional, Sequence

from .datamodels import CommentNode


def next_comment_index(count: int, current: int) -> Optional[int]:
    return current + 1 if current + 1 < count else None


def previous_comment_index(current: int) -> Optional[int]:
    return current - 1 if current > 0 else None


def next_sibling_or_outer_index(
    nodes: Sequence[CommentNode], current: int
) -> Optional[int]:
    """First later comment that is not a descendant of the current one."""
    if not 0 <= current < len(nodes):
        return None
    depth = nodes[current].depth
    for index in range(current + 1, len(nodes)):
        if nodes[index].depth <= depth:
            return index
    return None


def previous_sibling_or_parent_index(
    nodes: Sequence[CommentNode], current: int
) -> Optional[int]:
    if not 0 <= current < len(nodes):
        return None
    depth = nodes[current].depth
    for index in range(current - 1, -1, -1):
        if nodes[index].depth < depth:
            break
        if nodes[index].depth == depth:
            return index
    return nearest_parent_index(nodes, current)


def nearest_parent_index(nodes: Sequence[CommentNode], current: int) -> Optional[int]:
    depth = nodes[current].depth
    if depth == 0:
        return None
    for index in range(current - 1, -1, -1):
        if nodes[index].depth < depth:
            return index
    return None
