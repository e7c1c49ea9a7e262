from __future__ import annotations

import threading
import time

import pytest

from hn_tui.comments import CommentTreeBuilder, clean_comment_text, materialize
from hn_tui.datamodels import Item
from hn_tui.errors import Cancelled, TransportError
from hn_tui.lifecycle import CancellationToken


def _items(*items):
    return {item.id: item for item in items}


# --- Text cleaning ---
def test_clean_comment_text_normalizes_html_and_entities():
    cleaned = clean_comment_text(
        "<p>Hello &amp; <em>world</em></p><p>Line 2</p><br />&quot;quote&quot;"
    )
    assert cleaned == 'Hello & world\nLine 2\n"quote"'


def test_clean_comment_text_collapses_extra_blank_lines():
    assert clean_comment_text("<p>One</p><p></p><p></p><p>Two</p>") == "One\n\nTwo"


def test_clean_comment_text_decodes_entities_after_stripping_tags():
    cleaned = clean_comment_text(
        "&lt;tag&gt; and &#x27;quotes&#x27; at <a href=\"x\">https:&#x2F;&#x2F;example.com</a>"
    )
    assert cleaned == "<tag> and 'quotes' at https://example.com"


def test_clean_comment_text_trims_lines_and_handles_empty_input():
    assert clean_comment_text("  first  <br>   second   ") == "first\nsecond"
    assert clean_comment_text("") == ""
    assert clean_comment_text("<p></p>") == ""


# --- Materialization pass ---
def test_materialize_waits_for_missing_items(make_comment):
    items = _items(make_comment(1, "Root", kids=[2]))
    assert materialize([1], 10, items, set()) is None


def test_materialize_skips_failed_and_filters_unsupported_items(make_comment):
    items = _items(
        make_comment(10, "<p>First<br>line</p>", kids=[11, 12], by="alice", time=100),
        make_comment(11, "should not render", dead=True),
        make_comment(12, "Parent two", kids=[13], by="", time=120),
        make_comment(13, "&lt;tag&gt; and &#x27;quotes&#x27;", by="carol", time=140),
        Item(id=20, kind="story", text="not a comment"),
    )

    nodes = materialize([10, 20, 30], 10, items, {30})

    assert [n.text for n in nodes] == ["First\nline", "Parent two", "<tag> and 'quotes'"]
    first, second, third = nodes
    assert first.author == "alice"
    assert first.depth == 0
    assert first.ancestor_has_next_sibling == ()
    assert not first.is_last_sibling

    assert second.author == "unknown"
    assert second.depth == 1
    assert second.ancestor_has_next_sibling == (True,)
    assert second.is_last_sibling

    assert third.author == "carol"
    assert third.published_at == 140
    assert third.depth == 2
    assert third.ancestor_has_next_sibling == (True, False)
    assert third.is_last_sibling


def test_materialize_traverses_children_of_hidden_items(make_comment):
    items = _items(
        make_comment(1, "", kids=[2]),
        make_comment(2, "visible reply", kids=[3], deleted=False),
        make_comment(3, "removed", deleted=True, kids=[4]),
        make_comment(4, "grandchild of a deleted comment"),
    )
    nodes = materialize([1], 10, items, set())
    assert [(n.text, n.depth) for n in nodes] == [
        ("visible reply", 1),
        ("grandchild of a deleted comment", 3),
    ]


def test_materialize_prunes_failed_subtree_even_if_descendants_are_known(make_comment):
    items = _items(
        make_comment(10, "lost parent", kids=[11]),
        make_comment(11, "orphan"),
        make_comment(20, "survivor"),
    )
    nodes = materialize([10, 20], 10, items, {10})
    assert [n.text for n in nodes] == ["survivor"]


def test_materialize_respects_limit(make_comment):
    items = _items(make_comment(1, "first"), make_comment(2, "second"))
    nodes = materialize([1, 2], 1, items, set())
    assert [n.text for n in nodes] == ["first"]


def test_materialize_is_idempotent_over_a_complete_cache(make_comment):
    items = _items(
        make_comment(1, "a", kids=[2, 3]),
        make_comment(2, "b"),
        make_comment(3, "c", kids=[4]),
        make_comment(4, "d"),
        make_comment(5, "e"),
    )
    first = materialize([1, 5], 10, items, set())
    second = materialize([1, 5], 10, items, set())
    assert first == second
    assert [n.text for n in first] == ["a", "b", "c", "d", "e"]
    for node in first:
        assert len(node.ancestor_has_next_sibling) == node.depth


def test_materialize_lenient_pass_treats_missing_as_failed(make_comment):
    items = _items(make_comment(1, "known", kids=[2]), make_comment(3, "later"))
    nodes = materialize([1, 3], 10, items, set(), strict=False)
    assert [n.text for n in nodes] == ["known", "later"]


# --- Builder ---
def test_build_produces_preorder_thread(thread_source):
    nodes = CommentTreeBuilder(thread_source).build(1, 10)

    assert [
        (n.text, n.depth, n.ancestor_has_next_sibling, n.is_last_sibling) for n in nodes
    ] == [
        ("Hi", 0, (), False),
        ("Reply", 1, (True,), True),
        ("Second", 0, (), True),
    ]


def test_build_stops_fetching_once_limit_is_reached(thread_source):
    nodes = CommentTreeBuilder(thread_source).build(1, 1)

    assert [n.text for n in nodes] == ["Hi"]
    assert 11 not in thread_source.item_calls()


def test_build_fetches_one_round_at_a_time_in_thread_order(thread_source):
    builder = CommentTreeBuilder(thread_source, max_concurrency=1)

    assert [n.text for n in builder.build(1, 10)] == ["Hi", "Reply", "Second"]
    assert thread_source.item_calls() == [1, 10, 11, 20]


def test_build_with_small_batches_skips_unneeded_ids(thread_source):
    builder = CommentTreeBuilder(thread_source, max_concurrency=1)

    assert [n.text for n in builder.build(1, 1)] == ["Hi"]
    assert thread_source.item_calls() == [1, 10]


def test_build_with_zero_limit_fetches_nothing(thread_source):
    assert CommentTreeBuilder(thread_source).build(1, 0) == []
    assert thread_source.calls == []


def test_build_returns_empty_for_post_without_children(source, make_story):
    source.add(make_story(1))
    assert CommentTreeBuilder(source).build(1, 10) == []
    assert source.item_calls() == [1]


def test_build_raises_when_post_is_unavailable(source):
    with pytest.raises(TransportError):
        CommentTreeBuilder(source).build(1, 10)


def test_build_prunes_failed_ids_without_retrying(source, make_story, make_comment):
    source.add(
        make_story(1, kids=[10, 20, 30]),
        make_comment(10, "first"),
        make_comment(11, "reply to failed comment"),
        make_comment(30, "third"),
    )
    # 20 is not served; its reply 11 is reachable only through it.
    nodes = CommentTreeBuilder(source).build(1, 10)

    assert [n.text for n in nodes] == ["first", "third"]
    assert source.item_calls().count(20) == 1
    assert 11 not in source.item_calls()


def test_build_returns_empty_when_every_root_fails(source, make_story):
    source.add(make_story(1, kids=[10, 20]))
    assert CommentTreeBuilder(source).build(1, 10) == []


def test_build_truncation_is_global_and_can_starve_later_threads(
    source, make_story, make_comment
):
    source.add(
        make_story(1, kids=[10, 20]),
        make_comment(10, "busy thread", kids=[11, 12]),
        make_comment(11, "reply one"),
        make_comment(12, "reply two"),
        make_comment(20, "never shown"),
    )
    nodes = CommentTreeBuilder(source).build(1, 3)

    # The cap applies to the whole forest, so the second root thread is cut.
    assert [n.text for n in nodes] == ["busy thread", "reply one", "reply two"]


def test_build_raises_cancelled_when_token_is_already_cancelled(thread_source):
    token = CancellationToken()
    token.cancel()

    with pytest.raises(Cancelled):
        CommentTreeBuilder(thread_source).build(1, 10, token)
    assert thread_source.calls == []


def test_build_stops_between_rounds_after_cancellation(thread_source):
    token = CancellationToken()
    fetch_item = thread_source.fetch_item

    def fetch_and_cancel(item_id):
        if item_id == 10:
            token.cancel()
        return fetch_item(item_id)

    thread_source.fetch_item = fetch_and_cancel
    with pytest.raises(Cancelled):
        CommentTreeBuilder(thread_source).build(1, 10, token)
    assert 11 not in thread_source.item_calls()


def test_build_prunes_malformed_items(source, make_story, make_comment):
    source.add(make_story(1, kids=[10, 20]), make_comment(20, "ok"))
    source.add_payload(10, {"id": 10, "type": "comment", "text": 123, "kids": [11]})
    source.add(make_comment(11, "reply to malformed comment"))

    nodes = CommentTreeBuilder(source).build(1, 10)

    assert [n.text for n in nodes] == ["ok"]
    assert 11 not in source.item_calls()


def test_build_stops_waiting_on_post_once_cancelled(thread_source):
    token = CancellationToken()
    release = threading.Event()
    fetch_item = thread_source.fetch_item

    def slow_post(item_id):
        if item_id == 1:
            release.wait(5)
        return fetch_item(item_id)

    thread_source.fetch_item = slow_post
    timer = threading.Timer(0.05, token.cancel)
    timer.start()
    started = time.monotonic()
    try:
        with pytest.raises(Cancelled):
            CommentTreeBuilder(thread_source).build(1, 10, token)
        assert time.monotonic() - started < 2
    finally:
        release.set()
        timer.cancel()
