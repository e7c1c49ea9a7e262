from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from hn_tui.config import RETRY_TOTAL
from hn_tui.datamodels import Feed, Item, Post, PostType
from hn_tui.errors import MalformedItemError, TransportError
from hn_tui.sources.hackernews import HackerNewsSource


@pytest.fixture
def hn_source():
    return HackerNewsSource(timeout=3)


def _response(payload):
    resp = MagicMock()
    resp.json.return_value = payload
    return resp


def test_session_retries_transport_errors(hn_source):
    adapter = hn_source.session.get_adapter("https://hacker-news.firebaseio.com/v0")
    assert adapter.max_retries.total == RETRY_TOTAL
    assert hn_source.session.headers["User-Agent"].startswith("hn-tui")


def test_fetch_item(hn_source):
    payload = {
        "id": 8863,
        "type": "story",
        "by": "dhouston",
        "time": 1175714200,
        "title": "My YC app: Dropbox",
        "url": "http://www.getdropbox.com/u/2/screencast.html",
        "score": 111,
        "descendants": 71,
        "kids": [9224, 8917],
    }
    with patch.object(hn_source.session, "get", return_value=_response(payload)) as mock_get:
        item = hn_source.fetch_item(8863)

    mock_get.assert_called_once_with(
        "https://hacker-news.firebaseio.com/v0/item/8863.json", timeout=3
    )
    assert item.kind == "story"
    assert item.kids == (9224, 8917)
    assert item.score == 111


def test_fetch_item_wraps_request_errors(hn_source):
    with patch.object(
        hn_source.session, "get", side_effect=requests.ConnectionError("offline")
    ):
        with pytest.raises(TransportError):
            hn_source.fetch_item(1)


def test_fetch_item_wraps_http_errors(hn_source):
    resp = _response({})
    resp.raise_for_status.side_effect = requests.HTTPError("503 Server Error")
    with patch.object(hn_source.session, "get", return_value=resp):
        with pytest.raises(TransportError):
            hn_source.fetch_item(1)


def test_fetch_item_rejects_null_payload(hn_source):
    with patch.object(hn_source.session, "get", return_value=_response(None)):
        with pytest.raises(MalformedItemError):
            hn_source.fetch_item(1)


def test_fetch_story_ids(hn_source):
    with patch.object(hn_source.session, "get", return_value=_response([3, 2, 1])) as mock_get:
        assert hn_source.fetch_story_ids(Feed.ASK) == [3, 2, 1]
    mock_get.assert_called_once_with(
        "https://hacker-news.firebaseio.com/v0/askstories.json", timeout=3
    )


def test_fetch_story_ids_rejects_malformed_list(hn_source):
    with patch.object(hn_source.session, "get", return_value=_response({"ids": [1]})):
        with pytest.raises(MalformedItemError):
            hn_source.fetch_story_ids(Feed.TOP)
    with patch.object(hn_source.session, "get", return_value=_response([1, "2"])):
        with pytest.raises(MalformedItemError):
            hn_source.fetch_story_ids(Feed.TOP)


# --- Item parsing ---
def test_item_from_json_defaults_optional_fields():
    item = Item.from_json({"id": 5})
    assert item == Item(id=5)
    assert not item.dead
    assert item.kids == ()


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"type": "story"},
        {"id": "5"},
        {"id": True},
        {"id": 5, "kids": [1, "x"]},
        {"id": 5, "type": "comment", "text": 123},
        {"id": 5, "type": 1},
        {"id": 5, "by": ["pg"]},
        {"id": 5, "title": None, "url": 7},
        {"id": 5, "time": "yesterday"},
        {"id": 5, "score": 1.5},
        {"id": 5, "descendants": True},
    ],
)
def test_item_from_json_rejects_malformed_payloads(payload):
    with pytest.raises(MalformedItemError):
        Item.from_json(payload)


def test_post_from_story_item():
    post = Post.from_item(
        Item(id=3, kind="story", title="Ask HN: anything", by="", score=None, descendants=4)
    )
    assert post.post_type is PostType.STORY
    assert post.url == "https://news.ycombinator.com/item?id=3"
    assert post.discussion_url == post.url
    assert post.author == "unknown"
    assert post.points == 0
    assert post.comments == 4


def test_post_from_job_item_keeps_url():
    post = Post.from_item(Item(id=4, kind="job", title="Hiring", url="https://jobs.example"))
    assert post.post_type is PostType.JOB
    assert post.url == "https://jobs.example"


@pytest.mark.parametrize(
    "item",
    [
        Item(id=1, kind="comment", text="hi"),
        Item(id=2, kind="poll", title="Poll"),
        Item(id=3, kind="story"),
        Item(id=4, kind="story", title="gone", dead=True),
        Item(id=5, kind="story", title="gone", deleted=True),
    ],
)
def test_post_from_item_skips_non_posts(item):
    assert Post.from_item(item) is None


def test_feed_order_wraps():
    assert Feed.TOP.shifted(1) is Feed.NEW
    assert Feed.TOP.shifted(-1) is Feed.BEST
    assert Feed.BEST.shifted(1) is Feed.TOP
    assert Feed.JOBS.endpoint == "jobstories"


def test_fetch_item_rejects_wrongly_typed_fields(hn_source):
    payload = {"id": 10, "type": "comment", "by": "alice", "text": 123}
    with patch.object(hn_source.session, "get", return_value=_response(payload)):
        with pytest.raises(MalformedItemError):
            hn_source.fetch_item(10)
