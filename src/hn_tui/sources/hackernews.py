from __future__ import annotations

import logging
from typing import Any, List

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import (
    HN_API_BASE,
    HTTP_TIMEOUT,
    ITEM_URL_BASE,
    MAX_CONCURRENCY,
    REQUEST_HEADERS,
    RETRY_BACKOFF_FACTOR,
    RETRY_STATUS_FORCELIST,
    RETRY_TOTAL,
)
from ..datamodels import Feed, Item
from ..errors import MalformedItemError, TransportError
from .base import ItemSource

logger = logging.getLogger("hn")


class HackerNewsSource(ItemSource):
    def __init__(self, timeout: float = HTTP_TIMEOUT):
        self.timeout = timeout
        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        s = requests.Session()
        s.headers.update(REQUEST_HEADERS)
        retries = Retry(
            total=RETRY_TOTAL,
            backoff_factor=RETRY_BACKOFF_FACTOR,
            status_forcelist=RETRY_STATUS_FORCELIST,
        )
        # One pooled connection per concurrent fetch worker.
        adapter = HTTPAdapter(
            max_retries=retries, pool_connections=1, pool_maxsize=MAX_CONCURRENCY
        )
        s.mount("https://", adapter)
        s.mount("http://", adapter)
        return s

    def _get_json(self, url: str) -> Any:
        try:
            logger.debug("Fetching %s", url)
            resp = self.session.get(url, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            # Invalid JSON bodies also land here (requests' JSONDecodeError).
            logger.debug("Fetch failed for %s: %s", url, e)
            raise TransportError(f"{url}: {e}") from e

    def fetch_item(self, item_id: int) -> Item:
        return Item.from_json(self._get_json(f"{ITEM_URL_BASE}/{item_id}.json"))

    def fetch_story_ids(self, feed: Feed) -> List[int]:
        data = self._get_json(f"{HN_API_BASE}/{feed.endpoint}.json")
        if not isinstance(data, list) or not all(
            isinstance(i, int) and not isinstance(i, bool) for i in data
        ):
            raise MalformedItemError(f"{feed.endpoint}: expected a list of ids")
        logger.debug("Feed %s has %d stories", feed.label, len(data))
        return data
