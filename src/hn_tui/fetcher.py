from __future__ import annotations

import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, Iterable, Optional, TypeVar, Union

from .config import CANCEL_POLL_INTERVAL, MAX_CONCURRENCY
from .errors import TransportError
from .lifecycle import CancellationToken

logger = logging.getLogger("hn")

T = TypeVar("T")


def fetch_many(
    fetch: Callable[[int], T],
    ids: Iterable[int],
    cancel: Optional[CancellationToken] = None,
    max_workers: int = MAX_CONCURRENCY,
) -> Dict[int, Union[T, TransportError]]:
    """Run `fetch` for every id with at most `max_workers` requests in flight.

    Returns once every request has resolved. Each id maps to its result or to
    the `TransportError` it raised. If `cancel` fires while waiting, pending
    requests are abandoned and `Cancelled` is raised.
    """
    ids = list(dict.fromkeys(ids))
    results: Dict[int, Union[T, TransportError]] = {}
    if not ids:
        return results
    if cancel is not None:
        cancel.raise_if_cancelled()

    executor = ThreadPoolExecutor(
        max_workers=min(max_workers, len(ids)), thread_name_prefix="hn-fetch"
    )
    try:
        future_to_id: Dict[Future, int] = {executor.submit(fetch, i): i for i in ids}
        pending = set(future_to_id)
        while pending:
            if cancel is not None:
                cancel.raise_if_cancelled()
            done, pending = wait(
                pending, timeout=CANCEL_POLL_INTERVAL, return_when=FIRST_COMPLETED
            )
            for future in done:
                item_id = future_to_id[future]
                try:
                    results[item_id] = future.result()
                except TransportError as e:
                    logger.debug("Fetch failed for %d: %s", item_id, e)
                    results[item_id] = e
    finally:
        # Running requests finish on their own; queued ones are dropped.
        executor.shutdown(wait=False, cancel_futures=True)
    return results


def fetch_one(
    fetch: Callable[..., T], *args: Any, cancel: Optional[CancellationToken] = None
) -> T:
    """Run a single blocking fetch, giving up as soon as `cancel` fires.

    Errors raised by `fetch` propagate unchanged.
    """
    if cancel is None:
        return fetch(*args)
    cancel.raise_if_cancelled()

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hn-fetch")
    try:
        future = executor.submit(fetch, *args)
        while True:
            cancel.raise_if_cancelled()
            done, _ = wait([future], timeout=CANCEL_POLL_INTERVAL)
            if done:
                return future.result()
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
