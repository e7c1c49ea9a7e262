from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional, Tuple

from .errors import Cancelled

logger = logging.getLogger("hn")

_GENERATION_MODULUS = 2**64


class CancellationToken:
    """Cooperative cancellation flag shared between the app and one worker."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled()


class RequestLifecycleManager:
    """Tracks the single active request of one logical stream (posts, comments).

    Each call to `begin` supersedes the previous request: its token is
    cancelled and its generation stops being active, so a late result for it
    is dropped by `on_result`.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._last_generation = 0
        self._active_generation: Optional[int] = None
        self._active_token: Optional[CancellationToken] = None

    @property
    def active_generation(self) -> Optional[int]:
        return self._active_generation

    @property
    def in_flight(self) -> bool:
        return self._active_generation is not None

    def begin(self) -> Tuple[int, CancellationToken]:
        if self._active_token is not None:
            self._active_token.cancel()
            logger.debug(
                "%s: cancelled generation %s", self.name, self._active_generation
            )

        # Wrapping counter; 0 is never handed out.
        self._last_generation = (self._last_generation + 1) % _GENERATION_MODULUS or 1
        token = CancellationToken()
        self._active_generation = self._last_generation
        self._active_token = token
        logger.debug("%s: began generation %d", self.name, self._last_generation)
        return self._last_generation, token

    def is_active(self, generation: int) -> bool:
        return self._active_generation is not None and generation == self._active_generation

    def cancel(self) -> None:
        """Cancel the active request, if any, so that its result is ignored."""
        if self._active_token is not None:
            self._active_token.cancel()
        self._active_generation = None
        self._active_token = None

    def on_result(
        self, generation: int, outcome: Any, apply: Callable[[Any], None]
    ) -> bool:
        """Apply `outcome` if `generation` is the active one.

        Returns True when `apply` was called. Superseded results and
        cancellations are discarded without side effects.
        """
        if not self.is_active(generation):
            logger.debug(
                "%s: dropping result of stale generation %d (active: %s)",
                self.name,
                generation,
                self._active_generation,
            )
            return False

        self._active_generation = None
        self._active_token = None

        if isinstance(outcome, Cancelled):
            logger.debug("%s: generation %d was cancelled", self.name, generation)
            return False

        apply(outcome)
        return True
