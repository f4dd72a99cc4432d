"""
State caches

The cache stores one State per absolute uri. It never decides on freshness
itself: the cache middleware expires entries based on the HTTP traffic.
"""
import asyncio
from typing import Dict, Optional

import structlog

from .state.base import BaseState

logger = structlog.get_logger(__name__)


class NeverCache:
    """Caches nothing.

    Every get() goes to the network, and embedded resources are thrown away.
    Mostly useful for testing or when data must always be fresh.
    """

    def store(self, state: BaseState) -> None:
        pass

    def get(self, uri: str) -> Optional[BaseState]:
        return None

    def has(self, uri: str) -> bool:
        return False

    def delete(self, uri: str) -> None:
        pass

    def clear(self) -> None:
        pass


class ForeverCache:
    """Keeps every State until it is deleted or expired by an unsafe request.

    States are cloned going in and coming out, so callers never mutate the
    cached copy.
    """

    def __init__(self):
        self._cache: Dict[str, BaseState] = {}

    def store(self, state: BaseState) -> None:
        self._cache[state.uri] = state.clone()

    def get(self, uri: str) -> Optional[BaseState]:
        state = self._cache.get(uri)
        if state is None:
            return None
        return state.clone()

    def has(self, uri: str) -> bool:
        return uri in self._cache

    def delete(self, uri: str) -> None:
        self._cache.pop(uri, None)

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)


class ShortCache(ForeverCache):
    """Keeps States for ttl_seconds after their last store.

    The lifetime is in seconds, like asyncio's call_later: 30 means half a
    minute, not 30 milliseconds.

    Each uri gets its own event loop timer which is restarted on every
    store().
    """

    def __init__(self, ttl_seconds: float = 30.0):
        super().__init__()
        self.ttl = ttl_seconds
        self._timers: Dict[str, asyncio.TimerHandle] = {}

    def store(self, state: BaseState) -> None:
        super().store(state)
        self._set_timer(state.uri)

    def clear(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        super().clear()

    def _set_timer(self, uri: str) -> None:
        previous = self._timers.pop(uri, None)
        if previous is not None:
            previous.cancel()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("short_cache_no_event_loop", uri=uri)
            return

        self._timers[uri] = loop.call_later(self.ttl, self._expire, uri)

    def _expire(self, uri: str) -> None:
        self._timers.pop(uri, None)
        self.delete(uri)
        logger.debug("cache_entry_expired", uri=uri)
