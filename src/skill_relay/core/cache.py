"""In-process TTL cache for well-known skill indexes."""

import logging
import time
from collections.abc import Callable

from skill_relay.config import settings
from skill_relay.models import WellKnownIndex

logger = logging.getLogger("skill-relay.cache")


class WellKnownIndexCache:
    """host -> (index, expiry), scoped to one session.

    Used only to avoid refetching an index within one run. The clock is
    injectable so tests can control expiry.
    """

    def __init__(self, ttl: float | None = None, clock: Callable[[], float] = time.monotonic):
        self.ttl = settings.index_cache_ttl if ttl is None else ttl
        self._clock = clock
        self._entries: dict[str, tuple[WellKnownIndex, float]] = {}

    def get(self, host: str) -> WellKnownIndex | None:
        """Return the cached index, or None on miss or expiry."""
        cached = self._entries.get(host)
        if cached is None:
            return None
        index, expiry = cached
        if self._clock() >= expiry:
            del self._entries[host]
            logger.debug("Cache expired: %s", host)
            return None
        logger.debug("Cache hit: %s", host)
        return index

    def set(self, host: str, index: WellKnownIndex) -> None:
        self._entries[host] = (index, self._clock() + self.ttl)
        logger.debug("Cache set: %s", host)

    def clear(self) -> int:
        removed = len(self._entries)
        self._entries.clear()
        return removed

    def __len__(self) -> int:
        return len(self._entries)
