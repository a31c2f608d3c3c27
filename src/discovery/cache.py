"""
Per-address cache of verification outcomes
"""

import time
import logging
from typing import Callable, Dict, Optional

from .models import CacheEntry

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


class DiscoveryCache:
    """
    Remembers whether an address verified, for ttl_seconds.

    Entries are never evicted on their own; callers check is_fresh() at read
    time. Only clear() removes entries.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, address: str) -> Optional[CacheEntry]:
        return self._entries.get(address)

    def set(self, address: str, valid: bool) -> CacheEntry:
        entry = CacheEntry(valid=valid, checked_at=self._clock())
        self._entries[address] = entry
        return entry

    def is_fresh(self, entry: Optional[CacheEntry]) -> bool:
        if entry is None:
            return False
        return not entry.is_expired(self.ttl_seconds, self._clock())

    def clear(self):
        count = len(self._entries)
        self._entries.clear()
        logger.debug(f"Discovery cache cleared ({count} entries)")

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> Dict[str, int]:
        now = self._clock()
        fresh = [e for e in self._entries.values() if not e.is_expired(self.ttl_seconds, now)]
        return {
            "size": len(self._entries),
            "fresh": len(fresh),
            "valid": sum(1 for e in fresh if e.valid)
        }
