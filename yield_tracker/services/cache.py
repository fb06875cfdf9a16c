from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

YIELD_TTL_SECONDS = 15 * 60


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    """In-memory key/value store with per-entry expiry.

    Expired entries are never swept; reads ignore them and the next ``set``
    overwrites them. There is no locking: concurrent refreshes of one key are
    last-write-wins.
    """

    def __init__(self, default_ttl: float = YIELD_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None or self._clock() >= entry.expires_at:
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    def clear(self) -> None:
        logger.info(f"Clearing {len(self._entries)} cache entries")
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for e in self._entries.values() if now < e.expires_at)
