from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict, Iterable, List, Sequence, Tuple

from yield_tracker.clients.base import YieldSource
from yield_tracker.models import YieldRecord
from yield_tracker.services.cache import TTLCache

logger = logging.getLogger(__name__)


def deduplicate_yields(records: Iterable[YieldRecord]) -> List[YieldRecord]:
    """Keep one record per (protocol, token), the one with the highest APY.

    Ties keep the first record seen; output follows first-seen key order.
    """
    seen: Dict[Tuple[str, str], YieldRecord] = {}
    for r in records:
        key = (r.protocol, r.token.value)
        current = seen.get(key)
        if current is None or r.apy > current.apy:
            seen[key] = r
    return list(seen.values())


class Aggregator:
    def __init__(self, sources: Sequence[YieldSource], cache: TTLCache):
        self.sources = list(sources)
        self.cache = cache
        self._last_refresh_at: int | None = None

    @property
    def last_refresh_at(self) -> int | None:
        return self._last_refresh_at

    async def get_all_yields(self) -> List[YieldRecord]:
        results = await asyncio.gather(
            *[src.fetch_yields() for src in self.sources],
            return_exceptions=True,
        )
        merged: List[YieldRecord] = []
        for src, batch in zip(self.sources, results):
            if isinstance(batch, BaseException):
                # fetch_yields should never raise; treat a misbehaving source as empty
                logger.error(f"Source {src.name} raised: {batch!r}")
                continue
            merged.extend(batch)

        deduped = deduplicate_yields(merged)
        self._last_refresh_at = int(time.time())
        logger.info(f"Aggregated {len(merged)} records from {len(self.sources)} sources, {len(deduped)} after dedup")
        return deduped

    async def get_yields_by_token(self, token: str) -> List[YieldRecord]:
        return [r for r in await self.get_all_yields() if r.token.value == token]

    async def get_yields_by_protocol(self, protocol: str) -> List[YieldRecord]:
        wanted = protocol.lower()
        return [r for r in await self.get_all_yields() if r.protocol.lower() == wanted]

    def clear_cache(self) -> None:
        self.cache.clear()
