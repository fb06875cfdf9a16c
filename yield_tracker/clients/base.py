"""Base class for all upstream yield sources."""
from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from yield_tracker.models import Category, YieldRecord
from yield_tracker.services.cache import TTLCache
from yield_tracker.tokens import is_supported

logger = logging.getLogger(__name__)


def to_float(value: Any) -> Optional[float]:
    """Coerce upstream numbers (often strings) to float; None when unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    return out if math.isfinite(out) else None


class YieldSource(ABC):
    """One upstream provider of yield figures.

    Subclasses implement ``_fetch`` against their upstream and may raise on
    any failure; ``fetch_yields`` turns that into an empty list so one broken
    source only reduces coverage. Successful results are cached under
    ``<name>-yields`` for the cache's TTL.
    """

    name: str = "base"
    protocol: str = ""
    category: Category = "farming"
    # Plausible APY window for this source, exclusive on both ends
    min_apy: float = 0.0
    max_apy: float = 500.0

    def __init__(self, cache: TTLCache, max_apy: float | None = None):
        self.cache = cache
        if max_apy is not None:
            self.max_apy = min(self.max_apy, max_apy)

    @property
    def cache_key(self) -> str:
        return f"{self.name}-yields"

    @abstractmethod
    async def _fetch(self) -> List[YieldRecord]:
        ...

    async def fetch_yields(self) -> List[YieldRecord]:
        cached = self.cache.get(self.cache_key)
        if cached is not None:
            return list(cached)
        try:
            records = await self._fetch()
        except Exception as e:
            logger.warning(f"{self.name} fetch failed: {e}")
            return []
        self.cache.set(self.cache_key, records)
        logger.info(f"{self.name}: {len(records)} yield records")
        return list(records)

    def build_record(
        self,
        token: Optional[str],
        apy: Any,
        tvl: Any,
        pool_identifier: Any,
        protocol: str | None = None,
        category: Category | None = None,
    ) -> Optional[YieldRecord]:
        """Normalize one upstream row, or None when it fails the data-quality bar."""
        if not is_supported(token):
            logger.debug(f"{self.name}: dropping unsupported token {token!r}")
            return None
        apy_f = to_float(apy)
        if apy_f is None or not (self.min_apy < apy_f < self.max_apy):
            logger.debug(f"{self.name}: dropping {token} pool {pool_identifier} with apy={apy!r}")
            return None
        tvl_f = to_float(tvl)
        if tvl_f is None:
            tvl_f = 0.0
        elif tvl_f < 0:
            logger.debug(f"{self.name}: dropping {token} pool {pool_identifier} with tvl={tvl!r}")
            return None
        return YieldRecord(
            protocol=protocol or self.protocol,
            token=token,
            apy=apy_f,
            tvl=tvl_f,
            pool_identifier=str(pool_identifier or f"{self.name}:{token}"),
            category=category or self.category,
        )
