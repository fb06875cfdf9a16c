from __future__ import annotations

import logging
from typing import List

from yield_tracker.clients.base import YieldSource, to_float
from yield_tracker.http import HttpClient
from yield_tracker.models import YieldRecord
from yield_tracker.services.cache import TTLCache
from yield_tracker.tokens import resolve_mints, resolve_symbol

logger = logging.getLogger(__name__)

METEORA_PAIRS_URL = "https://dlmm-api.meteora.ag/pair/all"
MIN_LIQUIDITY_USD = 1000.0
MAX_PAIRS = 10


class MeteoraSource(YieldSource):
    """Deepest DLMM pairs from the Meteora API."""

    name = "meteora"
    protocol = "Meteora"
    category = "farming"

    def __init__(self, http: HttpClient, cache: TTLCache, url: str = METEORA_PAIRS_URL, max_apy: float | None = None):
        super().__init__(cache, max_apy=max_apy)
        self.http = http
        self.url = url

    async def _fetch(self) -> List[YieldRecord]:
        resp = await self.http.get(self.url)
        pairs = resp.json()
        if not isinstance(pairs, list):
            raise ValueError(f"unexpected Meteora payload type {type(pairs).__name__}")

        candidates = [
            p for p in pairs
            if (to_float(p.get("apy")) or 0) > 0 and (to_float(p.get("liquidity")) or 0) > MIN_LIQUIDITY_USD
        ]
        candidates.sort(key=lambda p: to_float(p.get("liquidity")) or 0.0, reverse=True)

        out: List[YieldRecord] = []
        for p in candidates[:MAX_PAIRS]:
            token = resolve_mints(p.get("mint_x"), p.get("mint_y")) or resolve_symbol(p.get("name"))
            record = self.build_record(token, p.get("apy"), p.get("liquidity"), p.get("address"))
            if record is not None:
                out.append(record)
        return out
