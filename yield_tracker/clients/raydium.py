from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from yield_tracker.clients.base import YieldSource, to_float
from yield_tracker.http import HttpClient
from yield_tracker.models import YieldRecord
from yield_tracker.services.cache import TTLCache
from yield_tracker.tokens import resolve_mints, resolve_pair

logger = logging.getLogger(__name__)

RAYDIUM_POOLS_URL = "https://api-v3.raydium.io/pools/info/list"
MAX_POOLS = 10


def _mint(pool: Dict[str, Any], side: str) -> Dict[str, Any]:
    info = pool.get(f"mint{side}")
    return info if isinstance(info, dict) else {}


def pool_token(pool: Dict[str, Any]) -> Optional[str]:
    a, b = _mint(pool, "A"), _mint(pool, "B")
    by_mint = resolve_mints(
        a.get("address") or pool.get("tokenAmint"),
        b.get("address") or pool.get("tokenBmint"),
    )
    return by_mint or resolve_pair([a.get("symbol"), b.get("symbol")])


def pool_apr(pool: Dict[str, Any]) -> Optional[float]:
    if pool.get("apr24h") is not None:
        return to_float(pool.get("apr24h"))
    day = pool.get("day")
    if isinstance(day, dict):
        return to_float(day.get("apr"))
    return None


class RaydiumSource(YieldSource):
    """Top concentrated-liquidity pools by TVL from the Raydium v3 API."""

    name = "raydium"
    protocol = "Raydium"
    category = "farming"

    def __init__(self, http: HttpClient, cache: TTLCache, url: str = RAYDIUM_POOLS_URL, max_apy: float | None = None):
        super().__init__(cache, max_apy=max_apy)
        self.http = http
        self.url = url

    async def _fetch(self) -> List[YieldRecord]:
        params = {
            "poolType": "Concentrated",
            "poolSortField": "tvl",
            "sortType": "desc",
            "pageSize": 20,
            "page": 1,
        }
        resp = await self.http.get(self.url, params=params)
        body = resp.json()
        pools = (body.get("data") or {}).get("data") or []

        out: List[YieldRecord] = []
        for p in pools[:MAX_POOLS]:
            apr = pool_apr(p)
            if apr is None or not p.get("tvl"):
                continue
            record = self.build_record(pool_token(p), apr, p.get("tvl"), p.get("id"))
            if record is not None:
                out.append(record)
        return out
