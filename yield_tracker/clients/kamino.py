from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from yield_tracker.clients.base import YieldSource, to_float
from yield_tracker.http import HttpClient
from yield_tracker.models import YieldRecord
from yield_tracker.services.cache import TTLCache
from yield_tracker.tokens import canonical_symbol, resolve_mints, resolve_pair

logger = logging.getLogger(__name__)

KAMINO_STRATEGIES_URL = "https://api.kamino.finance/strategies"
MAX_STRATEGIES = 10


def strategy_token(strategy: Dict[str, Any]) -> Optional[str]:
    by_symbol = resolve_pair([strategy.get("tokenASymbol"), strategy.get("tokenBSymbol")])
    if by_symbol:
        return by_symbol
    by_mint = resolve_mints(strategy.get("tokenAMint"), strategy.get("tokenBMint"))
    if by_mint:
        return by_mint
    return canonical_symbol(strategy.get("token"))


def strategy_apy(strategy: Dict[str, Any]) -> Optional[float]:
    # The strategies endpoint reports rates as fractions (0.085 is 8.5%)
    rate = to_float(strategy.get("apr"))
    if rate is None:
        rate = to_float(strategy.get("apy"))
    if rate is None:
        return None
    return rate * 100.0


class KaminoSource(YieldSource):
    name = "kamino"
    protocol = "Kamino"
    category = "lending"
    max_apy = 200.0

    def __init__(self, http: HttpClient, cache: TTLCache, url: str = KAMINO_STRATEGIES_URL, max_apy: float | None = None):
        super().__init__(cache, max_apy=max_apy)
        self.http = http
        self.url = url

    async def _fetch(self) -> List[YieldRecord]:
        resp = await self.http.get(self.url, params={"env": "mainnet-beta"})
        data = resp.json()
        if not isinstance(data, list):
            raise ValueError(f"unexpected Kamino payload type {type(data).__name__}")

        live = [s for s in data if s.get("status") == "LIVE" and (strategy_apy(s) or 0) > 0]
        live.sort(key=lambda s: strategy_apy(s) or 0.0, reverse=True)

        out: List[YieldRecord] = []
        for s in live[:MAX_STRATEGIES]:
            record = self.build_record(
                strategy_token(s),
                strategy_apy(s),
                s.get("tvl") or s.get("totalValueLocked") or s.get("sharesIssued"),
                s.get("address") or s.get("strategy"),
            )
            if record is not None:
                out.append(record)
        return out
