from __future__ import annotations

import logging
from typing import Any, Dict, List

from yield_tracker.clients.base import YieldSource, to_float
from yield_tracker.http import HttpClient
from yield_tracker.models import Category, YieldRecord
from yield_tracker.protocols import map_project_name
from yield_tracker.services.cache import TTLCache
from yield_tracker.tokens import resolve_symbol

logger = logging.getLogger(__name__)

DEFILLAMA_POOLS_URL = "https://yields.llama.fi/pools"

# Lending, staking and DLMM/concentrated liquidity projects only
INCLUDED_PROJECT_FRAGMENTS = (
    "lend",
    "save",  # Save = Solend
    "marginfi",
    "marinade",
    "staking",
    "saros",
    "meteora",
    "orca",
    "raydium",
)


def is_included_project(project: str) -> bool:
    p = project.lower()
    return p == "drift" or any(frag in p for frag in INCLUDED_PROJECT_FRAGMENTS)


def project_category(project: str) -> Category:
    p = project.lower()
    if any(k in p for k in ("lend", "borrow", "kamino", "drift")):
        return "lending"
    if "stake" in p or "staking" in p or "marinade" in p:
        return "staking"
    return "farming"


class DefiLlamaSource(YieldSource):
    """Solana pools from the DefiLlama Yields API, mapped to their own protocols.

    Docs: https://yields.llama.fi/pools
    """

    name = "defillama"
    protocol = "DefiLlama"
    min_apy = 0.1
    max_apy = 150.0

    def __init__(
        self,
        http: HttpClient,
        cache: TTLCache,
        url: str = DEFILLAMA_POOLS_URL,
        min_tvl_usd: float = 50_000.0,
        max_apy: float | None = None,
    ):
        super().__init__(cache, max_apy=max_apy)
        self.http = http
        self.url = url
        self.min_tvl_usd = min_tvl_usd

    async def _fetch(self) -> List[YieldRecord]:
        resp = await self.http.get(self.url)
        data = resp.json()
        pools = data.get("data", []) or []
        logger.debug(f"DefiLlama returned {len(pools)} pools")
        out: List[YieldRecord] = []
        for p in pools:
            if not self._wanted(p):
                continue
            project = str(p.get("project") or "")
            apy = (to_float(p.get("apyBase")) or 0.0) + (to_float(p.get("apyReward")) or 0.0)
            pool_id = str(p.get("pool") or "")
            record = self.build_record(
                resolve_symbol(p.get("symbol")),
                apy,
                p.get("tvlUsd"),
                pool_id.split("-")[0] or pool_id,
                protocol=map_project_name(project),
                category=project_category(project),
            )
            if record is not None:
                out.append(record)
        return out

    def _wanted(self, p: Dict[str, Any]) -> bool:
        if p.get("chain") != "Solana":
            return False
        tvl = to_float(p.get("tvlUsd")) or 0.0
        if tvl < self.min_tvl_usd:
            return False
        if not p.get("apyBase") and not p.get("apyReward"):
            return False
        return is_included_project(str(p.get("project") or ""))
