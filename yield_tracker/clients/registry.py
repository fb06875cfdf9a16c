from __future__ import annotations

import logging
from typing import Callable, Dict, List

from yield_tracker.clients.base import YieldSource
from yield_tracker.clients.defillama import DefiLlamaSource
from yield_tracker.clients.kamino import KaminoSource
from yield_tracker.clients.meteora import MeteoraSource
from yield_tracker.clients.raydium import RaydiumSource
from yield_tracker.clients.static import saros_source
from yield_tracker.config import Settings
from yield_tracker.http import HttpClient
from yield_tracker.services.cache import TTLCache

logger = logging.getLogger(__name__)

SourceFactory = Callable[[Settings, HttpClient, TTLCache], YieldSource]

SOURCE_FACTORIES: Dict[str, SourceFactory] = {
    "saros": lambda s, http, cache: saros_source(cache, max_apy=s.MAX_APY),
    "defillama": lambda s, http, cache: DefiLlamaSource(
        http, cache, url=s.DEFILLAMA_POOLS_URL, min_tvl_usd=s.DEFILLAMA_MIN_TVL_USD, max_apy=s.MAX_APY
    ),
    "kamino": lambda s, http, cache: KaminoSource(http, cache, url=s.KAMINO_STRATEGIES_URL, max_apy=s.MAX_APY),
    "raydium": lambda s, http, cache: RaydiumSource(http, cache, url=s.RAYDIUM_POOLS_URL, max_apy=s.MAX_APY),
    "meteora": lambda s, http, cache: MeteoraSource(http, cache, url=s.METEORA_PAIRS_URL, max_apy=s.MAX_APY),
}


def build_sources(settings: Settings, http: HttpClient, cache: TTLCache) -> List[YieldSource]:
    sources: List[YieldSource] = []
    for key in settings.enabled_sources():
        factory = SOURCE_FACTORIES.get(key)
        if factory is None:
            logger.warning(f"Unknown yield source '{key}' in ENABLED_SOURCES, skipping")
            continue
        sources.append(factory(settings, http, cache))
    logger.info(f"Yield sources enabled: {[s.name for s in sources]}")
    return sources
