"""Curated fallback figures for sources whose live feed can't be polled.

The Saros DLMM SDK is rate-limited hard enough that polling it every cache
window fails more often than not, so Saros is served from this table.
"""
from __future__ import annotations

from typing import List, Sequence, Tuple

from yield_tracker.clients.base import YieldSource
from yield_tracker.models import Category, YieldRecord
from yield_tracker.services.cache import TTLCache

# (token, apy %, tvl USD, pool identifier)
SAROS_FALLBACK: Sequence[Tuple[str, float, float, str]] = (
    ("SOL", 12.5, 2_500_000, "saros-sol-dlmm"),
    ("USDC", 8.3, 1_800_000, "saros-usdc-dlmm"),
    ("USDT", 7.9, 1_200_000, "saros-usdt-dlmm"),
    ("JitoSOL", 11.2, 900_000, "saros-jitosol-dlmm"),
    ("mSOL", 10.8, 750_000, "saros-msol-dlmm"),
)


class StaticYieldSource(YieldSource):
    def __init__(
        self,
        cache: TTLCache,
        protocol: str,
        rows: Sequence[Tuple[str, float, float, str]],
        category: Category = "farming",
        name: str | None = None,
        max_apy: float | None = None,
    ):
        super().__init__(cache, max_apy=max_apy)
        self.protocol = protocol
        self.category = category
        self.name = name or protocol.lower()
        self.rows = list(rows)

    async def _fetch(self) -> List[YieldRecord]:
        out: List[YieldRecord] = []
        for token, apy, tvl, pool_id in self.rows:
            record = self.build_record(token, apy, tvl, pool_id)
            if record is not None:
                out.append(record)
        return out


def saros_source(cache: TTLCache, max_apy: float | None = None) -> StaticYieldSource:
    return StaticYieldSource(cache, protocol="Saros", rows=SAROS_FALLBACK, name="saros", max_apy=max_apy)
