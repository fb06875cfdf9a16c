"""Tests for the multi-source aggregator."""
from __future__ import annotations

import asyncio

from conftest import FakeSource, make_record
from yield_tracker.clients.base import YieldSource
from yield_tracker.services.aggregator import Aggregator, deduplicate_yields


class ExplodingSource(YieldSource):
    name = "exploding"

    async def _fetch(self):
        raise AssertionError("unused")

    async def fetch_yields(self):
        raise RuntimeError("contract violated")


def test_dedup_keeps_highest_apy():
    merged = deduplicate_yields([make_record("X", "SOL", 5.0), make_record("X", "SOL", 8.0)])
    assert len(merged) == 1
    assert merged[0].apy == 8.0


def test_dedup_tie_keeps_first_seen():
    first = make_record("X", "SOL", 5.0, pool="first")
    second = make_record("X", "SOL", 5.0, pool="second")
    assert deduplicate_yields([first, second]) == [first]


def test_dedup_distinguishes_protocol_and_token():
    records = [
        make_record("X", "SOL", 5.0),
        make_record("Y", "SOL", 6.0),
        make_record("X", "USDC", 7.0),
    ]
    assert len(deduplicate_yields(records)) == 3


async def test_all_empty_sources_yield_empty_list(cache):
    agg = Aggregator([FakeSource(cache, "a", []), FakeSource(cache, "b", [])], cache)
    assert await agg.get_all_yields() == []


async def test_failing_source_degrades_coverage_only(cache):
    good = FakeSource(cache, "good", [make_record("Good", "SOL", 9.0)])
    bad = FakeSource(cache, "bad", [], fail=True)
    agg = Aggregator([bad, good, ExplodingSource(cache)], cache)
    records = await agg.get_all_yields()
    assert [(r.protocol, r.apy) for r in records] == [("Good", 9.0)]
    assert agg.last_refresh_at is not None


async def test_merges_and_dedups_across_sources(cache):
    a = FakeSource(cache, "a", [make_record("X", "SOL", 5.0), make_record("Y", "USDC", 4.0)])
    b = FakeSource(cache, "b", [make_record("X", "SOL", 8.0)])
    agg = Aggregator([a, b], cache)
    records = await agg.get_all_yields()
    assert {(r.protocol, r.token.value): r.apy for r in records} == {("X", "SOL"): 8.0, ("Y", "USDC"): 4.0}


async def test_filters_by_token_and_protocol(cache):
    src = FakeSource(
        cache,
        "a",
        [make_record("Saros", "SOL", 12.5), make_record("Kamino", "SOL", 9.0), make_record("Kamino", "USDC", 6.0)],
    )
    agg = Aggregator([src], cache)
    assert {r.protocol for r in await agg.get_yields_by_token("SOL")} == {"Saros", "Kamino"}
    assert {r.token.value for r in await agg.get_yields_by_protocol("kamino")} == {"SOL", "USDC"}


async def test_clear_cache_forces_refetch(cache):
    src = FakeSource(cache, "a", [make_record("X", "SOL", 5.0)])
    agg = Aggregator([src], cache)
    await agg.get_all_yields()
    await agg.get_all_yields()
    assert src.calls == 1
    agg.clear_cache()
    await agg.get_all_yields()
    assert src.calls == 2


class RendezvousSource(FakeSource):
    """Completes only once its partner has also started fetching."""

    def __init__(self, cache, name, records, mine: asyncio.Event, partner: asyncio.Event):
        super().__init__(cache, name, records)
        self.mine = mine
        self.partner = partner

    async def _fetch(self):
        self.mine.set()
        await self.partner.wait()
        return await super()._fetch()


async def test_sources_are_fetched_concurrently(cache):
    a_started, b_started = asyncio.Event(), asyncio.Event()
    a = RendezvousSource(cache, "a", [make_record("A", "SOL", 5.0)], a_started, b_started)
    b = RendezvousSource(cache, "b", [make_record("B", "SOL", 6.0)], b_started, a_started)
    records = await asyncio.wait_for(Aggregator([a, b], cache).get_all_yields(), timeout=2)
    assert [r.protocol for r in records] == ["A", "B"]
