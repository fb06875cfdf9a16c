"""Tests for the upstream yield sources, with HTTP mocked by httpx.MockTransport."""
from __future__ import annotations

import httpx
import pytest

from conftest import FakeSource, json_http, make_record, mock_http
from yield_tracker.clients.defillama import DefiLlamaSource
from yield_tracker.clients.kamino import KaminoSource
from yield_tracker.clients.meteora import MeteoraSource
from yield_tracker.clients.raydium import RaydiumSource
from yield_tracker.clients.static import saros_source

SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
MSOL_MINT = "mSoLzYCxHdYgdzU16g5QSh3i5K3z3KZK7ytfqcJm7So"
BONK_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"


def llama_pool(**overrides):
    pool = {
        "chain": "Solana",
        "project": "kamino-lend",
        "symbol": "USDC",
        "tvlUsd": 5_000_000,
        "apyBase": 6.0,
        "apyReward": 1.5,
        "pool": "abc123-def",
    }
    pool.update(overrides)
    return pool


async def test_defillama_maps_and_filters_pools(cache):
    payload = {
        "data": [
            llama_pool(),
            llama_pool(project="marinade-liquid-staking", symbol="MSOL", apyBase=7.1, apyReward=None, pool="m1"),
            llama_pool(project="raydium-amm", symbol="SOL-BONK", apyBase=20.0, pool="r1"),
            llama_pool(chain="Ethereum"),
            llama_pool(tvlUsd=10_000),
            llama_pool(apyBase=None, apyReward=None),
            llama_pool(project="some-dex"),
            llama_pool(symbol="BONK"),
            llama_pool(apyBase=400.0, pool="noise"),
            llama_pool(apyBase=0.05, apyReward=0.0, pool="dust"),
        ]
    }
    src = DefiLlamaSource(json_http(payload), cache)
    records = await src.fetch_yields()

    by_protocol = {(r.protocol, r.token.value): r for r in records}
    assert set(by_protocol) == {("Kamino", "USDC"), ("Marinade", "mSOL"), ("Raydium", "SOL")}

    kamino = by_protocol[("Kamino", "USDC")]
    assert kamino.apy == 7.5
    assert kamino.tvl == 5_000_000
    assert kamino.category == "lending"
    assert kamino.pool_identifier == "abc123"
    assert by_protocol[("Marinade", "mSOL")].category == "staking"
    assert by_protocol[("Raydium", "SOL")].category == "farming"


async def test_defillama_includes_drift_by_exact_name(cache):
    payload = {"data": [llama_pool(project="drift", symbol="USDC")]}
    records = await DefiLlamaSource(json_http(payload), cache).fetch_yields()
    assert [(r.protocol, r.category) for r in records] == [("Drift", "lending")]


async def test_source_returns_empty_on_http_error(cache):
    src = DefiLlamaSource(json_http({"error": "down"}, status_code=503), cache)
    assert await src.fetch_yields() == []


async def test_source_returns_empty_on_malformed_payload(cache):
    http = mock_http(lambda request: httpx.Response(200, content=b"<html>not json</html>"))
    assert await MeteoraSource(http, cache).fetch_yields() == []
    assert await KaminoSource(json_http({"unexpected": "object"}), cache).fetch_yields() == []


async def test_source_returns_empty_on_network_error(cache):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    src = RaydiumSource(mock_http(handler), cache)
    assert await src.fetch_yields() == []


async def test_successful_fetch_is_cached_for_ttl(cache, clock):
    src = FakeSource(cache, "fake", [make_record("Fake", "SOL", 5.0)])
    await src.fetch_yields()
    await src.fetch_yields()
    assert src.calls == 1
    assert cache.get("fake-yields") is not None

    clock.advance(901)
    await src.fetch_yields()
    assert src.calls == 2


async def test_failed_fetch_is_not_cached(cache):
    src = FakeSource(cache, "flaky", [], fail=True)
    assert await src.fetch_yields() == []
    assert cache.get("flaky-yields") is None
    await src.fetch_yields()
    assert src.calls == 2


async def test_kamino_live_strategies(cache):
    payload = [
        {"status": "LIVE", "apr": 0.085, "tokenASymbol": "SOL", "tokenBSymbol": "USDC", "address": "k1", "tvl": "120000"},
        {"status": "LIVE", "apr": "0.12", "tokenAMint": MSOL_MINT, "tokenBMint": BONK_MINT, "address": "k2"},
        {"status": "DEPRECATED", "apr": 0.3, "tokenASymbol": "USDT", "address": "k3"},
        {"status": "LIVE", "apr": 0, "tokenASymbol": "SOL", "address": "k4"},
        {"status": "LIVE", "apr": 0.2, "tokenASymbol": "BONK", "tokenBSymbol": "WIF", "address": "k5"},
    ]
    records = await KaminoSource(json_http(payload), cache).fetch_yields()
    assert [(r.token.value, r.pool_identifier) for r in records] == [("mSOL", "k2"), ("USDC", "k1")]
    assert records[1].apy == pytest.approx(8.5)
    assert records[1].tvl == 120_000
    assert all(r.protocol == "Kamino" and r.category == "lending" for r in records)


async def test_kamino_sends_env_param(cache):
    seen = []

    def handler(request):
        seen.append(request.url.params.get("env"))
        return httpx.Response(200, json=[])

    await KaminoSource(mock_http(handler), cache).fetch_yields()
    assert seen == ["mainnet-beta"]


async def test_raydium_pools(cache):
    payload = {
        "success": True,
        "data": {
            "data": [
                {"id": "r1", "mintA": {"address": SOL_MINT}, "mintB": {"address": USDC_MINT}, "tvl": 9_000_000, "day": {"apr": 25.4}},
                {"id": "r2", "tokenAmint": BONK_MINT, "tokenBmint": SOL_MINT, "tvl": 1_000_000, "apr24h": "40.0"},
                {"id": "r3", "mintA": {"address": BONK_MINT}, "mintB": {"address": "other"}, "tvl": 500_000, "day": {"apr": 90}},
                {"id": "r4", "mintA": {"address": SOL_MINT}, "mintB": {"address": USDC_MINT}, "tvl": 0, "day": {"apr": 10}},
            ]
        },
    }
    records = await RaydiumSource(json_http(payload), cache).fetch_yields()
    assert [(r.pool_identifier, r.token.value, r.apy) for r in records] == [("r1", "USDC", 25.4), ("r2", "SOL", 40.0)]


async def test_meteora_pairs_sorted_by_liquidity(cache):
    payload = [
        {"address": "m1", "mint_x": SOL_MINT, "mint_y": USDC_MINT, "liquidity": "50000", "apy": 30.5},
        {"address": "m2", "mint_x": MSOL_MINT, "mint_y": SOL_MINT, "liquidity": "900000", "apy": 12.0},
        {"address": "m3", "mint_x": SOL_MINT, "mint_y": USDC_MINT, "liquidity": "500", "apy": 80.0},
        {"address": "m4", "mint_x": SOL_MINT, "mint_y": USDC_MINT, "liquidity": "70000", "apy": 0},
        {"address": "m5", "mint_x": "x", "mint_y": "y", "name": "JITOSOL-BONK", "liquidity": "60000", "apy": 9.0},
    ]
    records = await MeteoraSource(json_http(payload), cache).fetch_yields()
    assert [(r.pool_identifier, r.token.value) for r in records] == [("m2", "SOL"), ("m5", "JitoSOL"), ("m1", "USDC")]
    assert records[0].tvl == 900_000


async def test_saros_fallback_covers_every_token(cache):
    records = await saros_source(cache).fetch_yields()
    assert {r.token.value for r in records} == {"SOL", "USDC", "USDT", "JitoSOL", "mSOL"}
    sol = next(r for r in records if r.token.value == "SOL")
    assert (sol.protocol, sol.apy, sol.tvl) == ("Saros", 12.5, 2_500_000)


async def test_configured_max_apy_tightens_source_bound(cache):
    records = await saros_source(cache, max_apy=10.0).fetch_yields()
    assert {r.token.value for r in records} == {"USDC", "USDT"}


def test_registry_builds_enabled_sources_in_order(cache):
    from yield_tracker.clients.registry import build_sources
    from yield_tracker.config import Settings

    settings = Settings(ENABLED_SOURCES="meteora, Saros,unknown,kamino")
    sources = build_sources(settings, json_http([]), cache)
    assert [s.name for s in sources] == ["meteora", "saros", "kamino"]
    assert isinstance(sources[2], KaminoSource)


async def test_kamino_rates_use_one_unit_across_one(cache):
    payload = [
        {"status": "LIVE", "apr": 0.9, "tokenASymbol": "SOL", "address": "a"},
        {"status": "LIVE", "apr": 1.1, "tokenASymbol": "USDC", "address": "b"},
        {"status": "LIVE", "apr": 2.5, "tokenASymbol": "USDT", "address": "c"},
    ]
    records = await KaminoSource(json_http(payload), cache).fetch_yields()
    # 2.5 is 250%, outside the plausible window
    assert {r.pool_identifier: r.apy for r in records} == {"b": pytest.approx(110.0), "a": pytest.approx(90.0)}
    assert [r.pool_identifier for r in records] == ["b", "a"]


async def test_source_returns_empty_on_read_timeout(cache):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    assert await KaminoSource(mock_http(handler), cache).fetch_yields() == []
