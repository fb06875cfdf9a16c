from __future__ import annotations

import json
from typing import Any, Callable, Dict, List

import httpx
import pytest

from yield_tracker.clients.base import YieldSource
from yield_tracker.clients.telegram import TelegramClient
from yield_tracker.http import HttpClient
from yield_tracker.models import YieldRecord
from yield_tracker.services.cache import TTLCache


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSource(YieldSource):
    """Serves a fixed list of records, or raises like a broken upstream."""

    def __init__(self, cache: TTLCache, name: str, records: List[YieldRecord], fail: bool = False):
        super().__init__(cache)
        self.name = name
        self.records = records
        self.fail = fail
        self.calls = 0

    async def _fetch(self) -> List[YieldRecord]:
        self.calls += 1
        if self.fail:
            raise httpx.ConnectError("upstream unreachable")
        return list(self.records)


def make_record(protocol: str, token: str, apy: float, tvl: float = 1_000_000.0, pool: str | None = None) -> YieldRecord:
    return YieldRecord(
        protocol=protocol,
        token=token,
        apy=apy,
        tvl=tvl,
        pool_identifier=pool or f"{protocol.lower()}-{token.lower()}",
        category="farming",
    )


def mock_http(handler: Callable[[httpx.Request], httpx.Response]) -> HttpClient:
    return HttpClient(timeout=1.0, transport=httpx.MockTransport(handler))


def json_http(payload: Any, status_code: int = 200) -> HttpClient:
    return mock_http(lambda request: httpx.Response(status_code, json=payload))


class TelegramRecorder:
    """Mock Telegram Bot API that records every call."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit("/", 1)[-1]
        body = json.loads(request.content) if request.content else {}
        self.calls.append({"method": method, **body})
        if method == "getMe":
            return httpx.Response(200, json={"ok": True, "result": {"id": 1, "username": "yield_bot"}})
        return httpx.Response(200, json={"ok": True, "result": True})

    def sent(self, method: str = "sendMessage") -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["method"] == method]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> TTLCache:
    return TTLCache(default_ttl=900, clock=clock)


@pytest.fixture
def telegram_recorder() -> TelegramRecorder:
    return TelegramRecorder()


@pytest.fixture
def telegram(telegram_recorder: TelegramRecorder) -> TelegramClient:
    return TelegramClient(mock_http(telegram_recorder), token="123:abc")
