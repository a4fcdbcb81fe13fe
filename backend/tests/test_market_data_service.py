import asyncio
from datetime import datetime, timedelta
from typing import List

import pytest

from signal_advisor.core.exceptions import SymbolNotFound
from signal_advisor.schemas.market_data import DataKind, PriceBar, Quote
from signal_advisor.services.market_cache import InMemoryCacheStore, MarketDataCache
from signal_advisor.services.market_data import MarketDataService
from signal_advisor.services.market_providers.base import MarketDataProvider

T0 = datetime(2024, 9, 6, 14, 0, 0)


class FakeProvider(MarketDataProvider):
    def __init__(self, quote: Quote, history: List[PriceBar], error: Exception = None):
        self.quote = quote
        self.history = history
        self.error = error
        self.quote_calls = 0
        self.history_calls = []

    async def get_quote(self, symbol: str) -> Quote:
        self.quote_calls += 1
        await asyncio.sleep(0)
        if self.error:
            raise self.error
        return self.quote

    async def get_history(self, symbol: str, size="compact") -> List[PriceBar]:
        self.history_calls.append(size)
        await asyncio.sleep(0)
        return list(self.history)


@pytest.fixture
def clock():
    state = {"now": T0}
    return state


@pytest.fixture
def cache(clock):
    return MarketDataCache(InMemoryCacheStore(), clock=lambda: clock["now"])


@pytest.mark.asyncio
async def test_fetches_then_serves_from_cache(cache, make_bars, make_quote):
    provider = FakeProvider(make_quote(), make_bars([10.0, 11.0, 12.0]))
    service = MarketDataService(provider, cache)

    quote, history = await service.load("AAPL")
    assert quote.price == 100.0
    assert [bar.close for bar in history] == [10.0, 11.0, 12.0]
    assert provider.quote_calls == 1
    assert provider.history_calls == ["full"]

    cached_quote, cached_history = await service.load("AAPL")
    assert provider.quote_calls == 1
    assert cached_quote == quote
    assert cached_history == history


@pytest.mark.asyncio
async def test_single_stale_entry_refetches_both(cache, clock, make_bars, make_quote):
    """只要任一类缓存过期，就同时重新抓取两者，并以同一时间戳回写"""
    provider = FakeProvider(make_quote(), make_bars([10.0, 11.0]))
    service = MarketDataService(provider, cache, history_size="compact")

    await cache.put("AAPL", DataKind.QUOTE, make_quote(price=90.0).model_dump(mode="json"))
    await cache.put(
        "AAPL", DataKind.DAILY,
        [bar.model_dump(mode="json") for bar in make_bars([1.0])],
        fetched_at=T0 - timedelta(hours=3),
    )

    clock["now"] = T0 + timedelta(minutes=5)
    quote, history = await service.load("AAPL")
    assert quote.price == 100.0
    assert len(history) == 2
    assert provider.quote_calls == 1
    assert provider.history_calls == ["compact"]

    quote_entry = await cache.store.fetch("AAPL", DataKind.QUOTE)
    daily_entry = await cache.store.fetch("AAPL", DataKind.DAILY)
    assert quote_entry.fetched_at == daily_entry.fetched_at == clock["now"]


@pytest.mark.asyncio
async def test_provider_failure_writes_nothing(cache, make_bars, make_quote):
    provider = FakeProvider(make_quote(), make_bars([10.0]), error=SymbolNotFound("No data found for \"ZZZZ\""))
    service = MarketDataService(provider, cache)

    with pytest.raises(SymbolNotFound):
        await service.load("ZZZZ")

    assert await cache.store.fetch("ZZZZ", DataKind.QUOTE) is None
    assert await cache.store.fetch("ZZZZ", DataKind.DAILY) is None


class StalledHistoryProvider(FakeProvider):
    """K 线请求一直挂起，直到被取消"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.history_cancelled = False

    async def get_history(self, symbol: str, size="compact") -> List[PriceBar]:
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.history_cancelled = True
            raise
        return []


@pytest.mark.asyncio
async def test_quote_failure_cancels_history_fetch(cache, make_bars, make_quote):
    provider = StalledHistoryProvider(make_quote(), make_bars([10.0]), error=SymbolNotFound("No data found"))
    service = MarketDataService(provider, cache)

    with pytest.raises(SymbolNotFound):
        await service.load("ZZZZ")

    for _ in range(3):
        await asyncio.sleep(0)
    assert provider.history_cancelled
