import pandas as pd
import pytest

from portfolio_tracker.core.exceptions import (
    ExternalServiceError,
    InvalidSymbolError,
    RateLimitedError,
)
from portfolio_tracker.infrastructure.cache.memory_cache import MemoryCache
from portfolio_tracker.infrastructure.market_data.yahoo_quote_client import (
    YahooQuoteClient,
    quantize_price,
)


def _history(*closes):
    return pd.DataFrame({"Close": list(closes)})


@pytest.fixture()
def client(clock, sleeps):
    return YahooQuoteClient(MemoryCache(clock=clock), cache_ttl_seconds=120, sleep=sleeps)


@pytest.mark.asyncio
async def test_price_is_cached_within_ttl(client, clock, monkeypatch):
    calls = []

    def fake_history(symbol):
        calls.append(symbol)
        return _history(2510.0, 2523.456)

    monkeypatch.setattr(client, "_download_history", fake_history)

    assert await client.get_price("RELIANCE.NS") == 2523.46
    assert await client.get_price("RELIANCE.NS") == 2523.46
    assert calls == ["RELIANCE.NS"]

    clock.advance(121)
    await client.get_price("RELIANCE.NS")
    assert len(calls) == 2

    stats = client.get_stats()
    assert stats["cache"]["hits"] == 1
    assert stats["last_good_prices"] == 1


def test_prices_are_quantized_in_decimal():
    assert quantize_price(2.675) == 2.68
    assert quantize_price(1402.1) == 1402.1


@pytest.mark.asyncio
async def test_batch_prices_are_quantized(client, monkeypatch):
    monkeypatch.setattr(client, "_download_batch", lambda symbols: _history(2.675))

    assert await client.get_batch_prices(["ITC.NS"]) == {"ITC.NS": 2.68}


@pytest.mark.asyncio
async def test_invalid_symbol_rejected_before_network(client, monkeypatch):
    def fail(symbol):
        raise AssertionError("should not be called")

    monkeypatch.setattr(client, "_download_history", fail)

    with pytest.raises(InvalidSymbolError):
        await client.get_price("")
    with pytest.raises(InvalidSymbolError):
        await client.get_price("BAD SYMBOL")


@pytest.mark.asyncio
async def test_unknown_symbol_is_not_retried(client, sleeps, monkeypatch):
    calls = []

    def empty_history(symbol):
        calls.append(symbol)
        return pd.DataFrame()

    monkeypatch.setattr(client, "_download_history", empty_history)

    with pytest.raises(InvalidSymbolError, match="Symbol not found"):
        await client.get_price("NOPE.NS")
    assert len(calls) == 1
    assert sleeps.delays == []


@pytest.mark.asyncio
async def test_transient_failure_is_retried(client, sleeps, monkeypatch):
    calls = []

    def flaky(symbol):
        calls.append(symbol)
        if len(calls) == 1:
            raise ConnectionError("Connection reset by peer")
        return _history(101.0)

    monkeypatch.setattr(client, "_download_history", flaky)

    assert await client.get_price("TCS.NS") == 101.0
    assert len(calls) == 2
    assert sleeps.delays == [1.0]


@pytest.mark.asyncio
async def test_persistent_failure_raises_external_service_error(client, monkeypatch):
    def broken(symbol):
        raise ConnectionError("Connection refused")

    monkeypatch.setattr(client, "_download_history", broken)

    with pytest.raises(ExternalServiceError) as info:
        await client.get_price("TCS.NS")
    assert info.value.source == "yahoo"


@pytest.mark.asyncio
async def test_rate_limit_falls_back_to_last_good_price(client, monkeypatch):
    monkeypatch.setattr(client, "_download_history", lambda symbol: _history(500.0))
    assert await client.get_price("INFY.NS") == 500.0

    client.invalidate_cache()

    def limited(symbol):
        raise Exception("Too Many Requests. Rate limited. Try after a while.")

    monkeypatch.setattr(client, "_download_history", limited)

    assert await client.get_price("INFY.NS") == 500.0
    with pytest.raises(RateLimitedError):
        await client.get_price("WIPRO.NS")


@pytest.mark.asyncio
async def test_batch_prices_from_single_download(client, monkeypatch):
    downloads = []

    def fake_batch(symbols):
        downloads.append(list(symbols))
        return pd.concat(
            {
                "A.NS": _history(10.0, 11.0),
                "B.NS": _history(20.0, float("nan")),
                "C.NS": _history(float("nan"), float("nan")),
            },
            axis=1,
        )

    monkeypatch.setattr(client, "_download_batch", fake_batch)

    prices = await client.get_batch_prices(["A.NS", "B.NS", "C.NS", "A.NS", ""])

    assert prices == {"A.NS": 11.0, "B.NS": 20.0}
    assert downloads == [["A.NS", "B.NS", "C.NS"]]

    # cached entries skip the provider entirely
    again = await client.get_batch_prices(["A.NS", "B.NS"])
    assert again == prices
    assert len(downloads) == 1


@pytest.mark.asyncio
async def test_batch_failure_falls_back_to_individual_requests(client, monkeypatch):
    async def broken_batch(symbols):
        raise ExternalServiceError("batch failed", source="yahoo")

    async def fake_quote(symbol):
        if symbol == "BAD.NS":
            raise InvalidSymbolError(f"Symbol not found: {symbol}", symbol=symbol)
        return 42.0

    monkeypatch.setattr(client, "_fetch_batch_quotes", broken_batch)
    monkeypatch.setattr(client, "_fetch_quote", fake_quote)

    prices = await client.get_batch_prices(["GOOD.NS", "BAD.NS"])

    assert prices == {"GOOD.NS": 42.0}


@pytest.mark.asyncio
async def test_empty_batch_returns_empty(client):
    assert await client.get_batch_prices([]) == {}
