import asyncio

import httpx
import pytest

from backoffice.app.config import Settings
from backoffice.app.services.currency import CurrencyConverter, RateCache, apply_markup
from backoffice.app.services.mock_client import offline_rate_transport


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def make_settings(**overrides) -> Settings:
    values = {"EXCHANGE_RATE_API_BASE": "https://rates.test/v4/latest", "RATE_CACHE_TTL_SECONDS": 300}
    values.update(overrides)
    return Settings(**values)


def rate_transport(rates, calls):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        base = request.url.path.rsplit("/", 1)[-1]
        return httpx.Response(200, json={"base": base, "rates": rates})

    return httpx.MockTransport(handler)


def failing_transport(calls):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        raise httpx.ConnectError("rate service down", request=request)

    return httpx.MockTransport(handler)


def run(coro):
    return asyncio.run(coro)


@pytest.mark.parametrize("amount", [0, 1, 99.99, 123456.78, -5])
@pytest.mark.parametrize("currency", ["GBP", "EUR", "usd", "XYZ"])
def test_same_currency_is_identity(amount, currency):
    calls = []
    converter = CurrencyConverter(make_settings(), transport=rate_transport({}, calls))
    assert run(converter.convert(amount, currency, currency.lower())) == amount
    assert calls == []


def test_live_rate_is_used_and_cached():
    calls = []
    clock = FakeClock()
    converter = CurrencyConverter(
        make_settings(), transport=rate_transport({"GBP": 0.8}, calls), clock=clock
    )

    async def scenario():
        first = await converter.convert(100, "EUR", "GBP")
        second = await converter.convert(50, "EUR", "GBP")
        await converter.close()
        return first, second

    assert run(scenario()) == (80.0, 40.0)
    assert calls == ["https://rates.test/v4/latest/EUR"]


def test_cached_rate_expires_after_ttl():
    calls = []
    clock = FakeClock()
    converter = CurrencyConverter(
        make_settings(), transport=rate_transport({"GBP": 0.8}, calls), clock=clock
    )

    async def scenario():
        await converter.convert(100, "EUR", "GBP")
        clock.now += 299
        await converter.convert(100, "EUR", "GBP")
        clock.now += 1
        await converter.convert(100, "EUR", "GBP")

    run(scenario())
    assert len(calls) == 2


def test_rate_cache_expiry_boundary():
    clock = FakeClock()
    cache = RateCache(ttl_seconds=300, clock=clock)
    cache.set("EUR", "GBP", 0.85)
    assert RateCache.key("EUR", "GBP") == "EUR_GBP"
    clock.now += 299
    assert cache.get("EUR", "GBP") == 0.85
    clock.now += 1
    assert cache.get("EUR", "GBP") is None
    assert len(cache) == 0


def test_fallback_table_on_failure():
    calls = []
    converter = CurrencyConverter(make_settings(), transport=failing_transport(calls))
    assert run(converter.convert(100, "EUR", "GBP")) == 85.0
    assert run(converter.convert(100, "usd", "eur")) == 93.0
    assert len(calls) == 2


def test_missing_rate_in_response_uses_fallback():
    converter = CurrencyConverter(make_settings(), transport=rate_transport({"USD": 1.1}, []))
    assert run(converter.convert(10, "GBP", "EUR")) == 11.8


def test_unknown_pair_is_returned_unchanged():
    converter = CurrencyConverter(make_settings(), transport=failing_transport([]))
    assert run(converter.convert(250, "JPY", "GBP")) == 250


def test_offline_transport_serves_fallback_rates():
    converter = CurrencyConverter(make_settings(), transport=offline_rate_transport())
    assert run(converter.convert(200, "GBP", "USD")) == 254.0
    assert run(converter.convert(200, "CHF", "GBP")) == 200


@pytest.mark.parametrize("price", [0, 1, 99.5, 1250])
def test_markup_is_monotonic(price):
    markups = [0, 0.5, 5, 10, 12.5, 20, 100]
    results = [apply_markup(price, markup) for markup in markups]
    assert results == sorted(results)


def test_markup_rounds_to_pennies():
    assert apply_markup(100, 15) == 115.0
    assert apply_markup(153, 20) == 183.6
    assert apply_markup(10.005, 0) == round(10.005, 2)
