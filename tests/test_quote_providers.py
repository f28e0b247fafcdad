import asyncio
import unittest

import httpx

from config.settings import ProviderLimit, Settings
from schemas.market import AssetType, Quote
from services.cache.cache_backend import QuoteCache
from services.cache.rate_limiter import RateLimiter
from services.market.providers.alpha_vantage import AlphaVantageProvider
from services.market.providers.base import NamedProvider, ProviderChain, ProviderError
from services.market.providers.coingecko import CoinGeckoProvider
from services.market.providers.yahoo import YahooFinanceProvider


def _settings(**overrides) -> Settings:
    base = dict(quote_request_delay_sec=0, provider_call_delay_sec=0, simulate_fallback_jitter=False)
    base.update(overrides)
    return Settings(**base)


def _provider(cls, handler, settings=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return cls(client, settings or _settings(), RateLimiter(), QuoteCache(600)), client


def _quote(symbol: str, source: str) -> Quote:
    return Quote(symbol=symbol, price=1.0, asset_type=AssetType.STOCK, source=source)


class ProviderChainTests(unittest.TestCase):
    def test_advances_on_provider_error_and_none(self):
        calls = []

        async def failing(symbol):
            calls.append("failing")
            raise ProviderError("boom")

        async def empty(symbol):
            calls.append("empty")
            return None

        async def good(symbol):
            calls.append("good")
            return _quote(symbol, "good")

        chain = ProviderChain("t", [NamedProvider("a", failing), NamedProvider("b", empty), NamedProvider("c", good)])
        quote = asyncio.run(chain.run("AAPL"))
        self.assertEqual(quote.source, "good")
        self.assertEqual(calls, ["failing", "empty", "good"])

    def test_fallback_only_after_all_providers_fail(self):
        async def failing(symbol):
            raise ProviderError("down")

        chain = ProviderChain("t", [NamedProvider("a", failing)], fallback=lambda s: _quote(s, "fallback"))
        self.assertEqual(asyncio.run(chain.run("AAPL")).source, "fallback")

    def test_no_fallback_returns_none(self):
        async def failing(symbol):
            raise ProviderError("down")

        chain = ProviderChain("t", [NamedProvider("a", failing)])
        self.assertIsNone(asyncio.run(chain.run("AAPL")))

    def test_unexpected_errors_propagate(self):
        async def broken(symbol):
            raise RuntimeError("bug")

        chain = ProviderChain("t", [NamedProvider("a", broken)])
        with self.assertRaises(RuntimeError):
            asyncio.run(chain.run("AAPL"))


class CoinGeckoProviderTests(unittest.TestCase):
    def test_parses_simple_price(self):
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(request.url.params["ids"], "bitcoin")
            return httpx.Response(
                200,
                json={"bitcoin": {"usd": 50000.0, "usd_24h_change": 2.0, "usd_24h_vol": 123.0}},
            )

        async def _run():
            provider, client = _provider(CoinGeckoProvider, handler)
            async with client:
                return await provider.fetch("BTC", AssetType.CRYPTO)

        quote = asyncio.run(_run())
        self.assertEqual(quote.price, 50000.0)
        self.assertAlmostEqual(quote.change, 1000.0)
        self.assertEqual(quote.source, "CoinGecko")
        self.assertFalse(quote.is_simulated)

    def test_second_fetch_served_from_cache(self):
        hits = []

        def handler(request: httpx.Request) -> httpx.Response:
            hits.append(request.url)
            return httpx.Response(200, json={"ethereum": {"usd": 2500.0}})

        async def _run():
            provider, client = _provider(CoinGeckoProvider, handler)
            async with client:
                await provider.fetch("ETH", AssetType.CRYPTO)
                return await provider.fetch("ETH", AssetType.CRYPTO)

        quote = asyncio.run(_run())
        self.assertEqual(len(hits), 1)
        self.assertEqual(quote.price, 2500.0)

    def test_non_json_and_429_are_provider_errors(self):
        for response in (httpx.Response(200, text="<html>"), httpx.Response(429)):
            async def _run():
                provider, client = _provider(CoinGeckoProvider, lambda r: response)
                async with client:
                    await provider.fetch("BTC", AssetType.CRYPTO)

            with self.assertRaises(ProviderError):
                asyncio.run(_run())

    def test_exhausted_budget_is_provider_error(self):
        settings = _settings(provider_limits={"COINGECKO": ProviderLimit(0, 60)})

        async def _run():
            provider, client = _provider(
                CoinGeckoProvider,
                lambda r: httpx.Response(200, json={"bitcoin": {"usd": 1.0}}),
                settings,
            )
            async with client:
                await provider.fetch("BTC", AssetType.CRYPTO)

        with self.assertRaises(ProviderError):
            asyncio.run(_run())


class YahooProviderTests(unittest.TestCase):
    def test_v7_quote_shape(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "quoteResponse": {
                        "result": [
                            {
                                "symbol": "AAPL",
                                "regularMarketPrice": 190.123,
                                "regularMarketChange": 1.5,
                                "regularMarketChangePercent": 0.8,
                                "regularMarketVolume": 1000,
                                "currency": "USD",
                                "fullExchangeName": "NasdaqGS",
                            }
                        ]
                    }
                },
            )

        async def _run():
            provider, client = _provider(YahooFinanceProvider, handler)
            async with client:
                return await provider.fetch("AAPL", AssetType.STOCK)

        quote = asyncio.run(_run())
        self.assertEqual(quote.price, 190.12)
        self.assertEqual(quote.exchange, "NasdaqGS")
        self.assertEqual(quote.source, "Yahoo Finance")

    def test_falls_through_to_v8_chart_shape(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            if "/v7/" in request.url.path:
                return httpx.Response(401, json={"finance": {"error": "Unauthorized"}})
            return httpx.Response(
                200,
                json={
                    "chart": {
                        "result": [
                            {
                                "meta": {
                                    "symbol": "PR9-R.BK",
                                    "regularMarketPrice": 22.0,
                                    "chartPreviousClose": 20.0,
                                    "currency": "THB",
                                },
                                "indicators": {"quote": [{"volume": [100, None, 300]}]},
                            }
                        ]
                    }
                },
            )

        async def _run():
            provider, client = _provider(YahooFinanceProvider, handler)
            async with client:
                return await provider.fetch("PR9", AssetType.THAI_STOCK)

        quote = asyncio.run(_run())
        self.assertEqual(len(seen), 3)
        self.assertTrue(seen[-1].endswith("/v8/finance/chart/PR9-R.BK"))
        self.assertEqual(quote.symbol, "PR9")
        self.assertEqual(quote.price, 22.0)
        self.assertEqual(quote.change, 2.0)
        self.assertEqual(quote.change_percent, 10.0)
        self.assertEqual(quote.volume, 300)
        self.assertEqual(quote.currency, "THB")
        self.assertEqual(quote.exchange, "SET")

    def test_all_endpoints_failing_is_provider_error(self):
        async def _run():
            provider, client = _provider(YahooFinanceProvider, lambda r: httpx.Response(500))
            async with client:
                await provider.fetch("AAPL", AssetType.STOCK)

        with self.assertRaises(ProviderError):
            asyncio.run(_run())

    def test_each_endpoint_attempt_is_charged(self):
        settings = _settings(provider_limits={"YAHOO": ProviderLimit(2, 60)})
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(500)

        async def _run():
            limiter = RateLimiter()
            client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
            provider = YahooFinanceProvider(client, settings, limiter, QuoteCache(600))
            async with client:
                with self.assertRaisesRegex(ProviderError, "budget exhausted"):
                    await provider.fetch("AAPL", AssetType.STOCK)
            return limiter.remaining("YAHOO", 2, 60)

        self.assertEqual(asyncio.run(_run()), 0)
        self.assertEqual(len(seen), 2)


class AlphaVantageProviderTests(unittest.TestCase):
    def test_skipped_without_key(self):
        def handler(request):
            raise AssertionError("no request expected")

        async def _run():
            provider, client = _provider(AlphaVantageProvider, handler)
            async with client:
                return await provider.fetch("AAPL", AssetType.STOCK)

        self.assertIsNone(asyncio.run(_run()))

    def test_parses_global_quote(self):
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(request.url.params["function"], "GLOBAL_QUOTE")
            return httpx.Response(
                200,
                json={
                    "Global Quote": {
                        "01. symbol": "MSFT",
                        "05. price": "380.50",
                        "06. volume": "2000",
                        "07. latest trading day": "2025-01-14",
                        "09. change": "-1.25",
                        "10. change percent": "-0.33%",
                    }
                },
            )

        async def _run():
            provider, client = _provider(AlphaVantageProvider, handler, _settings(alpha_vantage_api_key="k"))
            async with client:
                return await provider.fetch("MSFT", AssetType.STOCK)

        quote = asyncio.run(_run())
        self.assertEqual(quote.price, 380.5)
        self.assertEqual(quote.change, -1.25)
        self.assertEqual(quote.change_percent, -0.33)
        self.assertEqual(quote.timestamp.date().isoformat(), "2025-01-14")

    def test_throttle_note_is_provider_error(self):
        async def _run():
            provider, client = _provider(
                AlphaVantageProvider,
                lambda r: httpx.Response(200, json={"Note": "Thank you for using Alpha Vantage!"}),
                _settings(alpha_vantage_api_key="k"),
            )
            async with client:
                await provider.fetch("MSFT", AssetType.STOCK)

        with self.assertRaises(ProviderError):
            asyncio.run(_run())


if __name__ == "__main__":
    unittest.main()
