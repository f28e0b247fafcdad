import asyncio
import unittest

import httpx

from config.settings import Settings
from schemas.holding import Holding
from services.fx.exchange_rate_service import (
    FALLBACK_SOURCE,
    ExchangeRateError,
    ExchangeRateService,
    fallback_rate,
)
from services.portfolio.portfolio_service import PortfolioService


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class NoQuotes:
    async def fetch_many(self, symbols):
        return []


def _erapi_ok(rates):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        if request.url.host == "api.exchangerate-api.com":
            base = request.url.path.rsplit("/", 1)[-1]
            return httpx.Response(200, json={"base": base, "rates": rates.get(base, {})})
        return httpx.Response(503)

    return handler, calls


def _down(request: httpx.Request) -> httpx.Response:
    return httpx.Response(503)


def _run(handler, fn, clock=None, **settings_overrides):
    async def _inner():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            kwargs = {"clock": clock} if clock else {}
            svc = ExchangeRateService(client, Settings(**settings_overrides), **kwargs)
            return await fn(svc)

    return asyncio.run(_inner())


class ExchangeRateServiceTests(unittest.TestCase):
    def test_same_currency(self):
        rate = _run(_down, lambda svc: svc.get_rate("usd", "USD"))
        self.assertEqual(rate.rate, 1.0)
        self.assertEqual(rate.source, "Same Currency")

    def test_live_rate_caches_reciprocal(self):
        handler, calls = _erapi_ok({"USD": {"THB": 36.0}})

        async def fn(svc):
            live = await svc.get_rate("USD", "THB")
            inverse = await svc.get_rate("THB", "USD")
            return live, inverse

        live, inverse = _run(handler, fn)
        self.assertEqual(live.source, "ExchangeRate-API")
        self.assertFalse(live.cached)
        self.assertTrue(inverse.cached)
        self.assertEqual(inverse.source, "Cache")
        self.assertAlmostEqual(inverse.rate, 1 / 36.0)
        self.assertEqual(len(calls), 1)

    def test_fallback_when_all_providers_fail(self):
        rate = _run(_down, lambda svc: svc.get_rate("USD", "THB"))
        self.assertEqual(rate.rate, 35.5)
        self.assertEqual(rate.source, FALLBACK_SOURCE)

    def test_fallback_is_cached_with_short_ttl(self):
        clock = FakeClock()

        async def fn(svc):
            await svc.get_rate("EUR", "USD")
            cached = await svc.get_rate("EUR", "USD")
            clock.now += 301
            after_ttl = await svc.get_rate("EUR", "USD")
            return cached, after_ttl

        cached, after_ttl = _run(_down, fn, clock=clock)
        self.assertTrue(cached.cached)
        self.assertEqual(cached.rate, 1.08)
        self.assertFalse(after_ttl.cached)
        self.assertEqual(after_ttl.source, FALLBACK_SOURCE)

    def test_fallback_table_inverse_and_unknown(self):
        self.assertAlmostEqual(fallback_rate("USD", "EUR"), 1 / 1.08)
        self.assertIsNone(fallback_rate("CHF", "SEK"))
        rate = _run(_down, lambda svc: svc.get_rate("CHF", "SEK"))
        self.assertEqual(rate.rate, 1.0)

    def test_unknown_pair_placeholders_lapse_with_their_cache_entry(self):
        clock = FakeClock()

        async def fn(svc):
            first = await svc.get_rate("CHF", "SEK")
            marked = svc.is_placeholder(first)
            clock.now += 301
            await svc.get_rate("NOK", "DKK")
            return first, marked, svc.is_placeholder(first), sorted(svc._placeholders)

        first, marked, still_marked, pairs = _run(_down, fn, clock=clock)
        self.assertEqual(first.rate, 1.0)
        self.assertTrue(marked)
        self.assertFalse(still_marked)
        self.assertEqual(pairs, [("DKK", "NOK"), ("NOK", "DKK")])

    def test_bank_of_thailand_used_when_configured(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "apigw1.bot.or.th":
                self.assertEqual(request.headers["X-IBM-Client-Id"], "bot-id")
                return httpx.Response(
                    200, json={"result": {"data": [{"currency_id": "USD", "mid_rate": "34.25"}]}}
                )
            return httpx.Response(503)

        rate = _run(handler, lambda svc: svc.get_rate("THB", "USD"), bot_client_id="bot-id")
        self.assertEqual(rate.source, "Bank of Thailand")
        self.assertAlmostEqual(rate.rate, 1 / 34.25)

    def test_bank_of_thailand_skipped_without_client_id(self):
        hosts = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            return httpx.Response(503)

        _run(handler, lambda svc: svc.get_rate("USD", "THB"))
        self.assertNotIn("apigw1.bot.or.th", hosts)
        self.assertNotIn("api.fixer.io", hosts)

    def test_fixer_requires_success_flag(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "api.fixer.io":
                return httpx.Response(200, json={"success": True, "rates": {"JPY": 150.0}})
            return httpx.Response(503)

        rate = _run(handler, lambda svc: svc.get_rate("USD", "JPY"), fixer_api_key="k")
        self.assertEqual(rate.source, "Fixer.io")
        self.assertEqual(rate.rate, 150.0)

    def test_invalid_currency_code(self):
        with self.assertRaises(ExchangeRateError):
            _run(_down, lambda svc: svc.get_rate("US", "THB"))

    def test_get_many_rates_preserves_order(self):
        handler, _ = _erapi_ok({"USD": {"THB": 36.0}, "EUR": {"USD": 1.1}})
        rates = _run(handler, lambda svc: svc.get_many_rates([("EUR", "USD"), ("USD", "THB"), ("THB", "THB")]))
        self.assertEqual([r.rate for r in rates], [1.1, 36.0, 1.0])

    def test_preload_common_rates(self):
        rates = _run(_down, lambda svc: svc.preload_common_rates())
        self.assertEqual(len(rates), 5)

    def test_snapshot_crosses_through_usd_for_unknown_pairs(self):
        handler, _ = _erapi_ok({"USD": {"THB": 36.0}, "EUR": {"USD": 1.1}})
        snap = _run(handler, lambda svc: svc.snapshot(["EUR", "THB", "USD"], "THB"))
        # EUR->THB has no live source here, so the USD legs are loaded instead
        self.assertNotIn(("EUR", "THB"), snap)
        self.assertEqual(snap.get("EUR", "USD"), 1.1)
        self.assertEqual(snap.get("USD", "THB"), 36.0)

    def test_snapshot_skips_unrecognised_currency_codes(self):
        handler, calls = _erapi_ok({"EUR": {"USD": 1.1}})
        snap = _run(handler, lambda svc: svc.snapshot(["Baht", "US$", "EUR"], "USD"))
        self.assertEqual(snap.get("EUR", "USD"), 1.1)
        self.assertEqual(len(snap), 1)
        self.assertTrue(all("/EUR" in url for url in calls))

    def test_valuation_renders_with_unrecognised_holding_currency(self):
        async def fn(svc):
            portfolio = PortfolioService(NoQuotes(), svc)
            holding = Holding(symbol="AAPL", total_shares=1, total_invested=100, currency="Baht")
            return await portfolio.value_holdings([holding], "USD")

        payload = _run(_down, fn)
        self.assertEqual(payload["holdings"][0]["currency"], "BAHT")
        self.assertEqual(payload["summary"]["totalCost"], 100)
        self.assertEqual(payload["summary"]["totalValue"], 0)
        self.assertEqual(payload["priceStatus"], "unavailable")

    def test_source_info(self):
        info = _run(_down, lambda svc: asyncio.sleep(0, result=svc.get_source_info()))
        self.assertEqual(info["fallbackDate"], "2025-01-14")
        self.assertFalse(info["botEnabled"])


if __name__ == "__main__":
    unittest.main()
