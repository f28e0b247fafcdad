# services/fx/exchange_rate_service.py
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import httpx

from config.settings import Settings
from schemas.market import ExchangeRate, normalize_currency_code, utc_now
from services.cache.cache_backend import QuoteCache
from services.cache.rate_limiter import RateLimiter
from services.fx.currency_converter import PIVOT_CURRENCY, RateSnapshot
from services.fx.rate_providers import (
    BankOfThailandProvider,
    ExchangeRateApiProvider,
    FixerProvider,
)
from services.market.providers.base import NamedProvider, ProviderChain, Sleep

logger = logging.getLogger(__name__)

SAME_CURRENCY_SOURCE = "Same Currency"
CACHE_SOURCE = "Cache"

FALLBACK_RATES_DATE = "2025-01-14"
FALLBACK_SOURCE = f"Fallback ({FALLBACK_RATES_DATE})"
FALLBACK_RATES: Dict[Tuple[str, str], float] = {
    ("USD", "THB"): 35.5,
    ("THB", "USD"): 1 / 35.5,
    ("EUR", "USD"): 1.08,
    ("GBP", "USD"): 1.25,
    ("JPY", "USD"): 0.0067,
}

COMMON_PAIRS: List[Tuple[str, str]] = [
    ("USD", "THB"),
    ("THB", "USD"),
    ("EUR", "USD"),
    ("GBP", "USD"),
    ("JPY", "USD"),
]

RATE_SOURCES: Dict[str, Dict[str, Any]] = {
    "ExchangeRate-API": {
        "name": "ExchangeRate-API.com",
        "description": "Free real-time exchange rates",
        "updateFrequency": "Every hour",
        "reliability": "High",
        "free": True,
    },
    "Bank of Thailand": {
        "name": "Bank of Thailand API",
        "description": "Official THB exchange rates",
        "updateFrequency": "Daily",
        "reliability": "High",
        "free": True,
    },
    "Fixer.io": {
        "name": "Fixer.io",
        "description": "Professional exchange rate API",
        "updateFrequency": "Every minute",
        "reliability": "High",
        "free": False,
    },
    "Fallback": {
        "name": "Fallback Rates",
        "description": f"Static rates as of {FALLBACK_RATES_DATE}, used when every API fails",
        "updateFrequency": "Manual updates",
        "reliability": "Low",
        "free": True,
    },
}


class ExchangeRateError(Exception):
    """Domain-level error for exchange-rate lookups (bad input, not provider failure)."""


def fallback_rate(from_ccy: str, to_ccy: str) -> Optional[float]:
    """Static rate for a pair, or the inverse of the reverse entry. None if unknown."""
    direct = FALLBACK_RATES.get((from_ccy, to_ccy))
    if direct:
        return direct
    reverse = FALLBACK_RATES.get((to_ccy, from_ccy))
    if reverse:
        return 1.0 / reverse
    return None


def _cache_key(from_ccy: str, to_ccy: str) -> str:
    return f"FX:{from_ccy}_{to_ccy}"


class ExchangeRateService:
    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        *,
        cache: Optional[QuoteCache] = None,
        limiter: Optional[RateLimiter] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.cache = cache or QuoteCache(settings.fx_cache_ttl_sec, clock=clock)
        self.limiter = limiter or RateLimiter(clock=clock)
        self._clock = clock

        deps = dict(client=client, settings=settings, limiter=self.limiter, sleep=sleep)
        providers = [ExchangeRateApiProvider(**deps), BankOfThailandProvider(**deps), FixerProvider(**deps)]
        self.chain: ProviderChain[ExchangeRate] = ProviderChain(
            "fx",
            [NamedProvider(p.label, p.fetch) for p in providers],
        )
        # Pairs whose current rate is the unknown-pair default of 1, not a real rate,
        # mapped to when that cached default lapses.
        self._placeholders: Dict[Tuple[str, str], float] = {}

    # ─── Cache ─────────────────────────────────────────────────────

    def _cached(self, from_ccy: str, to_ccy: str) -> Optional[ExchangeRate]:
        hit = self.cache.get(_cache_key(from_ccy, to_ccy))
        if not isinstance(hit, dict) or not hit.get("rate"):
            return None
        fetched_at = hit.get("fetchedAt")
        return ExchangeRate(
            from_currency=from_ccy,
            to_currency=to_ccy,
            rate=float(hit["rate"]),
            source=CACHE_SOURCE,
            timestamp=datetime.fromisoformat(fetched_at) if fetched_at else utc_now(),
            cached=True,
        )

    def _store(self, from_ccy: str, to_ccy: str, rate: float, ttl_seconds: Optional[float] = None) -> None:
        """Writes the rate and its reciprocal together."""
        fetched_at = utc_now().isoformat()
        self.cache.set_many(
            {
                _cache_key(from_ccy, to_ccy): {"rate": rate, "fetchedAt": fetched_at},
                _cache_key(to_ccy, from_ccy): {"rate": 1.0 / rate, "fetchedAt": fetched_at},
            },
            ttl_seconds=ttl_seconds,
        )

    # ─── Lookups ───────────────────────────────────────────────────

    async def get_rate(self, from_ccy: str, to_ccy: str) -> ExchangeRate:
        try:
            src = normalize_currency_code(from_ccy)
            dst = normalize_currency_code(to_ccy)
        except ValueError as e:
            raise ExchangeRateError(str(e)) from e

        if src == dst:
            return ExchangeRate(from_currency=src, to_currency=dst, rate=1.0, source=SAME_CURRENCY_SOURCE)

        cached = self._cached(src, dst)
        if cached is not None:
            logger.debug("using cached rate %s/%s = %s", src, dst, cached.rate)
            return cached

        live = await self.chain.run(src, dst)
        if live is not None:
            self._store(src, dst, live.rate)
            self._placeholders.pop((src, dst), None)
            self._placeholders.pop((dst, src), None)
            logger.info("got %s/%s = %s from %s", src, dst, live.rate, live.source)
            return live

        logger.warning("all exchange rate APIs failed for %s/%s, using fallback", src, dst)
        rate = fallback_rate(src, dst)
        if rate is None:
            rate = 1.0
            self._mark_placeholder(src, dst)
        self._store(src, dst, rate, ttl_seconds=self.settings.fx_fallback_ttl_sec)
        return ExchangeRate(from_currency=src, to_currency=dst, rate=rate, source=FALLBACK_SOURCE)

    async def get_many_rates(self, pairs: Iterable[Tuple[str, str]]) -> List[ExchangeRate]:
        pairs = list(pairs)
        results = await asyncio.gather(*(self.get_rate(f, t) for f, t in pairs))
        logger.info("fetched %d exchange rates", len(results))
        return list(results)

    async def preload_common_rates(self) -> List[ExchangeRate]:
        try:
            rates = await self.get_many_rates(COMMON_PAIRS)
        except (ExchangeRateError, httpx.HTTPError) as e:
            logger.error("preloading exchange rates failed: %s", e)
            return []
        logger.info("preloaded %d common exchange rates", len(rates))
        return rates

    def _mark_placeholder(self, src: str, dst: str) -> None:
        now = self._clock()
        for pair, until in list(self._placeholders.items()):
            if until < now:
                del self._placeholders[pair]
        until = now + self.settings.fx_fallback_ttl_sec
        self._placeholders[(src, dst)] = until
        self._placeholders[(dst, src)] = until

    def is_placeholder(self, rate: ExchangeRate) -> bool:
        pair = (rate.from_currency, rate.to_currency)
        until = self._placeholders.get(pair)
        if until is None:
            return False
        if until < self._clock():
            del self._placeholders[pair]
            return False
        return True

    async def snapshot(self, currencies: Iterable[str], target: str) -> RateSnapshot:
        """
        Resolve every rate needed to convert *currencies* into *target*.
        When a pair only has the unknown-pair default, the USD legs are
        fetched too so the converter can cross through USD.
        """
        dst = normalize_currency_code(target)
        codes = set()
        for c in currencies:
            try:
                codes.add(normalize_currency_code(c))
            except ValueError:
                # Amounts in this currency stay unconverted.
                logger.warning("skipping unrecognised currency %r in rate snapshot", c)
        sources = sorted(codes - {dst})

        snap = RateSnapshot()
        direct = await self.get_many_rates((c, dst) for c in sources)

        needs_cross: List[str] = []
        for r in direct:
            if self.is_placeholder(r):
                needs_cross.append(r.from_currency)
            else:
                snap.add(r.from_currency, r.to_currency, r.rate)

        if needs_cross and dst != PIVOT_CURRENCY:
            legs = {(c, PIVOT_CURRENCY) for c in needs_cross if c != PIVOT_CURRENCY}
            legs.add((PIVOT_CURRENCY, dst))
            for r in await self.get_many_rates(sorted(legs)):
                if not self.is_placeholder(r):
                    snap.add(r.from_currency, r.to_currency, r.rate)

        return snap

    def get_source_info(self) -> Dict[str, Any]:
        return {
            "sources": RATE_SOURCES,
            "fallbackRates": {f"{f}/{t}": r for (f, t), r in FALLBACK_RATES.items()},
            "fallbackDate": FALLBACK_RATES_DATE,
            "botEnabled": bool(self.settings.bot_client_id),
            "fixerEnabled": bool(self.settings.fixer_api_key),
            "cache": self.cache.stats(),
        }
