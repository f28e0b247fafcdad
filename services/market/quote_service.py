# services/market/quote_service.py
from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx

from config.settings import Settings
from schemas.market import AssetType, Quote, SymbolInfo
from services.cache.cache_backend import QuoteCache
from services.cache.rate_limiter import RateLimiter
from services.market.classifier import classify
from services.market.providers.alpha_vantage import AlphaVantageProvider
from services.market.providers.base import NamedProvider, ProviderChain, Sleep
from services.market.providers.coingecko import CoinGeckoProvider
from services.market.providers.fallback import FallbackQuotes
from services.market.providers.yahoo import YahooFinanceProvider
from services.market.symbol_catalog import MAX_SEARCH_RESULTS, build_catalogs, search_symbols
from services.validation.price_validator import PriceValidator
from utils.common_helpers import norm_symbol

logger = logging.getLogger(__name__)


class QuoteServiceError(Exception):
    """Domain-level error for the quote service."""


DATA_SOURCES: List[Dict[str, Any]] = [
    {
        "name": "CoinGecko",
        "assetTypes": [AssetType.CRYPTO.value],
        "reliability": "high",
        "notes": "Free tier, 30 calls/minute",
    },
    {
        "name": "Yahoo Finance",
        "assetTypes": [AssetType.STOCK.value, AssetType.THAI_STOCK.value],
        "reliability": "medium",
        "notes": "Unofficial endpoints, may be rate limited",
    },
    {
        "name": "Alpha Vantage",
        "assetTypes": [AssetType.STOCK.value],
        "reliability": "high",
        "notes": "Requires ALPHA_VANTAGE_API_KEY, 5 calls/minute",
    },
    {
        "name": "Fallback Data",
        "assetTypes": [AssetType.CRYPTO.value],
        "reliability": "low",
        "notes": "Static reference prices with simulated drift",
    },
    {
        "name": "Mock Data",
        "assetTypes": [AssetType.THAI_GOLD.value],
        "reliability": "low",
        "notes": "Reference price with simulated drift, no live source",
    },
]


class QuoteService:
    """
    Resolves one quote per symbol by walking the provider chain for its asset
    type. Quotes are cached per source; batches run sequentially so free-tier
    budgets aren't burned in a burst.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        *,
        cache: Optional[QuoteCache] = None,
        limiter: Optional[RateLimiter] = None,
        validator: Optional[PriceValidator] = None,
        sleep: Sleep = asyncio.sleep,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.cache = cache or QuoteCache(settings.quote_cache_ttl_sec, clock=clock)
        self.limiter = limiter or RateLimiter(clock=clock)
        self.validator = validator or PriceValidator()
        self._sleep = sleep
        self.fallback = FallbackQuotes(jitter=settings.simulate_fallback_jitter, rng=rng)
        self._catalogs = build_catalogs()

        deps = dict(client=client, settings=settings, limiter=self.limiter, cache=self.cache, sleep=sleep)
        coingecko = CoinGeckoProvider(**deps)
        yahoo = YahooFinanceProvider(**deps)
        alpha = AlphaVantageProvider(**deps)

        equity_fallback = self.fallback.reference if settings.quote_failure_policy == "fallback" else None

        self.chains: Dict[AssetType, ProviderChain[Quote]] = {
            AssetType.CRYPTO: ProviderChain(
                "crypto",
                [NamedProvider(coingecko.label, coingecko.fetch)],
                fallback=self.fallback.crypto,
            ),
            AssetType.STOCK: ProviderChain(
                "us-stock",
                [NamedProvider(yahoo.label, yahoo.fetch), NamedProvider(alpha.label, alpha.fetch)],
                fallback=equity_fallback,
            ),
            AssetType.THAI_STOCK: ProviderChain(
                "thai-stock",
                [NamedProvider(yahoo.label, yahoo.fetch)],
                fallback=equity_fallback,
            ),
            AssetType.THAI_GOLD: ProviderChain("thai-gold", [], fallback=self.fallback.thai_gold),
        }

    async def fetch_quote(self, symbol: str) -> Optional[Quote]:
        sym = norm_symbol(symbol)
        if not sym:
            raise QuoteServiceError("symbol is required")

        asset_type = classify(sym)
        quote = await self.chains[asset_type].run(sym, asset_type)
        if quote is None:
            logger.warning("no quote for %s (%s), omitted", sym, asset_type.value)
            return None

        self.validator.log_validation(quote.symbol, quote.price, quote.asset_type, quote.source)
        return quote

    async def fetch_many(self, symbols: Iterable[str]) -> List[Quote]:
        unique: List[str] = []
        seen: set[str] = set()
        for s in symbols:
            sym = norm_symbol(s)
            if sym and sym not in seen:
                seen.add(sym)
                unique.append(sym)

        quotes: List[Quote] = []
        delay = self.settings.quote_request_delay_sec
        for i, sym in enumerate(unique):
            if i > 0 and delay > 0:
                await self._sleep(delay)
            try:
                quote = await self.fetch_quote(sym)
            except Exception:
                logger.exception("quote fetch failed for %s", sym)
                continue
            if quote is not None:
                quotes.append(quote)

        logger.info(
            "fetched %d/%d quotes",
            len(quotes), len(unique),
            extra={"requested": len(unique), "successful": len(quotes)},
        )
        return quotes

    def search(self, query: str, limit: int = MAX_SEARCH_RESULTS) -> List[SymbolInfo]:
        return search_symbols(query, self._catalogs, limit=limit)

    def get_data_source_info(self) -> Dict[str, Any]:
        return {
            "sources": DATA_SOURCES,
            "failurePolicy": self.settings.quote_failure_policy,
            "alphaVantageEnabled": bool(
                self.settings.alpha_vantage_api_key and self.settings.alpha_vantage_api_key != "demo"
            ),
            "cache": self.cache.stats(),
        }
