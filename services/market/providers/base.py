# services/market/providers/base.py
"""
Ordered provider chains.

A chain is data: a list of named async providers plus an optional terminal
fallback. Providers signal "try the next one" by raising ProviderError or
returning None. Anything a provider can't handle (network error, non-2xx,
non-JSON body, rate limit) must be turned into ProviderError by the adapter.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, Sequence, TypeVar

import httpx

from config.settings import Settings
from schemas.market import AssetType, Quote
from services.cache.cache_backend import QuoteCache
from services.cache.rate_limiter import RateLimiter
from utils.common_helpers import safe_json

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "Investment-Tracker/1.0",
}


class ProviderError(Exception):
    """One provider couldn't produce a result. The chain moves on."""


@dataclass(frozen=True)
class NamedProvider(Generic[T]):
    name: str
    fetch: Callable[..., Awaitable[Optional[T]]]


class ProviderChain(Generic[T]):
    def __init__(
        self,
        name: str,
        providers: Sequence[NamedProvider[T]],
        fallback: Optional[Callable[..., Optional[T]]] = None,
    ):
        self.name = name
        self.providers = list(providers)
        self.fallback = fallback

    async def run(self, *args: Any) -> Optional[T]:
        for p in self.providers:
            try:
                result = await p.fetch(*args)
            except ProviderError as e:
                logger.info("%s: %s failed for %s: %s", self.name, p.name, args[0] if args else "", e)
                continue
            if result is not None:
                return result
            logger.debug("%s: %s skipped for %s", self.name, p.name, args[0] if args else "")

        if self.fallback is None:
            return None

        logger.warning("%s: all providers exhausted for %s, using fallback", self.name, args[0] if args else "")
        return self.fallback(*args)


class HttpProvider:
    """
    Shared plumbing for outbound adapters: budget check, politeness delay,
    defensive JSON parsing.
    """

    source: str = ""   # rate-limiter key, e.g. "YAHOO"
    label: str = ""    # human label stored on results, e.g. "Yahoo Finance"

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        limiter: RateLimiter,
        *,
        sleep: Sleep = asyncio.sleep,
    ):
        self.client = client
        self.settings = settings
        self.limiter = limiter
        self._sleep = sleep

    def acquire(self) -> None:
        lim = self.settings.limit_for(self.source)
        if not self.limiter.can_call(self.source, lim.limit, lim.window_seconds):
            raise ProviderError(f"{self.label} rate budget exhausted")

    async def pause(self) -> None:
        delay = self.settings.provider_call_delay_sec
        if delay > 0:
            await self._sleep(delay)

    async def get_json(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        try:
            r = await self.client.get(url, params=params, headers={**DEFAULT_HEADERS, **(headers or {})})
        except httpx.HTTPError as e:
            raise ProviderError(f"{self.label} request failed: {e}") from e

        if r.status_code == 429:
            raise ProviderError(f"{self.label} rate limited (429)")
        if r.status_code < 200 or r.status_code >= 300:
            raise ProviderError(f"{self.label} returned {r.status_code}")

        data = safe_json(r)
        if data is None:
            raise ProviderError(f"{self.label} returned a non-JSON body")
        return data


class CachedQuoteProvider(HttpProvider):
    """Adds the per-source quote cache in front of the network call."""

    # Adapters that try several endpoints per symbol charge the budget per request instead.
    charge_per_request: bool = False

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        limiter: RateLimiter,
        cache: QuoteCache,
        *,
        sleep: Sleep = asyncio.sleep,
    ):
        super().__init__(client, settings, limiter, sleep=sleep)
        self.cache = cache

    def cache_key(self, symbol: str, asset_type: AssetType) -> str:
        return f"{self.source}:{symbol}"

    async def fetch(self, symbol: str, asset_type: AssetType) -> Optional[Quote]:
        key = self.cache_key(symbol, asset_type)
        hit = self.cache.get(key)
        if hit is not None:
            logger.debug("cache hit %s", key)
            return Quote.model_validate(hit)

        if not self.enabled():
            return None

        if not self.charge_per_request:
            self.acquire()
        quote = await self.fetch_live(symbol, asset_type)
        if quote is not None:
            self.cache.set(key, quote.model_dump(mode="json", by_alias=True))
        return quote

    def enabled(self) -> bool:
        return True

    async def fetch_live(self, symbol: str, asset_type: AssetType) -> Optional[Quote]:
        raise NotImplementedError
