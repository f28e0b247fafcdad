# services/market/providers/yahoo.py
"""
Yahoo Finance quote adapter for US and Thai equities.

Yahoo serves two shapes we care about:
  v7 /finance/quote  -> quoteResponse.result[0] with regularMarket* fields
  v8 /finance/chart  -> chart.result[0].meta (+ indicators.quote[0].volume)
The v8 shape is normalised into the v7 field names before parsing.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from schemas.market import AssetType, Quote
from services.market.classifier import currency_for, exchange_for, to_yahoo_symbol
from services.market.providers.base import CachedQuoteProvider, ProviderError
from utils.common_helpers import safe_float, safe_json

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


def yahoo_endpoints(yahoo_symbol: str) -> List[str]:
    return [
        f"https://query1.finance.yahoo.com/v7/finance/quote?symbols={yahoo_symbol}",
        f"https://query2.finance.yahoo.com/v7/finance/quote?symbols={yahoo_symbol}",
        f"https://query1.finance.yahoo.com/v8/finance/chart/{yahoo_symbol}?interval=1d&range=1d",
    ]


def _from_quote_response(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    result = ((data.get("quoteResponse") or {}).get("result")) or []
    if result and isinstance(result[0], dict):
        return result[0]
    return None


def _from_chart_response(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    result = ((data.get("chart") or {}).get("result")) or []
    if not result or not isinstance(result[0], dict):
        return None
    chart = result[0]
    meta = chart.get("meta") or {}
    quotes = (chart.get("indicators") or {}).get("quote") or [{}]
    if not meta:
        return None

    price = safe_float(meta.get("regularMarketPrice"))
    prev = safe_float(meta.get("previousClose") or meta.get("chartPreviousClose"))
    volumes = [v for v in (quotes[0].get("volume") or []) if v is not None]

    change = change_pct = None
    if price is not None and prev:
        change = price - prev
        change_pct = change / prev * 100.0

    return {
        "symbol": meta.get("symbol"),
        "regularMarketPrice": price,
        "regularMarketPreviousClose": prev,
        "regularMarketChange": change,
        "regularMarketChangePercent": change_pct,
        "regularMarketVolume": volumes[-1] if volumes else 0,
        "currency": meta.get("currency"),
        "exchange": meta.get("exchangeName"),
    }


def parse_yahoo_payload(url: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    if "/v8/finance/chart" in url:
        return _from_chart_response(data)
    return _from_quote_response(data)


class YahooFinanceProvider(CachedQuoteProvider):
    source = "YAHOO"
    label = "Yahoo Finance"
    charge_per_request = True

    def cache_key(self, symbol: str, asset_type: AssetType) -> str:
        return f"{self.source}:{to_yahoo_symbol(symbol, asset_type)}"

    async def _first_result(self, yahoo_symbol: str) -> Dict[str, Any]:
        for url in yahoo_endpoints(yahoo_symbol):
            self.acquire()
            await self.pause()
            try:
                r = await self.client.get(url, headers=BROWSER_HEADERS)
            except httpx.HTTPError as e:
                logger.debug("yahoo endpoint %s failed: %s", url, e)
                continue

            if r.status_code == 429:
                raise ProviderError("Yahoo Finance rate limited (429)")
            if r.status_code != 200:
                logger.debug("yahoo endpoint %s returned %s", url, r.status_code)
                continue

            data = safe_json(r)
            if data is None:
                continue
            row = parse_yahoo_payload(url, data)
            if row is not None:
                return row

        raise ProviderError(f"all Yahoo endpoints failed for {yahoo_symbol}")

    async def fetch_live(self, symbol: str, asset_type: AssetType) -> Optional[Quote]:
        yahoo_symbol = to_yahoo_symbol(symbol, asset_type)
        row = await self._first_result(yahoo_symbol)

        price = (
            safe_float(row.get("regularMarketPrice"))
            or safe_float(row.get("preMarketPrice"))
            or safe_float(row.get("postMarketPrice"))
        )
        if not price or price <= 0:
            raise ProviderError(f"invalid Yahoo price for {yahoo_symbol}: {price}")

        prev = safe_float(row.get("regularMarketPreviousClose"))
        change = safe_float(row.get("regularMarketChange"))
        if change is None:
            change = price - prev if prev else 0.0
        change_pct = safe_float(row.get("regularMarketChangePercent"))
        if change_pct is None:
            change_pct = change / prev * 100.0 if prev else 0.0

        if asset_type == AssetType.THAI_STOCK:
            currency = currency_for(asset_type)
            exchange = exchange_for(asset_type)
        else:
            currency = (row.get("currency") or "USD").upper()
            exchange = row.get("fullExchangeName") or row.get("exchange") or exchange_for(asset_type)

        return Quote(
            # Report the caller's symbol, not Yahoo's (PR9, not PR9-R.BK)
            symbol=symbol,
            price=round(price, 2),
            change=round(change, 2),
            change_percent=round(change_pct, 2),
            volume=safe_float(row.get("regularMarketVolume"))
            or safe_float(row.get("averageDailyVolume10Day"))
            or 0.0,
            market_cap=safe_float(row.get("marketCap")),
            currency=currency,
            exchange=exchange,
            asset_type=asset_type,
            source=self.label,
        )
