# services/market/providers/coingecko.py
from __future__ import annotations

from typing import Dict, Optional

from schemas.market import AssetType, Quote
from services.market.classifier import exchange_for
from services.market.providers.base import CachedQuoteProvider, ProviderError
from utils.common_helpers import safe_float

COINGECKO_URL = "https://api.coingecko.com/api/v3"

COINGECKO_IDS: Dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "ADA": "cardano",
    "DOT": "polkadot",
    "MATIC": "matic-network",
    "AVAX": "avalanche-2",
    "LINK": "chainlink",
    "UNI": "uniswap",
    "AAVE": "aave",
    "XRP": "ripple",
    "DOGE": "dogecoin",
    "LTC": "litecoin",
    "BNB": "binancecoin",
    "USDT": "tether",
    "USDC": "usd-coin",
    "BUSD": "binance-usd",
    "AXS": "axie-infinity",
    "SAND": "the-sandbox",
    "MANA": "decentraland",
}


class CoinGeckoProvider(CachedQuoteProvider):
    source = "COINGECKO"
    label = "CoinGecko"

    async def fetch_live(self, symbol: str, asset_type: AssetType) -> Optional[Quote]:
        coin_id = COINGECKO_IDS.get(symbol)
        if not coin_id:
            raise ProviderError(f"no CoinGecko id for {symbol}")

        headers = {"Cache-Control": "no-cache"}
        if self.settings.coingecko_api_key:
            headers["x-cg-demo-api-key"] = self.settings.coingecko_api_key

        await self.pause()
        data = await self.get_json(
            f"{COINGECKO_URL}/simple/price",
            params={
                "ids": coin_id,
                "vs_currencies": "usd",
                "include_24hr_change": "true",
                "include_24hr_vol": "true",
                "include_market_cap": "true",
                "include_last_updated_at": "true",
            },
            headers=headers,
        )

        coin = data.get(coin_id)
        if not isinstance(coin, dict):
            raise ProviderError(f"CoinGecko response missing {coin_id}")

        price = safe_float(coin.get("usd"))
        if price is None or price <= 0:
            raise ProviderError(f"CoinGecko has no USD price for {symbol}")

        change_pct = safe_float(coin.get("usd_24h_change")) or 0.0
        return Quote(
            symbol=symbol,
            price=price,
            change=price * change_pct / 100.0,
            change_percent=change_pct,
            volume=safe_float(coin.get("usd_24h_vol")) or 0.0,
            market_cap=safe_float(coin.get("usd_market_cap")),
            currency="USD",
            exchange=exchange_for(AssetType.CRYPTO),
            asset_type=AssetType.CRYPTO,
            source=self.label,
        )
