# services/market/providers/alpha_vantage.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from schemas.market import AssetType, Quote, utc_now
from services.market.classifier import exchange_for
from services.market.providers.base import CachedQuoteProvider, ProviderError
from utils.common_helpers import safe_float

ALPHA_VANTAGE_URL = "https://www.alphavantage.co/query"


def _trading_day(raw: Optional[str]) -> datetime:
    try:
        return datetime.strptime(raw or "", "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        return utc_now()


class AlphaVantageProvider(CachedQuoteProvider):
    """US-only backup. Skipped entirely when ALPHA_VANTAGE_API_KEY is unset."""

    source = "ALPHAVANTAGE"
    label = "Alpha Vantage"

    def enabled(self) -> bool:
        key = self.settings.alpha_vantage_api_key
        return bool(key) and key != "demo"

    async def fetch_live(self, symbol: str, asset_type: AssetType) -> Optional[Quote]:
        if asset_type != AssetType.STOCK:
            return None

        await self.pause()
        data = await self.get_json(
            ALPHA_VANTAGE_URL,
            params={
                "function": "GLOBAL_QUOTE",
                "symbol": symbol,
                "apikey": self.settings.alpha_vantage_api_key,
            },
        )

        # Throttled responses come back 200 with a "Note"/"Information" message.
        if "Note" in data or "Information" in data:
            raise ProviderError("Alpha Vantage throttled")

        gq = data.get("Global Quote")
        if not isinstance(gq, dict) or not gq:
            raise ProviderError(f"Alpha Vantage has no quote for {symbol}")

        price = safe_float(gq.get("05. price"))
        if price is None or price <= 0:
            raise ProviderError(f"invalid Alpha Vantage price for {symbol}")

        pct_raw = str(gq.get("10. change percent") or "0").replace("%", "")
        return Quote(
            symbol=symbol,
            price=price,
            change=safe_float(gq.get("09. change")) or 0.0,
            change_percent=safe_float(pct_raw) or 0.0,
            volume=safe_float(gq.get("06. volume")) or 0.0,
            currency="USD",
            exchange=exchange_for(AssetType.STOCK),
            asset_type=AssetType.STOCK,
            timestamp=_trading_day(gq.get("07. latest trading day")),
            source=self.label,
        )
