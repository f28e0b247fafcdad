# services/fx/rate_providers.py
from __future__ import annotations

from typing import Optional

from schemas.market import ExchangeRate, utc_now
from services.market.providers.base import HttpProvider, ProviderError
from utils.common_helpers import safe_float

EXCHANGERATE_API_URL = "https://api.exchangerate-api.com/v4/latest"
BOT_URL = "https://apigw1.bot.or.th/bot/public/Stat-ExchangeRate/v2/DAILY_AVG_EXG_RATE/"
FIXER_URL = "https://api.fixer.io/latest"


class RateProvider(HttpProvider):
    """One exchange-rate source. fetch() returns None when the pair isn't its business."""

    def enabled(self) -> bool:
        return True

    def supports(self, from_ccy: str, to_ccy: str) -> bool:
        return True

    async def fetch(self, from_ccy: str, to_ccy: str) -> Optional[ExchangeRate]:
        if not self.enabled() or not self.supports(from_ccy, to_ccy):
            return None
        self.acquire()
        rate = await self.fetch_rate(from_ccy, to_ccy)
        if rate is None or rate <= 0:
            raise ProviderError(f"{self.label} has no usable rate for {from_ccy}/{to_ccy}")
        return ExchangeRate(from_currency=from_ccy, to_currency=to_ccy, rate=rate, source=self.label)

    async def fetch_rate(self, from_ccy: str, to_ccy: str) -> Optional[float]:
        raise NotImplementedError


class ExchangeRateApiProvider(RateProvider):
    """Free, keyless. One call returns every rate for the base currency."""

    source = "EXCHANGERATE_API"
    label = "ExchangeRate-API"

    async def fetch_rate(self, from_ccy: str, to_ccy: str) -> Optional[float]:
        data = await self.get_json(f"{EXCHANGERATE_API_URL}/{from_ccy}")
        rates = data.get("rates") or {}
        return safe_float(rates.get(to_ccy))


class BankOfThailandProvider(RateProvider):
    """Official daily USD/THB average. Needs a BOT API gateway client id."""

    source = "BOT"
    label = "Bank of Thailand"

    def enabled(self) -> bool:
        return bool(self.settings.bot_client_id)

    def supports(self, from_ccy: str, to_ccy: str) -> bool:
        return {from_ccy, to_ccy} == {"USD", "THB"}

    async def fetch_rate(self, from_ccy: str, to_ccy: str) -> Optional[float]:
        today = utc_now().date().isoformat()
        data = await self.get_json(
            BOT_URL,
            params={"start_period": today, "end_period": today},
            headers={"X-IBM-Client-Id": self.settings.bot_client_id or ""},
        )
        rows = ((data.get("result") or {}).get("data")) or []
        usd = next((r for r in rows if isinstance(r, dict) and r.get("currency_id") == "USD"), None)
        mid = safe_float(usd.get("mid_rate")) if usd else None
        if not mid:
            raise ProviderError("no USD mid rate in Bank of Thailand data")
        return mid if from_ccy == "USD" else 1.0 / mid


class FixerProvider(RateProvider):
    source = "FIXER"
    label = "Fixer.io"

    def enabled(self) -> bool:
        return bool(self.settings.fixer_api_key)

    async def fetch_rate(self, from_ccy: str, to_ccy: str) -> Optional[float]:
        data = await self.get_json(
            FIXER_URL,
            params={"access_key": self.settings.fixer_api_key, "base": from_ccy, "symbols": to_ccy},
        )
        if not data.get("success"):
            raise ProviderError(f"Fixer.io error: {data.get('error')}")
        return safe_float((data.get("rates") or {}).get(to_ccy))
