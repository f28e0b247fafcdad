# services/market/providers/fallback.py
"""
Static reference prices used when live providers are unavailable.

Every quote built here has is_simulated=True and a source label that is not a
live provider ("Fallback Data", "Mock Data", "Reference Data"), so the UI can
tell it apart from market data. Jitter is optional and only exists to keep a
dashboard from looking frozen; none of this should be persisted.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, Optional

from schemas.market import AssetType, Quote
from services.market.classifier import currency_for, exchange_for

CRYPTO_FALLBACK_SOURCE = "Fallback Data"
THAI_GOLD_SOURCE = "Mock Data"
REFERENCE_SOURCE = "Reference Data"

# Reference Thai gold 96.5% price, THB. No live source is integrated.
THAI_GOLD_REFERENCE_PRICE = 51140.0

STABLECOINS = frozenset({"USDT", "USDC", "BUSD"})


@dataclass(frozen=True)
class FallbackPrice:
    price: float
    change: float
    change_percent: float


CRYPTO_FALLBACK_PRICES: Dict[str, FallbackPrice] = {
    "BTC": FallbackPrice(43250, 850, 2.01),
    "ETH": FallbackPrice(2680, -45, -1.65),
    "SOL": FallbackPrice(152.5, 8.2, 5.68),
    "ADA": FallbackPrice(0.52, 0.02, 4.0),
    "DOT": FallbackPrice(7.85, -0.15, -1.87),
    "MATIC": FallbackPrice(0.89, 0.03, 3.49),
    "AVAX": FallbackPrice(38.5, 1.2, 3.22),
    "LINK": FallbackPrice(15.8, -0.3, -1.86),
    "UNI": FallbackPrice(6.45, 0.15, 2.38),
    "AAVE": FallbackPrice(98.5, -2.1, -2.09),
    "XRP": FallbackPrice(0.58, 0.01, 1.75),
    "DOGE": FallbackPrice(0.085, 0.002, 2.41),
    "LTC": FallbackPrice(72.5, -1.5, -2.03),
    "BNB": FallbackPrice(315, 8, 2.61),
    "USDT": FallbackPrice(1.0, 0.0, 0.0),
    "USDC": FallbackPrice(1.0, 0.0, 0.0),
    "BUSD": FallbackPrice(1.0, 0.0, 0.0),
}

# Last-known-good prices in native currency. Shared with the accuracy monitor.
REFERENCE_PRICES: Dict[str, float] = {
    # US stocks
    "NVDA": 158.9,
    "AAPL": 185.25,
    "GOOGL": 140.5,
    "MSFT": 380.75,
    "TSLA": 250.0,
    # Thai stocks
    "BH": 137.5,
    "AOT": 30.75,
    "PR9": 24.5,
    "PTT": 35.5,
    "CPALL": 62.75,
    "KBANK": 142.5,
    # Crypto
    "SOL": 152.5,
    "BTC": 43250,
    "ETH": 2680,
    "USDT": 1.0,
    # Thai gold
    "GOLD96.5": THAI_GOLD_REFERENCE_PRICE,
}


class FallbackQuotes:
    def __init__(self, *, jitter: bool = True, rng: Optional[random.Random] = None):
        self.jitter = jitter
        self.rng = rng or random.Random()

    def _wobble(self, max_pct: float) -> float:
        """Random percent in [-max_pct, +max_pct], or 0 with jitter off."""
        if not self.jitter:
            return 0.0
        return (self.rng.random() - 0.5) * 2.0 * max_pct

    def crypto(self, symbol: str, asset_type: AssetType = AssetType.CRYPTO) -> Optional[Quote]:
        ref = CRYPTO_FALLBACK_PRICES.get(symbol)
        if ref is None:
            return None

        # Stablecoins stay pinned at their peg
        drift = 0.0 if symbol in STABLECOINS else self._wobble(0.5)
        price = ref.price * (1.0 + drift / 100.0)
        volume = float(self.rng.randint(1_000_000, 11_000_000)) if self.jitter else 0.0

        return Quote(
            symbol=symbol,
            price=price,
            change=ref.change,
            change_percent=ref.change_percent,
            volume=volume,
            currency="USD",
            exchange=exchange_for(AssetType.CRYPTO),
            asset_type=AssetType.CRYPTO,
            source=CRYPTO_FALLBACK_SOURCE,
            is_simulated=True,
        )

    def thai_gold(self, symbol: str, asset_type: AssetType = AssetType.THAI_GOLD) -> Quote:
        change_pct = self._wobble(1.0)
        change = THAI_GOLD_REFERENCE_PRICE * change_pct / 100.0
        volume = float(self.rng.randint(50, 149)) if self.jitter else 0.0

        return Quote(
            symbol=symbol,
            price=float(round(THAI_GOLD_REFERENCE_PRICE + change)),
            change=float(round(change)),
            change_percent=round(change_pct, 2),
            volume=volume,
            currency=currency_for(AssetType.THAI_GOLD),
            exchange=exchange_for(AssetType.THAI_GOLD),
            asset_type=AssetType.THAI_GOLD,
            source=THAI_GOLD_SOURCE,
            is_simulated=True,
        )

    def reference(self, symbol: str, asset_type: AssetType) -> Optional[Quote]:
        """Equity fallback for the "fallback" failure policy. No jitter."""
        price = REFERENCE_PRICES.get(symbol)
        if price is None:
            return None
        return Quote(
            symbol=symbol,
            price=price,
            currency=currency_for(asset_type),
            exchange=exchange_for(asset_type),
            asset_type=asset_type,
            source=REFERENCE_SOURCE,
            is_simulated=True,
        )
