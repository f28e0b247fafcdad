# services/validation/price_validator.py
"""
Advisory sanity checks on fetched prices.

Nothing here blocks a quote: callers log or surface the result and keep
using the price.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from schemas.market import AssetType, PriceValidation
from utils.common_helpers import norm_symbol

logger = logging.getLogger(__name__)

# Flag (but accept) prices further than this from the last-known-good price.
DEVIATION_THRESHOLD = 0.5


@dataclass(frozen=True)
class PriceRule:
    symbol: str
    asset_type: AssetType
    min_price: float
    max_price: float
    last_known_good: Optional[float] = None


DEFAULT_RULES: List[PriceRule] = [
    # Crypto
    PriceRule("BTC", AssetType.CRYPTO, 15000, 100000, 43250),
    PriceRule("ETH", AssetType.CRYPTO, 800, 8000, 2680),
    PriceRule("SOL", AssetType.CRYPTO, 8, 300, 152.5),
    PriceRule("ADA", AssetType.CRYPTO, 0.1, 5, 0.52),
    PriceRule("USDT", AssetType.CRYPTO, 0.98, 1.02, 1.0),
    PriceRule("USDC", AssetType.CRYPTO, 0.98, 1.02, 1.0),
    # US stocks
    PriceRule("AAPL", AssetType.STOCK, 50, 300, 185),
    PriceRule("GOOGL", AssetType.STOCK, 80, 200, 140),
    PriceRule("MSFT", AssetType.STOCK, 200, 500, 380),
    PriceRule("TSLA", AssetType.STOCK, 100, 400, 250),
    # Thai stocks
    PriceRule("PTT", AssetType.THAI_STOCK, 20, 60, 35.5),
    PriceRule("CPALL", AssetType.THAI_STOCK, 40, 80, 62.75),
    PriceRule("KBANK", AssetType.THAI_STOCK, 100, 200, 142.5),
    # Thai gold, THB
    PriceRule("GOLD96.5", AssetType.THAI_GOLD, 30000, 80000, 51140),
]

# Used when no symbol rule exists: (min exclusive of 0, max) per asset type.
GENERIC_BOUNDS: Dict[AssetType, Tuple[Optional[float], float, str]] = {
    AssetType.CRYPTO: (None, 100000, "Price seems unusually high for crypto"),
    AssetType.STOCK: (None, 10000, "Price seems unusually high for US stock"),
    AssetType.THAI_STOCK: (None, 2000, "Price seems unusually high for Thai stock"),
    AssetType.THAI_GOLD: (30000, 80000, "Thai Gold price should be between ฿30,000-80,000 per gram"),
}


class PriceValidator:
    def __init__(self, rules: Optional[Iterable[PriceRule]] = None):
        self._rules: Dict[Tuple[str, AssetType], PriceRule] = {
            (r.symbol, r.asset_type): r for r in (rules if rules is not None else DEFAULT_RULES)
        }

    def rule_for(self, symbol: str, asset_type: AssetType) -> Optional[PriceRule]:
        return self._rules.get((norm_symbol(symbol), AssetType(asset_type)))

    def validate(self, symbol: str, price: float, asset_type: AssetType) -> PriceValidation:
        sym = norm_symbol(symbol)
        atype = AssetType(asset_type)
        rule = self.rule_for(sym, atype)

        if rule is None:
            if price is None or not price > 0:
                return PriceValidation(is_valid=False, warning="Price must be greater than 0")
            lo, hi, message = GENERIC_BOUNDS[atype]
            if price > hi or (lo is not None and price < lo):
                return PriceValidation(is_valid=False, warning=message)
            return PriceValidation(is_valid=True)

        if not (rule.min_price <= price <= rule.max_price):
            return PriceValidation(
                is_valid=False,
                warning=f"{sym} price {price} is outside expected range {rule.min_price:g}-{rule.max_price:g}",
                suggestion=rule.last_known_good,
            )

        if rule.last_known_good:
            deviation = abs(price - rule.last_known_good) / rule.last_known_good
            if deviation > DEVIATION_THRESHOLD:
                return PriceValidation(
                    is_valid=True,
                    warning=f"{sym} price {price} deviates significantly from recent price {rule.last_known_good:g}",
                    suggestion=rule.last_known_good,
                )

        return PriceValidation(is_valid=True)

    def log_validation(self, symbol: str, price: float, asset_type: AssetType, source: str) -> PriceValidation:
        result = self.validate(symbol, price, asset_type)
        if not result.is_valid or result.warning:
            logger.warning(
                "price validation for %s from %s: price=%s type=%s valid=%s warning=%s suggestion=%s",
                symbol, source, price, AssetType(asset_type).value,
                result.is_valid, result.warning, result.suggestion,
            )
        return result

    def update_rules(self, updates: Iterable[Mapping]) -> int:
        """
        Merge partial updates into existing rules, or add complete new ones.
        Each update needs at least symbol + asset_type. Returns how many applied.
        """
        applied = 0
        for u in updates:
            sym = norm_symbol(u.get("symbol"))
            raw_type = u.get("asset_type")
            if not sym or raw_type is None:
                continue
            key = (sym, AssetType(raw_type))
            fields = {k: u[k] for k in ("min_price", "max_price", "last_known_good") if k in u}

            existing = self._rules.get(key)
            if existing is not None:
                self._rules[key] = replace(existing, **fields)
                applied += 1
            elif fields.get("min_price") and fields.get("max_price"):
                self._rules[key] = PriceRule(sym, key[1], **fields)
                applied += 1
        return applied
