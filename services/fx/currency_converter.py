# services/fx/currency_converter.py
"""
Pure currency conversion against a pre-resolved set of rates.

Nothing here does I/O: the exchange-rate service resolves a RateSnapshot up
front and the valuation code converts against it synchronously.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from typing import Dict, Iterable, Optional, Tuple

from schemas.market import ExchangeRate, utc_now
from utils.common_helpers import norm_currency

logger = logging.getLogger(__name__)

PIVOT_CURRENCY = "USD"

CURRENCY_SYMBOLS = {"THB": "฿", "USD": "$"}


@dataclass
class RateSnapshot:
    rates: Dict[Tuple[str, str], float] = field(default_factory=dict)
    as_of: datetime = field(default_factory=utc_now)

    @classmethod
    def from_rates(cls, rates: Iterable[ExchangeRate]) -> "RateSnapshot":
        snap = cls()
        for r in rates:
            snap.add(r.from_currency, r.to_currency, r.rate)
        return snap

    def add(self, from_ccy: str, to_ccy: str, rate: float) -> None:
        if rate and rate > 0 and math.isfinite(rate):
            self.rates[(norm_currency(from_ccy), norm_currency(to_ccy))] = float(rate)

    def get(self, from_ccy: str, to_ccy: str) -> Optional[float]:
        return self.rates.get((from_ccy, to_ccy))

    def __contains__(self, pair: object) -> bool:
        return pair in self.rates

    def __len__(self) -> int:
        return len(self.rates)


@lru_cache(maxsize=256)
def _note_missing_path(from_ccy: str, to_ccy: str) -> None:
    logger.debug("no conversion path %s -> %s, leaving amount unconverted", from_ccy, to_ccy)


def _rate(from_ccy: str, to_ccy: str, rates: RateSnapshot) -> Optional[float]:
    if from_ccy == to_ccy:
        return 1.0
    direct = rates.get(from_ccy, to_ccy)
    if direct:
        return direct
    reverse = rates.get(to_ccy, from_ccy)
    if reverse:
        return 1.0 / reverse
    return None


def convert(amount: float, from_ccy: str, to_ccy: str, rates: RateSnapshot) -> float:
    """
    identity -> direct pair -> inverse of the reverse pair -> cross via USD.
    With no path the amount comes back unchanged. NaN converts to 0.
    """
    if amount is None or (isinstance(amount, float) and math.isnan(amount)):
        return 0.0

    src = norm_currency(from_ccy)
    dst = norm_currency(to_ccy)

    rate = _rate(src, dst, rates)
    if rate is None and PIVOT_CURRENCY not in (src, dst):
        to_pivot = _rate(src, PIVOT_CURRENCY, rates)
        from_pivot = _rate(PIVOT_CURRENCY, dst, rates)
        if to_pivot and from_pivot:
            rate = to_pivot * from_pivot

    if rate is None:
        _note_missing_path(src, dst)
        return float(amount)
    return float(amount) * rate


class CurrencyConverter:
    """Binds a snapshot to a target currency for repeated conversions."""

    def __init__(self, rates: RateSnapshot, target: str):
        self.rates = rates
        self.target = norm_currency(target)

    def to_target(self, amount: float, from_ccy: str) -> float:
        return convert(amount, from_ccy, self.target, self.rates)

    def convert(self, amount: float, from_ccy: str, to_ccy: str) -> float:
        return convert(amount, from_ccy, to_ccy, self.rates)


def format_currency(amount: float, currency: str) -> str:
    ccy = norm_currency(currency)
    value = 0.0 if amount is None or math.isnan(amount) else amount
    body = f"{abs(value):,.2f}"
    sign = "-" if value < 0 else ""
    symbol = CURRENCY_SYMBOLS.get(ccy)
    if symbol:
        return f"{sign}{symbol}{body}"
    return f"{sign}{body} {ccy}"
