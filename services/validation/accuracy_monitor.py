# services/validation/accuracy_monitor.py
from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional

from schemas.market import AlertSeverity, DataAccuracyReport, PriceAlert, Quote
from services.market.providers.fallback import REFERENCE_PRICES
from utils.common_helpers import norm_symbol

logger = logging.getLogger(__name__)

# (threshold as a fraction, severity), checked from the top.
SEVERITY_BANDS = (
    (0.5, AlertSeverity.CRITICAL),
    (0.2, AlertSeverity.HIGH),
    (0.1, AlertSeverity.MEDIUM),
    (0.05, AlertSeverity.LOW),
)


class AccuracyMonitor:
    """Compares observed prices with reference prices and grades the deviation."""

    def __init__(self, reference_prices: Optional[Mapping[str, float]] = None):
        self.reference_prices = dict(REFERENCE_PRICES if reference_prices is None else reference_prices)

    def check(self, symbol: str, price: float) -> Optional[PriceAlert]:
        sym = norm_symbol(symbol)
        expected = self.reference_prices.get(sym)
        if not expected:
            return None

        deviation = abs(price - expected) / expected
        severity = next((sev for limit, sev in SEVERITY_BANDS if deviation > limit), None)
        if severity is None:
            return None

        return PriceAlert(
            symbol=sym,
            current_price=price,
            expected_price=expected,
            deviation=deviation * 100.0,
            severity=severity,
            message=f"{sym} price {price} deviates {deviation * 100:.1f}% from expected {expected}",
        )

    def report(self, quotes: Iterable[Quote]) -> DataAccuracyReport:
        alerts = []
        accurate = warnings = errors = total = 0
        for q in quotes:
            total += 1
            alert = self.check(q.symbol, q.price)
            if alert is None:
                accurate += 1
                continue
            alerts.append(alert)
            if alert.severity in (AlertSeverity.LOW, AlertSeverity.MEDIUM):
                warnings += 1
            else:
                errors += 1

        if errors:
            logger.warning("data accuracy: %d of %d quotes deviate >20%% from reference", errors, total)

        return DataAccuracyReport(
            total_symbols=total,
            accurate_count=accurate,
            warning_count=warnings,
            error_count=errors,
            alerts=sorted(alerts, key=lambda a: a.deviation, reverse=True),
        )
