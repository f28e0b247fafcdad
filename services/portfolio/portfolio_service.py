# services/portfolio/portfolio_service.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Sequence

from sqlalchemy.orm import Session

from schemas.holding import EnrichedHolding, Holding
from schemas.market import normalize_currency_code, utc_now
from services.fx.exchange_rate_service import ExchangeRateService
from services.holding_service import get_holdings
from services.market.quote_service import QuoteService
from services.portfolio.valuation import (
    allocation_by_asset_type,
    allocation_by_symbol,
    enrich,
    portfolio_currencies,
    summarize,
)
from services.validation.accuracy_monitor import AccuracyMonitor

logger = logging.getLogger(__name__)


def _price_status(enriched: Sequence[EnrichedHolding]) -> str:
    live = sum(1 for h in enriched if h.price_source and not h.is_simulated)
    if not enriched or live == 0:
        return "unavailable"
    if live == len(enriched):
        return "live"
    return "mixed"


class PortfolioService:
    """Holdings + quotes + rates -> one valuation payload in the display currency."""

    def __init__(
        self,
        quotes: QuoteService,
        rates: ExchangeRateService,
        monitor: AccuracyMonitor | None = None,
    ):
        self.quotes = quotes
        self.rates = rates
        self.monitor = monitor or AccuracyMonitor()

    async def build_portfolio(self, user_id: str, display_currency: str, db: Session) -> Dict[str, Any]:
        holdings = get_holdings(user_id, db)
        return await self.value_holdings(holdings, display_currency)

    async def value_holdings(self, holdings: List[Holding], display_currency: str) -> Dict[str, Any]:
        """
        Always returns a payload, even when no quote resolved: unpriced
        holdings show up with a current value of 0.
        """
        currency = normalize_currency_code(display_currency)
        symbols = [h.symbol for h in holdings if h.symbol]

        # Finish the batch even if the caller goes away so the cache still fills
        quotes = await asyncio.shield(self.quotes.fetch_many(symbols)) if symbols else []

        enriched = enrich(holdings, quotes)
        snapshot = await self.rates.snapshot(portfolio_currencies(enriched), currency)

        summary = summarize(enriched, currency, snapshot)
        logger.info(
            "valued %d holdings (%d priced) in %s: total=%.2f",
            len(holdings), len(quotes), currency, summary.total_value,
        )

        return {
            "holdings": [h.model_dump(mode="json", by_alias=True) for h in enriched],
            "summary": summary.model_dump(mode="json", by_alias=True),
            "allocation": [a.model_dump(mode="json", by_alias=True) for a in allocation_by_symbol(enriched, currency, snapshot)],
            "categoryAllocation": [
                c.model_dump(mode="json", by_alias=True) for c in allocation_by_asset_type(enriched, currency, snapshot)
            ],
            "dataAccuracy": self.monitor.report(quotes).model_dump(mode="json", by_alias=True),
            "priceStatus": _price_status(enriched),
            "currency": currency,
            "asOf": utc_now().isoformat(),
        }
