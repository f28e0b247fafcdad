# services/portfolio/valuation.py
"""
Per-holding enrichment and portfolio aggregation.

Everything here is synchronous and does no I/O. Amounts are converted into
the display currency through a CurrencyConverter before they are summed, so
mixed-currency values are never added raw.
"""
from __future__ import annotations

from math import fsum
from typing import Dict, Iterable, List, Optional, Sequence

from schemas.holding import (
    AllocationEntry,
    CategoryAllocation,
    EnrichedHolding,
    Holding,
    PortfolioSummary,
)
from schemas.market import AssetType, Quote
from services.fx.currency_converter import CurrencyConverter, RateSnapshot
from services.market.classifier import classify, exchange_for
from utils.common_helpers import safe_div, to_float


def _pct(part: float, whole: float) -> float:
    return safe_div(part, whole) * 100.0 if whole > 0 else 0.0


def _converter(display_currency: str, rates: Optional[RateSnapshot]) -> CurrencyConverter:
    return CurrencyConverter(rates if rates is not None else RateSnapshot(), display_currency)


def enrich(holdings: Iterable[Holding], quotes: Iterable[Quote]) -> List[EnrichedHolding]:
    """
    A holding without a quote is priced at 0 (a visible 100% loss) instead of
    being dropped, so the dashboard still renders under partial data.
    """
    by_symbol: Dict[str, Quote] = {q.symbol.upper(): q for q in quotes}
    out: List[EnrichedHolding] = []

    for h in holdings:
        q = by_symbol.get(h.symbol)
        shares = to_float(h.total_shares)
        invested = to_float(h.total_invested)

        price = to_float(q.price) if q else 0.0
        value = price * shares
        gain_loss = value - invested
        asset_type = q.asset_type if q else classify(h.symbol)

        out.append(
            EnrichedHolding(
                **h.model_dump(exclude={"currency"}),
                currency=q.currency if q else h.currency,
                current_price=price,
                current_value=value,
                gain_loss=gain_loss,
                gain_loss_percent=_pct(gain_loss, invested),
                day_change=to_float(q.change) if q else 0.0,
                day_change_percent=to_float(q.change_percent) if q else 0.0,
                asset_type=asset_type,
                exchange=q.exchange if q else exchange_for(asset_type),
                price_source=q.source if q else None,
                is_simulated=q.is_simulated if q else False,
            )
        )
    return out


def summarize(
    enriched: Sequence[EnrichedHolding],
    display_currency: str = "USD",
    rates: Optional[RateSnapshot] = None,
) -> PortfolioSummary:
    converter = _converter(display_currency, rates)
    values: List[float] = []
    costs: List[float] = []
    day_changes: List[float] = []

    for h in enriched:
        shares = to_float(h.total_shares)
        values.append(to_float(converter.to_target(to_float(h.current_value), h.currency)))
        costs.append(to_float(converter.to_target(to_float(h.total_invested), h.currency)))
        day_changes.append(to_float(converter.to_target(to_float(h.day_change) * shares, h.currency)))

    total_value = fsum(values)
    total_cost = fsum(costs)
    total_gain_loss = total_value - total_cost
    day_change = fsum(day_changes)

    return PortfolioSummary(
        total_value=total_value,
        total_cost=total_cost,
        total_gain_loss=total_gain_loss,
        total_gain_loss_percent=_pct(total_gain_loss, total_cost),
        day_change=day_change,
        day_change_percent=_pct(day_change, total_value),
        currency=converter.target,
    )


def allocation_by_symbol(
    enriched: Sequence[EnrichedHolding],
    display_currency: str = "USD",
    rates: Optional[RateSnapshot] = None,
) -> List[AllocationEntry]:
    converter = _converter(display_currency, rates)
    converted = [(h, to_float(converter.to_target(to_float(h.current_value), h.currency))) for h in enriched]
    total = fsum(v for _, v in converted)

    entries = [
        AllocationEntry(
            symbol=h.symbol,
            name=h.company_name or h.symbol,
            value=v,
            percentage=_pct(v, total),
            asset_type=h.asset_type,
        )
        for h, v in converted
    ]
    return sorted(entries, key=lambda e: -e.percentage)


def allocation_by_asset_type(
    enriched: Sequence[EnrichedHolding],
    display_currency: str = "USD",
    rates: Optional[RateSnapshot] = None,
    include_empty: bool = False,
) -> List[CategoryAllocation]:
    converter = _converter(display_currency, rates)
    buckets: Dict[AssetType, List[float]] = {t: [] for t in AssetType}
    for h in enriched:
        buckets[h.asset_type].append(to_float(converter.to_target(to_float(h.current_value), h.currency)))

    sums = {t: fsum(vs) for t, vs in buckets.items()}
    total = fsum(sums.values())

    # Enum order
    return [
        CategoryAllocation(asset_type=t, value=sums[t], percentage=_pct(sums[t], total))
        for t in AssetType
        if include_empty or buckets[t]
    ]


def portfolio_currencies(enriched: Iterable[EnrichedHolding]) -> List[str]:
    return sorted({h.currency for h in enriched if h.currency})
