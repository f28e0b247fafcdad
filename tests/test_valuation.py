import unittest

from schemas.holding import Holding
from schemas.market import AssetType, Quote
from services.fx.currency_converter import RateSnapshot
from services.portfolio.valuation import (
    allocation_by_asset_type,
    allocation_by_symbol,
    enrich,
    summarize,
)


def _holding(symbol, shares, invested, currency="USD", name=None) -> Holding:
    return Holding(
        symbol=symbol,
        company_name=name,
        total_shares=shares,
        avg_cost_basis=invested / shares if shares else None,
        total_invested=invested,
        currency=currency,
    )


def _quote(symbol, price, change=0.0, currency="USD", asset_type=AssetType.STOCK) -> Quote:
    return Quote(
        symbol=symbol,
        price=price,
        change=change,
        change_percent=0.0,
        currency=currency,
        asset_type=asset_type,
        source="test",
    )


class EnrichTests(unittest.TestCase):
    def test_basic_position(self):
        [h] = enrich([_holding("AAPL", 10, 1000)], [_quote("AAPL", 150)])
        self.assertEqual(h.current_value, 1500)
        self.assertEqual(h.gain_loss, 500)
        self.assertEqual(h.gain_loss_percent, 50)
        self.assertEqual(h.price_source, "test")

    def test_missing_quotes_price_at_zero(self):
        holdings = [_holding("AAPL", 10, 1000), _holding("PTT", 100, 3500, "THB")]
        enriched = enrich(holdings, [])
        for h, src in zip(enriched, holdings):
            self.assertEqual(h.current_value, 0)
            self.assertEqual(h.gain_loss, -src.total_invested)
        self.assertEqual(enriched[1].asset_type, AssetType.THAI_STOCK)

    def test_day_change_is_per_share(self):
        [h] = enrich([_holding("AAPL", 10, 1000)], [_quote("AAPL", 150, change=2.5)])
        self.assertEqual(h.day_change, 2.5)

    def test_null_fields_treated_as_zero(self):
        [h] = enrich([Holding(symbol="AAPL")], [_quote("AAPL", 150)])
        self.assertEqual(h.current_value, 0)
        self.assertEqual(h.gain_loss_percent, 0)


class SummarizeTests(unittest.TestCase):
    def test_empty_portfolio_is_all_zero(self):
        s = summarize([], "USD")
        self.assertEqual(
            (s.total_value, s.total_cost, s.total_gain_loss, s.total_gain_loss_percent, s.day_change, s.day_change_percent),
            (0, 0, 0, 0, 0, 0),
        )
        self.assertEqual(s.currency, "USD")

    def test_converts_before_summing(self):
        rates = RateSnapshot()
        rates.add("USD", "THB", 35.5)
        enriched = enrich(
            [_holding("AAPL", 10, 1000), _holding("PTT", 100, 3000, "THB")],
            [_quote("AAPL", 150, change=1.0), _quote("PTT", 35, change=0.5, currency="THB", asset_type=AssetType.THAI_STOCK)],
        )
        s = summarize(enriched, "THB", rates)

        self.assertAlmostEqual(s.total_value, 1500 * 35.5 + 3500)
        self.assertAlmostEqual(s.total_cost, 1000 * 35.5 + 3000)
        self.assertAlmostEqual(s.total_gain_loss, s.total_value - s.total_cost)
        self.assertAlmostEqual(s.total_gain_loss_percent, s.total_gain_loss / s.total_cost * 100)
        self.assertAlmostEqual(s.day_change, 10 * 1.0 * 35.5 + 100 * 0.5)
        self.assertAlmostEqual(s.day_change_percent, s.day_change / s.total_value * 100)
        self.assertEqual(s.currency, "THB")

    def test_day_change_percent_is_share_of_current_value(self):
        s = summarize(enrich([_holding("AAPL", 10, 1000)], [_quote("AAPL", 110, change=10.0)]), "USD")
        self.assertAlmostEqual(s.day_change, 100)
        self.assertAlmostEqual(s.day_change_percent, 100 / 1100 * 100)

    def test_zero_cost_gives_zero_percent(self):
        s = summarize(enrich([_holding("AAPL", 10, 0)], [_quote("AAPL", 150)]), "USD")
        self.assertEqual(s.total_gain_loss_percent, 0)


class AllocationTests(unittest.TestCase):
    def setUp(self):
        self.rates = RateSnapshot()
        self.rates.add("USD", "THB", 35.5)
        self.enriched = enrich(
            [
                _holding("AAPL", 1, 100, name="Apple Inc."),
                _holding("PTT", 100, 3000, "THB"),
                _holding("BTC", 0.1, 4000),
            ],
            [
                _quote("AAPL", 200),
                _quote("PTT", 35, currency="THB", asset_type=AssetType.THAI_STOCK),
                _quote("BTC", 43250, asset_type=AssetType.CRYPTO),
            ],
        )

    def test_by_symbol_sorted_and_sums_to_100(self):
        entries = allocation_by_symbol(self.enriched, "USD", self.rates)
        pcts = [e.percentage for e in entries]
        self.assertEqual(pcts, sorted(pcts, reverse=True))
        self.assertAlmostEqual(sum(pcts), 100.0, places=6)
        self.assertEqual(entries[0].symbol, "BTC")
        self.assertEqual(next(e for e in entries if e.symbol == "AAPL").name, "Apple Inc.")

    def test_by_asset_type_in_enum_order(self):
        cats = allocation_by_asset_type(self.enriched, "USD", self.rates)
        self.assertEqual(
            [c.asset_type for c in cats],
            [AssetType.STOCK, AssetType.THAI_STOCK, AssetType.CRYPTO],
        )
        self.assertAlmostEqual(sum(c.percentage for c in cats), 100.0, places=6)

    def test_zero_total_value_gives_zero_percentages(self):
        enriched = enrich([_holding("AAPL", 1, 100)], [])
        self.assertEqual([e.percentage for e in allocation_by_symbol(enriched, "USD")], [0.0])
        self.assertEqual([c.percentage for c in allocation_by_asset_type(enriched, "USD")], [0.0])


if __name__ == "__main__":
    unittest.main()
