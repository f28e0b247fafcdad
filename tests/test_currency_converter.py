import math
import unittest

from schemas.market import ExchangeRate
from services.fx.currency_converter import CurrencyConverter, RateSnapshot, convert, format_currency


def _snapshot(**pairs) -> RateSnapshot:
    snap = RateSnapshot()
    for key, rate in pairs.items():
        src, dst = key.split("_")
        snap.add(src, dst, rate)
    return snap


class ConvertTests(unittest.TestCase):
    def test_identity(self):
        self.assertEqual(convert(123.4, "THB", "thb", RateSnapshot()), 123.4)

    def test_direct_pair(self):
        self.assertAlmostEqual(convert(100, "USD", "THB", _snapshot(USD_THB=35.5)), 3550.0)

    def test_inverse_of_reverse_pair(self):
        self.assertAlmostEqual(convert(3550, "THB", "USD", _snapshot(USD_THB=35.5)), 100.0)

    def test_round_trip_is_close_to_identity(self):
        snap = _snapshot(USD_THB=35.5)
        there = convert(1234.56, "USD", "THB", snap)
        self.assertAlmostEqual(convert(there, "THB", "USD", snap), 1234.56, places=6)

    def test_cross_via_usd(self):
        snap = _snapshot(EUR_USD=1.08, USD_THB=35.5)
        self.assertAlmostEqual(convert(10, "EUR", "THB", snap), 10 * 1.08 * 35.5)

    def test_no_path_returns_amount_unchanged(self):
        self.assertEqual(convert(42.0, "CHF", "SEK", RateSnapshot()), 42.0)

    def test_nan_converts_to_zero(self):
        self.assertEqual(convert(math.nan, "USD", "THB", _snapshot(USD_THB=35.5)), 0.0)

    def test_snapshot_ignores_non_positive_rates(self):
        snap = _snapshot(USD_THB=0)
        self.assertEqual(len(snap), 0)

    def test_snapshot_from_rates(self):
        snap = RateSnapshot.from_rates(
            [ExchangeRate(from_currency="USD", to_currency="THB", rate=35.5, source="test")]
        )
        self.assertEqual(snap.get("USD", "THB"), 35.5)

    def test_converter_binds_target(self):
        conv = CurrencyConverter(_snapshot(USD_THB=35.5), "thb")
        self.assertEqual(conv.target, "THB")
        self.assertAlmostEqual(conv.to_target(2, "USD"), 71.0)


class FormatCurrencyTests(unittest.TestCase):
    def test_symbols_and_codes(self):
        self.assertEqual(format_currency(1234.5, "THB"), "฿1,234.50")
        self.assertEqual(format_currency(1234.5, "usd"), "$1,234.50")
        self.assertEqual(format_currency(1234.5, "EUR"), "1,234.50 EUR")
        self.assertEqual(format_currency(-5, "USD"), "-$5.00")


if __name__ == "__main__":
    unittest.main()
