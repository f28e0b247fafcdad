import unittest

from schemas.market import AssetType
from services.market.classifier import classify, currency_for, exchange_for, to_yahoo_symbol


class ClassifierTests(unittest.TestCase):
    def test_gold_symbols(self):
        for sym in ("GOLD96.5", "GOLD965", "gold", "XAU", "THGOLD", "GOLDBAR"):
            self.assertEqual(classify(sym), AssetType.THAI_GOLD, sym)

    def test_us_list_wins_over_crypto_and_thai_heuristics(self):
        self.assertEqual(classify("AAPL"), AssetType.STOCK)
        self.assertEqual(classify(" nvda "), AssetType.STOCK)

    def test_crypto_list_and_usd_substring(self):
        self.assertEqual(classify("BTC"), AssetType.CRYPTO)
        self.assertEqual(classify("usdt"), AssetType.CRYPTO)
        self.assertEqual(classify("ETHUSD"), AssetType.CRYPTO)

    def test_thai_list_and_bk_suffix(self):
        self.assertEqual(classify("PTT"), AssetType.THAI_STOCK)
        self.assertEqual(classify("PR9"), AssetType.THAI_STOCK)
        self.assertEqual(classify("XYZ.BK"), AssetType.THAI_STOCK)

    def test_unknown_and_blank_default_to_stock(self):
        self.assertEqual(classify("ZZZZ"), AssetType.STOCK)
        self.assertEqual(classify(""), AssetType.STOCK)
        self.assertEqual(classify(None), AssetType.STOCK)

    def test_deterministic(self):
        self.assertEqual(classify("KBANK"), classify("KBANK"))

    def test_yahoo_symbol_mapping(self):
        self.assertEqual(to_yahoo_symbol("PTT", AssetType.THAI_STOCK), "PTT.BK")
        self.assertEqual(to_yahoo_symbol("PR9", AssetType.THAI_STOCK), "PR9-R.BK")
        self.assertEqual(to_yahoo_symbol("CPALL.BK", AssetType.THAI_STOCK), "CPALL.BK")
        self.assertEqual(to_yahoo_symbol("aapl", AssetType.STOCK), "AAPL")

    def test_native_currency_and_exchange(self):
        self.assertEqual(currency_for(AssetType.THAI_STOCK), "THB")
        self.assertEqual(currency_for(AssetType.THAI_GOLD), "THB")
        self.assertEqual(currency_for(AssetType.CRYPTO), "USD")
        self.assertEqual(exchange_for(AssetType.THAI_STOCK), "SET")


if __name__ == "__main__":
    unittest.main()
