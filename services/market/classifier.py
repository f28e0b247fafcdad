# services/market/classifier.py
"""
Symbol -> AssetType classification.

Short alphabetic tickers collide between US and Thai exchanges, so this works
off explicit allow-lists instead of pattern inference. First match wins:

  1. Thai gold set, or anything starting with GOLD
  2. US allow-list (must run before the crypto/Thai heuristics)
  3. crypto list, or symbol contains USD/USDT
  4. Thai allow-list, or .BK suffix
  5. default: US stock
"""
from __future__ import annotations

import logging
from typing import Dict, FrozenSet

from schemas.market import AssetType
from utils.common_helpers import norm_symbol

logger = logging.getLogger(__name__)

THAI_GOLD_SYMBOLS: FrozenSet[str] = frozenset({"GOLD96.5", "GOLD965", "GOLD", "XAU", "THGOLD"})

US_STOCK_SYMBOLS: FrozenSet[str] = frozenset({
    "AAPL", "GOOGL", "GOOG", "MSFT", "AMZN", "TSLA", "META", "NVDA", "NFLX", "DIS",
    "IBM", "JPM", "V", "JNJ", "WMT", "PG", "KO", "PEP", "MCD", "NKE",
    "INTC", "AMD", "CRM", "ORCL", "ADBE", "PYPL", "UBER", "LYFT", "SNAP", "TWTR",
    "BA", "CAT", "GE", "MMM", "HON", "UNH", "CVX", "XOM", "T", "VZ",
})

CRYPTO_SYMBOLS: FrozenSet[str] = frozenset({
    "BTC", "ETH", "ADA", "DOT", "SOL", "MATIC", "AVAX", "LINK", "UNI", "AAVE",
    "XRP", "DOGE", "LTC", "BNB", "USDT", "USDC", "BUSD", "AXS", "SAND", "MANA",
})

THAI_STOCK_SYMBOLS: FrozenSet[str] = frozenset({
    "KBANK", "SCB", "BBL", "KTB", "TMB", "TISCO", "TCAP", "KKP", "LHFG", "SAWAD",
    "PTT", "PTTEP", "BANPU", "RATCH", "EGCO", "EA", "GULF", "GPSC", "CKP", "BCPG",
    "CPALL", "HMPRO", "MAKRO", "BJC", "CRC", "ROBINS", "SINGER", "COM7", "DOHOME",
    "ADVANC", "INTUCH", "TRUE", "DTAC", "SAMART", "JAS", "SYNEX", "MFEC", "SVT",
    "BH", "CHG", "BDMS", "BCH", "RJH", "PR9", "VIBHA", "NEW", "VIH", "PRINC",
    "AOT", "BEM", "BTS", "KERRY", "TTA", "PSL", "NYT", "WICE", "TKN", "TFFIF",
})

# Yahoo tickers that don't follow the plain SYMBOL.BK convention.
THAI_YAHOO_OVERRIDES: Dict[str, str] = {
    "PR9": "PR9-R.BK",
}

_CURRENCY: Dict[AssetType, str] = {
    AssetType.STOCK: "USD",
    AssetType.THAI_STOCK: "THB",
    AssetType.CRYPTO: "USD",
    AssetType.THAI_GOLD: "THB",
}

_EXCHANGE: Dict[AssetType, str] = {
    AssetType.STOCK: "NASDAQ/NYSE",
    AssetType.THAI_STOCK: "SET",
    AssetType.CRYPTO: "CRYPTO",
    AssetType.THAI_GOLD: "THAI_GOLD",
}


def classify(symbol: str) -> AssetType:
    s = norm_symbol(symbol)

    if s in THAI_GOLD_SYMBOLS or "GOLD96" in s or s.startswith("GOLD"):
        return AssetType.THAI_GOLD

    if s in US_STOCK_SYMBOLS:
        return AssetType.STOCK

    if s in CRYPTO_SYMBOLS or "USD" in s:
        return AssetType.CRYPTO

    if s in THAI_STOCK_SYMBOLS or s.endswith(".BK"):
        return AssetType.THAI_STOCK

    logger.debug("classify: %r not in any list, defaulting to STOCK", s)
    return AssetType.STOCK


def to_yahoo_symbol(symbol: str, asset_type: AssetType) -> str:
    s = norm_symbol(symbol)
    if asset_type != AssetType.THAI_STOCK or s.endswith(".BK"):
        return s
    return THAI_YAHOO_OVERRIDES.get(s, f"{s}.BK")


def currency_for(asset_type: AssetType) -> str:
    return _CURRENCY[asset_type]


def exchange_for(asset_type: AssetType) -> str:
    return _EXCHANGE[asset_type]
