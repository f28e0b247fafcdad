# services/market/symbol_catalog.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from schemas.market import AssetType, SymbolInfo
from services.market.classifier import (
    THAI_GOLD_SYMBOLS,
    THAI_STOCK_SYMBOLS,
    currency_for,
    exchange_for,
)

MAX_SEARCH_RESULTS = 15

THAI_STOCK_NAMES: Dict[str, str] = {
    "BH": "Bumrungrad Hospital",
    "PTT": "PTT Public Company Limited",
    "CPALL": "CP ALL",
    "KBANK": "Kasikornbank",
    "SCB": "Siam Commercial Bank",
    "BBL": "Bangkok Bank",
    "ADVANC": "Advanced Info Service",
    "AOT": "Airports of Thailand",
    "PR9": "Praram 9 Hospital Public Company Limited",
    "TRUE": "True Corporation",
    "DTAC": "Total Access Communication",
    "GULF": "Gulf Energy Development",
    "RATCH": "Ratchaburi Electricity Generating Holding",
}

US_STOCK_NAMES: Dict[str, str] = {
    "AAPL": "Apple Inc.",
    "GOOGL": "Alphabet Inc.",
    "MSFT": "Microsoft Corporation",
    "AMZN": "Amazon.com Inc.",
    "TSLA": "Tesla Inc.",
    "META": "Meta Platforms Inc.",
    "NVDA": "NVIDIA Corporation",
    "NFLX": "Netflix Inc.",
}

CRYPTO_NAMES: Dict[str, str] = {
    "BTC": "Bitcoin",
    "ETH": "Ethereum",
    "SOL": "Solana",
    "ADA": "Cardano",
    "XRP": "Ripple",
    "DOGE": "Dogecoin",
    "USDT": "Tether USD",
    "USDC": "USD Coin",
}


@dataclass(frozen=True)
class CatalogEntry:
    symbol: str
    name: Optional[str] = None


class SymbolCatalog:
    """In-memory symbol list for one asset type, searchable by symbol or name."""

    def __init__(self, asset_type: AssetType, entries: Iterable[CatalogEntry], per_query_cap: int):
        self.asset_type = asset_type
        self.per_query_cap = per_query_cap
        self._entries: List[CatalogEntry] = sorted(entries, key=lambda e: e.symbol)

    def _matches(self, q_upper: str, q_lower: str) -> List[CatalogEntry]:
        def name_lower(e: CatalogEntry) -> str:
            return (e.name or "").lower()

        # 1) exact symbol, 2) symbol prefix, 3) name prefix, 4) symbol contains, 5) name contains
        tiers = [
            lambda e: e.symbol == q_upper,
            lambda e: e.symbol.startswith(q_upper),
            lambda e: name_lower(e).startswith(q_lower),
            lambda e: q_upper in e.symbol,
            lambda e: q_lower in name_lower(e),
        ]
        used: set[str] = set()
        out: List[CatalogEntry] = []
        for tier in tiers:
            for e in self._entries:
                if e.symbol not in used and tier(e):
                    used.add(e.symbol)
                    out.append(e)
        return out

    def search(self, q: str) -> List[SymbolInfo]:
        q_raw = (q or "").strip()
        if not q_raw:
            return []
        hits = self._matches(q_raw.upper(), q_raw.lower())[: self.per_query_cap]
        return [self.to_info(e) for e in hits]

    def to_info(self, e: CatalogEntry) -> SymbolInfo:
        return SymbolInfo(
            symbol=e.symbol,
            name=e.name or e.symbol,
            exchange=exchange_for(self.asset_type),
            currency=currency_for(self.asset_type),
            asset_type=self.asset_type,
        )


class GoldCatalog(SymbolCatalog):
    """Any fragment of the word "gold" lists the gold symbols too."""

    def search(self, q: str) -> List[SymbolInfo]:
        q_lower = (q or "").strip().lower()
        if not q_lower:
            return []
        if q_lower in "gold":
            return [self.to_info(e) for e in self._entries[: self.per_query_cap]]
        return super().search(q)


def _gold_name(symbol: str) -> str:
    return "Thai Gold 96.5%" if symbol in ("GOLD96.5", "GOLD965") else "Thai Gold"


def build_catalogs() -> List[SymbolCatalog]:
    """Gold, Thai, US, crypto: the order results are listed in."""
    return [
        GoldCatalog(
            AssetType.THAI_GOLD,
            [CatalogEntry(s, _gold_name(s)) for s in THAI_GOLD_SYMBOLS],
            per_query_cap=3,
        ),
        SymbolCatalog(
            AssetType.THAI_STOCK,
            [CatalogEntry(s, THAI_STOCK_NAMES.get(s, f"{s} - Thai Stock")) for s in THAI_STOCK_SYMBOLS],
            per_query_cap=8,
        ),
        SymbolCatalog(
            AssetType.STOCK,
            [CatalogEntry(s, n) for s, n in US_STOCK_NAMES.items()],
            per_query_cap=5,
        ),
        SymbolCatalog(
            AssetType.CRYPTO,
            [CatalogEntry(s, n) for s, n in CRYPTO_NAMES.items()],
            per_query_cap=5,
        ),
    ]


def search_symbols(
    query: str,
    catalogs: Optional[List[SymbolCatalog]] = None,
    limit: int = MAX_SEARCH_RESULTS,
) -> List[SymbolInfo]:
    results: List[SymbolInfo] = []
    for catalog in catalogs if catalogs is not None else build_catalogs():
        results.extend(catalog.search(query))
    return results[: max(0, limit)]
