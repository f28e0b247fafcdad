from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MAX_BATCH_SYMBOLS = 50
_CCY_RE = re.compile(r"^[A-Z]{3}$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_symbol(value: str) -> str:
    symbol = (value or "").strip().upper()
    if not symbol or len(symbol) > 20:
        raise ValueError("symbol must be 1-20 characters")
    return symbol


def normalize_currency_code(value: str) -> str:
    code = (value or "").strip().upper()
    if not _CCY_RE.match(code):
        raise ValueError("currency must be a 3-letter ISO code")
    return code


class AssetType(str, Enum):
    STOCK = "STOCK"
    THAI_STOCK = "THAI_STOCK"
    CRYPTO = "CRYPTO"
    THAI_GOLD = "THAI_GOLD"


class CamelModel(BaseModel):
    """snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Quote(CamelModel):
    symbol: str
    price: float
    change: float = 0.0
    change_percent: float = 0.0
    volume: float = 0.0
    currency: str = "USD"
    exchange: str = ""
    asset_type: AssetType
    timestamp: datetime = Field(default_factory=utc_now)
    source: str
    # True for fallback/mock prices carrying synthetic jitter. Never real market data.
    is_simulated: bool = False
    market_cap: Optional[float] = None


class SymbolInfo(CamelModel):
    symbol: str
    name: str
    exchange: str
    currency: str
    asset_type: AssetType


class ExchangeRate(CamelModel):
    from_currency: str = Field(alias="from")
    to_currency: str = Field(alias="to")
    rate: float
    source: str
    timestamp: datetime = Field(default_factory=utc_now)
    cached: bool = False


class PriceValidation(CamelModel):
    is_valid: bool
    warning: Optional[str] = None
    suggestion: Optional[float] = None


class AlertSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class PriceAlert(CamelModel):
    symbol: str
    current_price: float
    expected_price: float
    deviation: float  # percent
    severity: AlertSeverity
    timestamp: datetime = Field(default_factory=utc_now)
    message: str


class DataAccuracyReport(CamelModel):
    total_symbols: int = 0
    accurate_count: int = 0
    warning_count: int = 0
    error_count: int = 0
    alerts: List[PriceAlert] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=utc_now)


# ─── Request bodies ────────────────────────────────────────────────


class QuoteBatchRequest(BaseModel):
    symbols: List[str]

    @field_validator("symbols")
    @classmethod
    def validate_symbols(cls, value: List[str]) -> List[str]:
        seen: set[str] = set()
        out: List[str] = []
        for symbol in value:
            normalized = _normalize_symbol(symbol)
            if normalized in seen:
                continue
            seen.add(normalized)
            out.append(normalized)
        if len(out) > MAX_BATCH_SYMBOLS:
            raise ValueError(f"at most {MAX_BATCH_SYMBOLS} symbols per request")
        return out


class CurrencyPair(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_currency: str = Field(alias="from")
    to_currency: str = Field(alias="to")

    @field_validator("from_currency", "to_currency")
    @classmethod
    def validate_code(cls, value: str) -> str:
        return normalize_currency_code(value)


class ExchangeRateBatchRequest(BaseModel):
    pairs: List[CurrencyPair]
