from __future__ import annotations

from typing import List, Optional

from pydantic import ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from schemas.market import AssetType, CamelModel, normalize_currency_code


class Holding(CamelModel):
    """A position derived by the store from the transaction ledger. Read-only here."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    symbol: str
    company_name: Optional[str] = None
    # Optional because the ledger view can hand back NULLs; valuation treats them as 0.
    total_shares: Optional[float] = None
    avg_cost_basis: Optional[float] = None
    total_invested: Optional[float] = None
    currency: str = "USD"

    @field_validator("symbol")
    @classmethod
    def upper_symbol(cls, value: str) -> str:
        return (value or "").strip().upper()

    @field_validator("currency", mode="before")
    @classmethod
    def upper_currency(cls, value: Optional[str]) -> str:
        return (value or "USD").strip().upper()


class EnrichedHolding(Holding):
    current_price: float = 0.0
    current_value: float = 0.0
    gain_loss: float = 0.0
    gain_loss_percent: float = 0.0
    day_change: float = 0.0
    day_change_percent: float = 0.0
    asset_type: AssetType = AssetType.STOCK
    exchange: str = ""
    price_source: Optional[str] = None
    is_simulated: bool = False


class PortfolioSummary(CamelModel):
    total_value: float = 0.0
    total_cost: float = 0.0
    total_gain_loss: float = 0.0
    total_gain_loss_percent: float = 0.0
    day_change: float = 0.0
    day_change_percent: float = 0.0
    currency: str = "USD"


class AllocationEntry(CamelModel):
    symbol: str
    name: str
    value: float
    percentage: float
    asset_type: AssetType


class CategoryAllocation(CamelModel):
    asset_type: AssetType
    value: float
    percentage: float


class PortfolioValuationRequest(CamelModel):
    holdings: List[Holding] = Field(default_factory=list)
    currency: str = "USD"

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, value: str) -> str:
        return normalize_currency_code(value)
