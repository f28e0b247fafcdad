from typing import Optional

from sqlalchemy import Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class PortfolioHolding(Base):
    """
    Read-only mapping of the ``portfolio_holdings`` view, which the store
    derives from the transactions ledger (BUY minus SELL, cost-weighted).
    Never written from this service; the view has no surrogate key.
    """

    __tablename__ = "portfolio_holdings"
    __table_args__ = {"info": {"is_view": True}}

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    symbol: Mapped[str] = mapped_column(String, primary_key=True)
    company_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    total_shares: Mapped[Optional[float]] = mapped_column(Numeric(asdecimal=False), nullable=True)
    avg_cost_basis: Mapped[Optional[float]] = mapped_column(Numeric(asdecimal=False), nullable=True)
    total_invested: Mapped[Optional[float]] = mapped_column(Numeric(asdecimal=False), nullable=True)
    currency: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)
