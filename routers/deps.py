# routers/deps.py
"""
Shared services live on app.state (built once in the lifespan). Routes reach
them through these dependencies so tests can swap them with
app.dependency_overrides.
"""
from fastapi import Request

from services.fx.exchange_rate_service import ExchangeRateService
from services.market.quote_service import QuoteService
from services.portfolio.portfolio_service import PortfolioService


def get_quote_service(request: Request) -> QuoteService:
    return request.app.state.quote_service


def get_exchange_rate_service(request: Request) -> ExchangeRateService:
    return request.app.state.exchange_rate_service


def get_portfolio_service(request: Request) -> PortfolioService:
    return request.app.state.portfolio_service
