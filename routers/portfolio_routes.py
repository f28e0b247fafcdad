# routers/portfolio_routes.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from database import get_db
from routers.deps import get_portfolio_service
from schemas.holding import PortfolioValuationRequest
from schemas.market import normalize_currency_code
from services.holding_service import StorageUnavailable
from services.portfolio.portfolio_service import PortfolioService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/summary")
async def portfolio_summary(
    user_id: str = Query(..., min_length=1),
    currency: str = Query("USD"),
    db: Session = Depends(get_db),
    svc: PortfolioService = Depends(get_portfolio_service),
):
    try:
        resolved_currency = normalize_currency_code(currency)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        return await svc.build_portfolio(user_id, resolved_currency, db)
    except StorageUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception:
        logger.exception("portfolio summary failed user_id=%s", user_id)
        raise HTTPException(status_code=500, detail="Failed to build portfolio summary")


@router.post("/valuation")
async def portfolio_valuation(
    body: PortfolioValuationRequest,
    svc: PortfolioService = Depends(get_portfolio_service),
):
    try:
        return await svc.value_holdings(body.holdings, body.currency)
    except Exception:
        logger.exception("portfolio valuation failed for %d holdings", len(body.holdings))
        raise HTTPException(status_code=500, detail="Failed to value holdings")
