# routers/quote_routes.py
import asyncio
import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from middleware.rate_limit import QUOTE_REFRESH_RATE_LIMIT, limiter
from routers.deps import get_quote_service
from schemas.market import QuoteBatchRequest
from services.market.quote_service import QuoteService, QuoteServiceError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/search")
async def search_quotes(
    q: str = Query(..., min_length=1, max_length=40),
    svc: QuoteService = Depends(get_quote_service),
):
    results = svc.search(q)
    return {"results": [r.model_dump(mode="json", by_alias=True) for r in results]}


@router.get("/sources")
async def quote_sources(svc: QuoteService = Depends(get_quote_service)):
    return svc.get_data_source_info()


@router.post("/batch")
@limiter.limit(QUOTE_REFRESH_RATE_LIMIT)
async def batch_quotes(
    request: Request,
    body: QuoteBatchRequest,
    svc: QuoteService = Depends(get_quote_service),
):
    start = time.perf_counter()
    try:
        # Finish the batch even if the client disconnects so the cache still fills
        quotes = await asyncio.shield(svc.fetch_many(body.symbols))
    except Exception:
        logger.exception("quote batch failed for %d symbols", len(body.symbols))
        raise HTTPException(status_code=500, detail="Failed to fetch quotes")

    return {
        "quotes": [q.model_dump(mode="json", by_alias=True) for q in quotes],
        "metadata": {
            "requested": len(body.symbols),
            "successful": len(quotes),
            "durationMs": round((time.perf_counter() - start) * 1000, 1),
        },
    }


@router.get("/{symbol}")
async def get_quote(symbol: str, svc: QuoteService = Depends(get_quote_service)):
    try:
        quote = await svc.fetch_quote(symbol)
    except QuoteServiceError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("quote fetch failed for %s", symbol)
        raise HTTPException(status_code=500, detail="Failed to fetch quote")

    if quote is None:
        raise HTTPException(status_code=404, detail=f"No quote available for {symbol.upper()}")
    return quote.model_dump(mode="json", by_alias=True)
