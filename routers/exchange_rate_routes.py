# routers/exchange_rate_routes.py
import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Query

from routers.deps import get_exchange_rate_service
from schemas.market import ExchangeRateBatchRequest
from services.fx.exchange_rate_service import ExchangeRateError, ExchangeRateService

logger = logging.getLogger(__name__)

router = APIRouter()


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 1)


@router.get("")
async def get_exchange_rate(
    from_ccy: str = Query("USD", alias="from"),
    to_ccy: str = Query("THB", alias="to"),
    svc: ExchangeRateService = Depends(get_exchange_rate_service),
):
    start = time.perf_counter()
    try:
        rate = await svc.get_rate(from_ccy, to_ccy)
    except ExchangeRateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("exchange rate lookup failed for %s/%s", from_ccy, to_ccy)
        raise HTTPException(status_code=500, detail="Failed to fetch exchange rate")

    return {
        "exchangeRate": rate.model_dump(mode="json", by_alias=True),
        "metadata": {
            "durationMs": _elapsed_ms(start),
            "cached": rate.cached,
            "source": rate.source,
        },
    }


@router.post("/batch")
async def get_exchange_rates_batch(
    body: ExchangeRateBatchRequest,
    svc: ExchangeRateService = Depends(get_exchange_rate_service),
):
    start = time.perf_counter()
    try:
        rates = await svc.get_many_rates((p.from_currency, p.to_currency) for p in body.pairs)
    except Exception:
        logger.exception("exchange rate batch failed for %d pairs", len(body.pairs))
        raise HTTPException(status_code=500, detail="Failed to fetch exchange rates")

    return {
        "exchangeRates": [r.model_dump(mode="json", by_alias=True) for r in rates],
        "metadata": {
            "requested": len(body.pairs),
            "cached": sum(1 for r in rates if r.cached),
            "durationMs": _elapsed_ms(start),
        },
    }


@router.post("/preload")
async def preload_exchange_rates(svc: ExchangeRateService = Depends(get_exchange_rate_service)):
    start = time.perf_counter()
    rates = await svc.preload_common_rates()
    return {
        "preloaded": [f"{r.from_currency}/{r.to_currency}" for r in rates],
        "metadata": {"durationMs": _elapsed_ms(start)},
    }


@router.get("/sources")
async def exchange_rate_sources(svc: ExchangeRateService = Depends(get_exchange_rate_service)):
    return svc.get_source_info()
