# main.py
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from config.logging_config import configure_logging
from config.settings import Settings
from middleware.rate_limit import limiter, rate_limit_exceeded_handler
from middleware.request_logging import RequestLoggingMiddleware
from routers.exchange_rate_routes import router as exchange_rate_router
from routers.portfolio_routes import router as portfolio_router
from routers.quote_routes import router as quote_router
from services.cache.cache_backend import QuoteCache, make_redis_client
from services.fx.exchange_rate_service import ExchangeRateService
from services.market.quote_service import QuoteService
from services.portfolio.portfolio_service import PortfolioService
from services.validation.price_validator import PriceValidator

configure_logging()
logger = logging.getLogger(__name__)

settings = Settings.from_env()


def build_http_client(cfg: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(cfg.http_timeout_sec, connect=min(cfg.http_timeout_sec, 4.0)),
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        http2=True,
        follow_redirects=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    client = build_http_client(settings)
    redis_client = make_redis_client(settings.redis_url)

    quote_cache = QuoteCache(
        settings.quote_cache_ttl_sec, redis_client=redis_client, redis_prefix=settings.redis_prefix
    )
    fx_cache = QuoteCache(
        settings.fx_cache_ttl_sec, redis_client=redis_client, redis_prefix=settings.redis_prefix
    )

    quote_service = QuoteService(client, settings, cache=quote_cache, validator=PriceValidator())
    fx_service = ExchangeRateService(client, settings, cache=fx_cache)

    app.state.quote_service = quote_service
    app.state.exchange_rate_service = fx_service
    app.state.portfolio_service = PortfolioService(quote_service, fx_service)

    await fx_service.preload_common_rates()
    logger.info("startup complete: failure_policy=%s", settings.quote_failure_policy)
    try:
        yield
    finally:
        await client.aclose()
        if redis_client is not None:
            redis_client.close()
        logger.info("shutdown complete")


app = FastAPI(title="Portfolio Quotes API", lifespan=lifespan)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Include routers
app.include_router(quote_router, prefix="/quotes")
app.include_router(exchange_rate_router, prefix="/exchange-rates")
app.include_router(portfolio_router, prefix="/portfolio")


@app.get("/health")
async def health():
    return {"status": "ok"}
