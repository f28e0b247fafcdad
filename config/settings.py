"""
Runtime settings for the quotes backend.

Everything comes from the environment (``.env`` is loaded by ``load_dotenv``).
API keys are optional: an unset key disables that provider rather than
failing startup.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

FAILURE_POLICIES = ("omit", "fallback")


def _env_str(name: str) -> Optional[str]:
    v = (os.getenv(name) or "").strip()
    return v or None


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [p.strip() for p in raw.split(",") if p.strip()]


@dataclass(frozen=True)
class ProviderLimit:
    limit: int
    window_seconds: float


# Free-tier budgets per provider. Keys are the rate-limiter source names.
DEFAULT_PROVIDER_LIMITS = {
    "COINGECKO": ProviderLimit(30, 60),
    "YAHOO": ProviderLimit(100, 60),
    "ALPHAVANTAGE": ProviderLimit(5, 60),
    "EXCHANGERATE_API": ProviderLimit(1500, 60 * 60),
    "BOT": ProviderLimit(60, 60),
    "FIXER": ProviderLimit(100, 60 * 60),
}


@dataclass(frozen=True)
class Settings:
    # ─── Provider credentials (all optional) ───────────────────────
    alpha_vantage_api_key: Optional[str] = None
    fixer_api_key: Optional[str] = None
    bot_client_id: Optional[str] = None
    coingecko_api_key: Optional[str] = None

    # ─── Cache TTLs (seconds) ──────────────────────────────────────
    quote_cache_ttl_sec: int = 10 * 60
    fx_cache_ttl_sec: int = 30 * 60
    fx_fallback_ttl_sec: int = 5 * 60

    # ─── Politeness delays (seconds) ───────────────────────────────
    quote_request_delay_sec: float = 1.0
    provider_call_delay_sec: float = 0.1

    # ─── Behaviour ─────────────────────────────────────────────────
    quote_failure_policy: str = "omit"
    simulate_fallback_jitter: bool = True
    http_timeout_sec: float = 8.0

    # ─── Optional shared cache ─────────────────────────────────────
    redis_url: Optional[str] = None
    redis_prefix: str = "portfolioquotes:"

    # ─── HTTP surface ──────────────────────────────────────────────
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])
    quote_refresh_rate_limit: str = "30/minute"

    provider_limits: dict = field(default_factory=lambda: dict(DEFAULT_PROVIDER_LIMITS))

    def __post_init__(self) -> None:
        if self.quote_failure_policy not in FAILURE_POLICIES:
            raise ValueError(
                f"quote_failure_policy must be one of {FAILURE_POLICIES}, got {self.quote_failure_policy!r}"
            )

    def limit_for(self, source: str) -> ProviderLimit:
        return self.provider_limits.get(source.upper(), ProviderLimit(60, 60))

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            alpha_vantage_api_key=_env_str("ALPHA_VANTAGE_API_KEY"),
            fixer_api_key=_env_str("FIXER_API_KEY"),
            bot_client_id=_env_str("BOT_CLIENT_ID"),
            coingecko_api_key=_env_str("COINGECKO_API_KEY"),
            quote_cache_ttl_sec=_env_int("QUOTE_CACHE_TTL_SEC", 10 * 60),
            fx_cache_ttl_sec=_env_int("FX_CACHE_TTL_SEC", 30 * 60),
            fx_fallback_ttl_sec=_env_int("FX_FALLBACK_TTL_SEC", 5 * 60),
            quote_request_delay_sec=_env_float("QUOTE_REQUEST_DELAY_SEC", 1.0),
            provider_call_delay_sec=_env_float("PROVIDER_CALL_DELAY_SEC", 0.1),
            quote_failure_policy=(os.getenv("QUOTE_FAILURE_POLICY") or "omit").strip().lower(),
            simulate_fallback_jitter=_env_bool("SIMULATE_FALLBACK_JITTER", True),
            http_timeout_sec=_env_float("HTTP_TIMEOUT_SEC", 8.0),
            redis_url=_env_str("REDIS_URL"),
            redis_prefix=os.getenv("REDIS_PREFIX", "portfolioquotes:"),
            cors_origins=_env_list("CORS_ORIGINS", ["http://localhost:3000"]),
            quote_refresh_rate_limit=os.getenv("QUOTE_REFRESH_RATE_LIMIT", "30/minute"),
        )
