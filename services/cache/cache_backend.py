# services/cache/cache_backend.py
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import redis

logger = logging.getLogger(__name__)

# -------------------------
# Types
# -------------------------
JsonValue = Union[Dict[str, Any], List[Any], str, int, float, bool, None]
Clock = Callable[[], float]


@dataclass
class CacheEntry:
    payload: JsonValue
    inserted_at: float
    ttl_seconds: float

    def expired(self, now: float) -> bool:
        return now - self.inserted_at > self.ttl_seconds


def _norm_key(key: str) -> str:
    return (key or "").strip().upper()


def make_redis_client(url: Optional[str]):
    """Sync redis client for the optional shared L2. None when not configured."""
    if not url:
        return None
    try:
        return redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=2,
            socket_connect_timeout=2,
        )
    except (ValueError, redis.RedisError) as e:
        logger.warning("Redis L2 disabled: %s", e)
        return None


class QuoteCache:
    """
    Time-bounded read-through cache for JSON payloads.

      1) local memory, lazy expiry (purge_expired() for an explicit sweep)
      2) redis, only when a client is given (shared across instances)

    Instances are independent; construct one per service and inject it.
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        clock: Clock = time.time,
        redis_client=None,
        redis_prefix: str = "portfolioquotes:",
    ):
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._redis = redis_client
        self._prefix = redis_prefix
        self._local: Dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def _redis_key(self, k: str) -> str:
        return f"{self._prefix}{k}"

    def get(self, key: str) -> Optional[JsonValue]:
        k = _norm_key(key)
        if not k:
            return None

        now = self._clock()
        entry = self._local.get(k)
        if entry is not None:
            if not entry.expired(now):
                self._hits += 1
                return entry.payload
            self._local.pop(k, None)

        hit = self._l2_get(k)
        if hit is not None:
            payload, remaining = hit
            self._hits += 1
            # Local copy expires with the shared key, never later.
            self._local[k] = CacheEntry(payload, now, min(remaining, self.ttl_seconds))
            return payload

        self._misses += 1
        return None

    def set(self, key: str, payload: JsonValue, ttl_seconds: Optional[float] = None) -> None:
        k = _norm_key(key)
        if not k:
            return
        ttl = float(ttl_seconds) if ttl_seconds and ttl_seconds > 0 else self.ttl_seconds
        self._local[k] = CacheEntry(payload, self._clock(), ttl)
        self._l2_set(k, payload, ttl)

    def set_many(self, kv: Dict[str, JsonValue], ttl_seconds: Optional[float] = None) -> None:
        for key, payload in kv.items():
            self.set(key, payload, ttl_seconds)

    def delete(self, key: str) -> None:
        k = _norm_key(key)
        self._local.pop(k, None)
        self._l2_delete([self._redis_key(k)])

    def clear(self) -> None:
        self._local.clear()
        if self._redis is not None:
            try:
                keys = list(self._redis.scan_iter(match=f"{self._prefix}*"))
            except redis.RedisError as e:
                logger.debug("redis scan failed for %s: %s", self._prefix, e)
                keys = []
            self._l2_delete(keys)
        self._hits = 0
        self._misses = 0

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._local.items() if e.expired(now)]
        for k in expired:
            self._local.pop(k, None)
        if expired:
            logger.debug("cache purge: dropped %d expired entries", len(expired))
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        now = self._clock()
        live = [e for e in self._local.values() if not e.expired(now)]
        lookups = self._hits + self._misses
        return {
            "size": len(live),
            "hits": self._hits,
            "misses": self._misses,
            "hitRate": round(self._hits / lookups, 4) if lookups else 0.0,
            "oldestEntrySec": round(now - min(e.inserted_at for e in live), 3) if live else 0.0,
            "shared": self._redis is not None,
        }

    # ─── L2 ────────────────────────────────────────────────────────

    def _l2_get(self, k: str) -> Optional[Tuple[JsonValue, float]]:
        """Payload plus the seconds the shared key has left."""
        if self._redis is None:
            return None
        try:
            rk = self._redis_key(k)
            raw = self._redis.get(rk)
            if not isinstance(raw, (str, bytes, bytearray)):
                return None
            remaining = self._redis.ttl(rk)
            # -1: no expiry set, -2: gone since the GET
            if remaining == -2:
                return None
            ttl = float(remaining) if isinstance(remaining, int) and remaining >= 0 else self.ttl_seconds
            return json.loads(raw), ttl
        except (redis.RedisError, ValueError) as e:
            logger.debug("redis get failed for %s: %s", k, e)
            return None

    def _l2_set(self, k: str, payload: JsonValue, ttl: float) -> None:
        if self._redis is None:
            return
        try:
            self._redis.setex(
                self._redis_key(k),
                max(1, int(ttl)),
                json.dumps(payload, separators=(",", ":")),
            )
        except (redis.RedisError, TypeError, ValueError) as e:
            # Don't fail the request if Redis errors; local cache still helps.
            logger.debug("redis set failed for %s: %s", k, e)

    def _l2_delete(self, keys: List[str]) -> None:
        if self._redis is None or not keys:
            return
        try:
            self._redis.delete(*keys)
        except redis.RedisError as e:
            logger.debug("redis delete failed for %d keys: %s", len(keys), e)
