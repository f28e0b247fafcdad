"""
Central logging configuration for the quotes backend.

- JSON lines when LOG_JSON=1 (for log aggregators), plain text otherwise.
- LOG_LEVEL from env (default INFO); LOG_PROVIDER_LEVEL tunes the provider
  chains separately, since an outage there logs once per symbol.
- Log symbols, sources and timings only. API keys and user ids stay out of
  log messages.
"""
import json
import logging
import os
import sys
from typing import Any

SERVICE_NAME = "portfolio-quotes"

PROVIDER_LOGGERS = ("services.market.providers", "services.fx.rate_providers")
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "hpack")

# Attributes every LogRecord carries; anything else came in through `extra=`.
_STANDARD_ATTRS = set(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}


def _json_serial(obj: Any):
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    if hasattr(obj, "value"):
        return obj.value
    return str(obj)


def _level(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").upper()
    return getattr(logging, raw, default) if raw else default


class JsonFormatter(logging.Formatter):
    """Single-line JSON records; fields passed via ``extra=`` are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S") + "Z",
            "level": record.levelname,
            "service": SERVICE_NAME,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0]:
            payload["exception"] = self.formatException(record.exc_info)
        for k, v in vars(record).items():
            if k in _STANDARD_ATTRS or k in payload or v is None:
                continue
            payload[k] = v
        return json.dumps(payload, default=_json_serial)


def configure_logging() -> None:
    level = _level("LOG_LEVEL", logging.INFO)
    use_json = os.getenv("LOG_JSON", "").lower() in ("1", "true", "yes")

    root = logging.getLogger()
    root.setLevel(level)
    # uvicorn --reload re-imports main; don't stack handlers
    for h in root.handlers[:]:
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if use_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    root.addHandler(handler)

    provider_level = _level("LOG_PROVIDER_LEVEL", level)
    for name in PROVIDER_LOGGERS:
        logging.getLogger(name).setLevel(provider_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
