import math
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx


def to_float(x: Any) -> float:
    """Coerce to float; None, NaN, inf and junk all become 0.0."""
    if x is None:
        return 0.0
    if isinstance(x, Decimal):
        x = float(x)
    try:
        f = float(x)
    except (TypeError, ValueError):
        return 0.0
    return f if math.isfinite(f) else 0.0


def safe_float(x: Any) -> Optional[float]:
    try:
        if x is None:
            return None
        f = float(x)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def safe_div(n: float, d: float) -> float:
    return n / d if d else 0.0


def safe_json(resp: httpx.Response) -> Optional[Dict[str, Any]]:
    try:
        data = resp.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def norm_symbol(symbol: Optional[str]) -> str:
    return (symbol or "").strip().upper()


def norm_currency(code: Optional[str], default: str = "USD") -> str:
    c = (code or "").strip().upper()
    return c or default
