from __future__ import annotations

import math
import re
from decimal import Decimal
from typing import Any, List, Optional

from fastapi import HTTPException

ITEM_TYPES = ("product", "diary")


def client_ip_from_request(req) -> str:
    xff = req.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    return req.client.host if req.client else "0.0.0.0"


def normalize_item_type(s: Any) -> str:
    v = (s or "").strip().lower() if isinstance(s, str) else ""
    if v not in ITEM_TYPES:
        raise HTTPException(400, "item_type must be 'product' or 'diary'")
    return v


def normalize_item_id(s: Any) -> str:
    v = str(s).strip() if s is not None else ""
    if not v or len(v) > 128:
        raise HTTPException(400, "Invalid item id")
    return v


def normalize_shade(s: Optional[str]) -> Optional[str]:
    if s is None:
        return None
    v = s.strip()
    return v or None


def search_tokens(text: str) -> List[str]:
    return [t for t in re.findall(r"[a-z0-9@._-]+", (text or "").lower()) if t]


def ddb_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def ddb_float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        f = float(value)
    except (TypeError, ValueError):
        return default
    return f if math.isfinite(f) else default


def to_ddb_decimal(value: float, places: int = 6) -> Decimal:
    return Decimal(str(round(float(value), places)))
