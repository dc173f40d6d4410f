from __future__ import annotations

import base64
import json
from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import HTTPException


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    raise TypeError(f"Unserializable cursor value: {type(value).__name__}")


def encode_next_token(last_evaluated_key: Optional[Dict[str, Any]]) -> Optional[str]:
    if not last_evaluated_key:
        return None
    raw = json.dumps(last_evaluated_key, separators=(",", ":"), default=_json_default).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def decode_next_token(token: Optional[str]) -> Optional[Dict[str, Any]]:
    if not token:
        return None
    s = token.strip()
    pad = "=" * ((4 - (len(s) % 4)) % 4)
    try:
        raw = base64.urlsafe_b64decode((s + pad).encode("utf-8"))
        obj = json.loads(raw.decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise HTTPException(status_code=400, detail="Invalid next_token") from exc
    if not isinstance(obj, dict):
        raise HTTPException(status_code=400, detail="Invalid next_token")
    return obj
