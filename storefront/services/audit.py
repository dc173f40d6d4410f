from __future__ import annotations

import json
from typing import Any, Dict

from botocore.exceptions import ClientError
from fastapi import HTTPException

from storefront.core.normalize import client_ip_from_request
from storefront.core.settings import S
from storefront.core.time import now_ts


def _emit(payload: Dict[str, Any]) -> None:
    if not S.audit_log_enabled:
        return
    try:
        print(json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str), flush=True)
    except (TypeError, ValueError):
        pass


def audit_event(event: str, user_sub: str, request=None, **fields: Any) -> None:
    payload: Dict[str, Any] = {"event": event, "user_sub": user_sub, "ts": now_ts(), **fields}
    if request is not None:
        payload["ip"] = client_ip_from_request(request)
        payload["user_agent"] = (request.headers.get("user-agent", "")[:256])
    _emit(payload)


def log_storage_failure(area: str, exc: Exception, **fields: Any) -> HTTPException:
    """Log the full DynamoDB error and return a generic 500 for the caller to raise."""
    payload: Dict[str, Any] = {"event": "storage_failure", "area": area, "ts": now_ts(), **fields}
    if isinstance(exc, ClientError):
        err = exc.response.get("Error", {})
        payload["error_code"] = err.get("Code")
        payload["error_message"] = err.get("Message")
        payload["operation"] = getattr(exc, "operation_name", None)
    else:
        payload["error_code"] = type(exc).__name__
        payload["error_message"] = str(exc)[:512]
    _emit(payload)
    return HTTPException(status_code=500, detail=f"{area.capitalize()} storage error.")


def is_conditional_failure(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"
