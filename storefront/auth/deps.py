from __future__ import annotations

from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, Request

from storefront.core.settings import S

ROLES = ("user", "admin")


def extract_bearer_token(auth_header: Optional[str]) -> str:
    if not auth_header:
        raise HTTPException(401, "Missing Authorization header")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(401, "Invalid Authorization header")
    return token.strip()


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, S.jwt_secret, algorithms=[S.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(401, "Token expired") from exc
    except jwt.PyJWTError as exc:
        raise HTTPException(401, "Invalid token") from exc


def _ctx_from_claims(payload: Dict[str, Any]) -> Dict[str, str]:
    user_sub = payload.get("_id") or payload.get("sub")
    if not user_sub:
        raise HTTPException(401, "Token missing subject")
    role = payload.get("role") if payload.get("role") in ROLES else "user"
    return {"user_sub": str(user_sub), "role": role}


async def get_current_user(request: Request) -> Dict[str, str]:
    """
    Resolve the caller from a Bearer JWT issued by the auth service.

    Dev fallback (AUTH_DEV_HEADER_ENABLED=1): X-User-Sub / X-User-Role headers.
    """
    if S.auth_dev_header_enabled:
        dev_user = request.headers.get("x-user-sub")
        if dev_user:
            role = request.headers.get("x-user-role", "user")
            return {"user_sub": dev_user, "role": role if role in ROLES else "user"}

    token = extract_bearer_token(request.headers.get("authorization", ""))
    ctx = _ctx_from_claims(decode_token(token))
    request.state.user_sub = ctx["user_sub"]
    return ctx


async def require_user(ctx: Dict[str, str] = Depends(get_current_user)) -> Dict[str, str]:
    return ctx


async def require_admin(ctx: Dict[str, str] = Depends(get_current_user)) -> Dict[str, str]:
    if ctx.get("role") != "admin":
        raise HTTPException(403, "Forbidden")
    return ctx


async def optional_user(request: Request) -> Optional[Dict[str, str]]:
    try:
        return await get_current_user(request)
    except HTTPException:
        return None
