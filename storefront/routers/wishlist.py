from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from storefront.auth.deps import require_user
from storefront.models import WishlistAlertsOut, WishlistNotifyIn, WishlistOut, WishlistToggleIn
from storefront.services.audit import audit_event
from storefront.services.wishlist import compute_alerts, get_wishlist, set_notify, toggle_item

router = APIRouter(prefix="/wishlist", tags=["wishlist"])


@router.get("", response_model=WishlistOut)
async def wishlist_get(ctx=Depends(require_user)):
    return get_wishlist(ctx["user_sub"])


@router.post("/toggle", response_model=WishlistOut)
async def wishlist_toggle(body: WishlistToggleIn, req: Request = None, ctx=Depends(require_user)):
    wl = toggle_item(ctx["user_sub"], body.product_id, body.shade_id)
    audit_event("wishlist_toggled", ctx["user_sub"], req, outcome="success", product_id=body.product_id)
    return wl


@router.put("/notify", response_model=WishlistOut)
async def wishlist_notify(body: WishlistNotifyIn, req: Request = None, ctx=Depends(require_user)):
    wl = set_notify(ctx["user_sub"], price_drop=body.price_drop, restock=body.restock)
    audit_event(
        "wishlist_notify_set",
        ctx["user_sub"],
        req,
        outcome="success",
        price_drop=wl["notify"]["price_drop"],
        restock=wl["notify"]["restock"],
    )
    return wl


@router.get("/alerts", response_model=WishlistAlertsOut, response_model_exclude_none=True)
async def wishlist_alerts(ctx=Depends(require_user)):
    return {"alerts": compute_alerts(ctx["user_sub"])}
