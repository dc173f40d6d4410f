from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from storefront.auth.deps import require_user
from storefront.models import BundleRecommendationOut, CartAddIn, CartOut, CartUpdateQtyIn
from storefront.services.audit import audit_event
from storefront.services.cart import (
    add_item,
    clear_cart,
    get_cart,
    recommend_bundles,
    remove_item,
    update_item_quantity,
)

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartOut)
async def cart_get(ctx=Depends(require_user)):
    return get_cart(ctx["user_sub"])


@router.post("/add", response_model=CartOut)
async def cart_add(body: CartAddIn, req: Request = None, ctx=Depends(require_user)):
    cart = add_item(ctx["user_sub"], body.product_id, body.shade_id, body.quantity)
    audit_event(
        "cart_item_added",
        ctx["user_sub"],
        req,
        outcome="success",
        product_id=body.product_id,
        shade_id=body.shade_id,
        quantity=body.quantity,
    )
    return cart


@router.patch("/item/{item_id}", response_model=CartOut)
async def cart_update_item(item_id: str, body: CartUpdateQtyIn, req: Request = None, ctx=Depends(require_user)):
    cart = update_item_quantity(ctx["user_sub"], item_id, body.quantity)
    audit_event(
        "cart_item_quantity_set",
        ctx["user_sub"],
        req,
        outcome="success",
        item_id=item_id,
        quantity=body.quantity,
    )
    return cart


@router.delete("/item/{item_id}", response_model=CartOut)
async def cart_remove_item(item_id: str, req: Request = None, ctx=Depends(require_user)):
    cart = remove_item(ctx["user_sub"], item_id)
    audit_event("cart_item_removed", ctx["user_sub"], req, outcome="success", item_id=item_id)
    return cart


@router.delete("", response_model=CartOut)
async def cart_clear(req: Request = None, ctx=Depends(require_user)):
    cart = clear_cart(ctx["user_sub"])
    audit_event("cart_cleared", ctx["user_sub"], req, outcome="success")
    return cart


@router.get("/recommend", response_model=list[BundleRecommendationOut])
async def cart_recommend(ctx=Depends(require_user)):
    return recommend_bundles(ctx["user_sub"])
