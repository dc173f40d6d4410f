from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from storefront.auth.deps import require_admin
from storefront.models import (
    OrderListOut,
    OrderOut,
    OrderStatusIn,
    ProductCreateIn,
    ProductOut,
    ProductPatchIn,
    RatingRecomputeOut,
)
from storefront.services.audit import audit_event
from storefront.services.catalog import create_product, delete_product, list_products, update_product
from storefront.services.orders import list_all_orders, set_order_status
from storefront.services.ratings import recompute

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/products", response_model=list[ProductOut])
async def admin_list_products(ctx=Depends(require_admin), limit: int = Query(default=500, ge=1, le=5000)):
    return list_products(limit=limit)


@router.post("/products", response_model=ProductOut, status_code=201)
async def admin_create_product(body: ProductCreateIn, req: Request = None, ctx=Depends(require_admin)):
    product = create_product(body.model_dump())
    audit_event("product_created", ctx["user_sub"], req, outcome="success", product_id=product["product_id"])
    return product


@router.put("/products/{product_id}", response_model=ProductOut)
async def admin_update_product(product_id: str, body: ProductPatchIn, req: Request = None, ctx=Depends(require_admin)):
    patch = body.model_dump(exclude_none=True)
    product = update_product(product_id, patch)
    audit_event(
        "product_updated",
        ctx["user_sub"],
        req,
        outcome="success",
        product_id=product_id,
        fields=",".join(sorted(patch)),
    )
    return product


@router.delete("/products/{product_id}")
async def admin_delete_product(product_id: str, req: Request = None, ctx=Depends(require_admin)):
    delete_product(product_id)
    audit_event("product_deleted", ctx["user_sub"], req, outcome="success", product_id=product_id)
    return {"ok": True}


@router.get("/orders", response_model=OrderListOut)
async def admin_list_orders(
    ctx=Depends(require_admin),
    page_size: int = Query(default=50, ge=1, le=200),
    next_token: Optional[str] = Query(default=None),
):
    return list_all_orders(page_size, next_token)


@router.patch("/orders/{order_id}/status", response_model=OrderOut)
async def admin_set_order_status(order_id: str, body: OrderStatusIn, req: Request = None, ctx=Depends(require_admin)):
    order = set_order_status(order_id, body.status)
    audit_event("order_status_set", ctx["user_sub"], req, outcome="success", order_id=order_id, status=body.status)
    return order


@router.post("/ratings/{item_type}/{item_id}/recompute", response_model=RatingRecomputeOut)
async def admin_recompute_rating(item_type: str, item_id: str, req: Request = None, ctx=Depends(require_admin)):
    result = recompute(item_type, item_id)
    audit_event(
        "rating_aggregate_recomputed",
        ctx["user_sub"],
        req,
        outcome="success",
        item_type=item_type,
        item_id=item_id,
        total_ratings=result["total_ratings"],
    )
    return result
