from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from storefront.auth.deps import require_user
from storefront.models import OrderCreateIn, OrderOut
from storefront.services.audit import audit_event
from storefront.services.orders import create_order, list_my_orders

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderOut, status_code=201)
async def orders_create(body: OrderCreateIn, req: Request = None, ctx=Depends(require_user)):
    order = create_order(
        ctx["user_sub"],
        [line.model_dump() for line in body.items],
        body.shipping.model_dump() if body.shipping else None,
        body.total_cents,
        body.payment_method,
        body.payment_details,
    )
    audit_event(
        "order_created",
        ctx["user_sub"],
        req,
        outcome="success",
        order_id=order["order_id"],
        total_cents=order["total_cents"],
        payment_method=order["payment_method"],
    )
    return order


@router.get("/my", response_model=list[OrderOut])
async def orders_my(ctx=Depends(require_user), limit: int = Query(50, ge=1, le=200)):
    return list_my_orders(ctx["user_sub"], limit)
