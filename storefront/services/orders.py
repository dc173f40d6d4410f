from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import uuid4

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError
from fastapi import HTTPException

from storefront.core.cursor import decode_next_token, encode_next_token
from storefront.core.normalize import ddb_int
from storefront.core.settings import S
from storefront.core.tables import T
from storefront.core.time import now_iso
from storefront.metrics import ORDERS_CREATED
from storefront.services import catalog
from storefront.services.audit import is_conditional_failure, log_storage_failure

ORDER_STATUSES = ("pending", "paid", "shipped", "delivered")
PAYMENT_METHODS = ("card", "cod")


def _order_out(item: Dict[str, Any], products: Optional[Dict[str, Dict[str, Any]]] = None) -> Dict[str, Any]:
    lines = []
    for line in item.get("items", []):
        out = {"product_id": line["product_id"], "quantity": ddb_int(line.get("quantity"))}
        if products is not None:
            product = products.get(line["product_id"])
            out["product"] = catalog.product_out(product) if product else None
        lines.append(out)
    return {
        "order_id": item["order_id"],
        "user_sub": item["user_sub"],
        "items": lines,
        "shipping": item.get("shipping"),
        "total_cents": ddb_int(item.get("total_cents")),
        "payment_method": item.get("payment_method"),
        "payment_details": item.get("payment_details"),
        "status": item.get("status"),
        "created_at": item.get("created_at"),
        "updated_at": item.get("updated_at"),
    }


def create_order(
    user_sub: str,
    items: List[Dict[str, Any]],
    shipping: Optional[Dict[str, Any]],
    total_cents: int,
    payment_method: str = "card",
    payment_details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    if not items:
        raise HTTPException(400, "Order must contain at least one item")
    if not shipping:
        raise HTTPException(400, "Shipping address is required")
    if total_cents is None or int(total_cents) <= 0:
        raise HTTPException(400, "Total amount must be greater than zero")
    if payment_method not in PAYMENT_METHODS:
        raise HTTPException(400, f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")

    lines = []
    for line in items:
        product_id = str(line.get("product_id") or "").strip()
        quantity = ddb_int(line.get("quantity"), default=0)
        if not product_id or quantity < 1:
            raise HTTPException(400, "Each item needs a product_id and a quantity of at least 1")
        lines.append({"product_id": product_id, "quantity": quantity})

    requested = {line["product_id"] for line in lines}
    resolved = catalog.get_products(requested)
    if len(resolved) != len(requested):
        raise HTTPException(400, "Some products are invalid")

    order_id = uuid4().hex
    now = now_iso()
    item = {
        "order_id": order_id,
        "user_sub": user_sub,
        "items": lines,
        "shipping": {k: v for k, v in shipping.items() if v is not None},
        "total_cents": int(total_cents),
        "payment_method": payment_method,
        "status": "pending",
        "created_at": now,
        "updated_at": now,
    }
    if payment_details is not None:
        item["payment_details"] = payment_details
    try:
        T.orders.put_item(Item=item, ConditionExpression=Attr("order_id").not_exists())
    except ClientError as exc:
        raise log_storage_failure("order", exc, user_sub=user_sub) from exc
    ORDERS_CREATED.labels(payment_method=payment_method).inc()
    return _order_out(item)


def list_my_orders(user_sub: str, limit: int = 50) -> List[Dict[str, Any]]:
    try:
        resp = T.orders.query(
            IndexName=S.orders_user_index,
            KeyConditionExpression=Key("user_sub").eq(user_sub),
            ScanIndexForward=False,
            Limit=limit,
        )
    except ClientError as exc:
        raise log_storage_failure("order", exc, user_sub=user_sub) from exc
    orders = resp.get("Items", [])
    products = catalog.get_products(line["product_id"] for o in orders for line in o.get("items", []))
    return [_order_out(o, products) for o in orders]


def list_all_orders(page_size: int = 50, next_token: Optional[str] = None) -> Dict[str, Any]:
    """One scan page of every order. Newest first within the page only; pages follow table scan order."""
    kwargs: Dict[str, Any] = {"Limit": page_size}
    start_key = decode_next_token(next_token)
    if start_key:
        kwargs["ExclusiveStartKey"] = start_key
    try:
        resp = T.orders.scan(**kwargs)
    except ClientError as exc:
        raise log_storage_failure("order", exc) from exc
    items = sorted(resp.get("Items", []), key=lambda o: o.get("created_at") or "", reverse=True)
    return {
        "items": [_order_out(o) for o in items],
        "next_token": encode_next_token(resp.get("LastEvaluatedKey")),
    }


def set_order_status(order_id: str, status: str) -> Dict[str, Any]:
    # Any status may follow any other; admins use this as a manual override.
    if status not in ORDER_STATUSES:
        raise HTTPException(400, f"status must be one of {', '.join(ORDER_STATUSES)}")
    try:
        resp = T.orders.update_item(
            Key={"order_id": order_id},
            ConditionExpression=Attr("order_id").exists(),
            UpdateExpression="SET #st = :st, #updated_at = :u",
            ExpressionAttributeNames={"#st": "status", "#updated_at": "updated_at"},
            ExpressionAttributeValues={":st": status, ":u": now_iso()},
            ReturnValues="ALL_NEW",
        )
    except ClientError as exc:
        if is_conditional_failure(exc):
            raise HTTPException(404, "Order not found") from exc
        raise log_storage_failure("order", exc, order_id=order_id) from exc
    return _order_out(resp["Attributes"])
