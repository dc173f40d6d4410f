from __future__ import annotations

import uuid
from numbers import Integral
from typing import Any, Callable, Dict, List, Optional

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError
from fastapi import HTTPException

from storefront.core.normalize import ddb_int, normalize_shade
from storefront.core.settings import S
from storefront.core.tables import T
from storefront.core.time import now_iso
from storefront.metrics import CART_MUTATIONS, CART_WRITE_CONFLICTS
from storefront.services import catalog
from storefront.services.audit import is_conditional_failure, log_storage_failure

BUNDLE_TRIGGER_CATEGORY = "foundation"
BUNDLE_CATEGORIES = ("setting_spray", "primer", "loose_powder")
BUNDLE_LIMIT = 6


def _new_cart(user_sub: str) -> Dict[str, Any]:
    now = now_iso()
    return {"user_sub": user_sub, "items": [], "version": 0, "created_at": now, "updated_at": now}


def _load_cart(user_sub: str) -> Dict[str, Any]:
    """Find-or-create for the per-user cart document. New carts are not persisted until written."""
    try:
        item = T.carts.get_item(Key={"user_sub": user_sub}).get("Item")
    except ClientError as exc:
        raise log_storage_failure("cart", exc, user_sub=user_sub) from exc
    if not item:
        return _new_cart(user_sub)
    item.setdefault("items", [])
    return item


def _save_cart(cart: Dict[str, Any]) -> bool:
    expected = ddb_int(cart.get("version"))
    if expected:
        condition = Attr("version").eq(expected)
    else:
        condition = Attr("version").not_exists()
    updated = {**cart, "version": expected + 1, "updated_at": now_iso()}
    try:
        T.carts.put_item(Item=updated, ConditionExpression=condition)
    except ClientError as exc:
        if is_conditional_failure(exc):
            return False
        raise log_storage_failure("cart", exc, user_sub=cart["user_sub"]) from exc
    cart.update(updated)
    return True


def _mutate_cart(user_sub: str, op: str, apply: Callable[[Dict[str, Any]], None]) -> Dict[str, Any]:
    # apply() may raise before anything is written; on a lost race it is re-run on a fresh read.
    for _ in range(max(1, S.cart_write_retries + 1)):
        cart = _load_cart(user_sub)
        apply(cart)
        if _save_cart(cart):
            CART_MUTATIONS.labels(op=op).inc()
            return cart
        CART_WRITE_CONFLICTS.inc()
    raise HTTPException(status_code=409, detail="Cart was updated concurrently, please retry")


def _find_line(cart: Dict[str, Any], item_id: str) -> int:
    for idx, line in enumerate(cart.get("items", [])):
        if line.get("item_id") == item_id:
            return idx
    raise HTTPException(status_code=404, detail="Cart item not found")


def _product_summary(product: Dict[str, Any]) -> Dict[str, Any]:
    p = catalog.product_out(product)
    return {
        "product_id": p["product_id"],
        "name": p["name"],
        "price_cents": p["price_cents"],
        "image_url": p["image_url"],
        "description": p["description"],
        "category": p["category"],
        "stock": p["stock"],
    }


def cart_view(cart: Dict[str, Any]) -> Dict[str, Any]:
    """Join line items with live product data and compute totals. Nothing here is stored."""
    lines = cart.get("items", [])
    products = catalog.get_products(line["product_id"] for line in lines)
    items: List[Dict[str, Any]] = []
    total_items = 0
    total_cents = 0
    unavailable = 0
    for line in lines:
        qty = ddb_int(line.get("quantity"))
        product = products.get(line["product_id"])
        summary = _product_summary(product) if product else None
        line_total = qty * summary["price_cents"] if summary else None
        total_items += qty
        if line_total is None:
            unavailable += 1
        else:
            total_cents += line_total
        items.append(
            {
                "item_id": line["item_id"],
                "product_id": line["product_id"],
                "shade_id": line.get("shade_id"),
                "quantity": qty,
                "product": summary,
                "line_total_cents": line_total,
            }
        )
    return {
        "user_sub": cart["user_sub"],
        "items": items,
        "total_items": total_items,
        "total_cents": total_cents,
        "unavailable_items": unavailable,
        "currency": S.default_currency,
    }


def get_cart(user_sub: str) -> Dict[str, Any]:
    return cart_view(_load_cart(user_sub))


def _coerce_add_quantity(quantity: Any) -> int:
    if quantity is None or isinstance(quantity, bool):
        return 1
    try:
        q = int(quantity)
    except (TypeError, ValueError):
        return 1
    return min(max(1, q), S.cart_max_quantity)


def add_item(user_sub: str, product_id: str, shade_id: Optional[str] = None, quantity: Any = None) -> Dict[str, Any]:
    product_id = (product_id or "").strip()
    if not product_id:
        raise HTTPException(status_code=400, detail="product_id is required")
    if not catalog.get_product_item(product_id):
        raise HTTPException(status_code=404, detail="Product not found")

    shade = normalize_shade(shade_id)
    qty = _coerce_add_quantity(quantity)

    def apply(cart: Dict[str, Any]) -> None:
        for line in cart["items"]:
            if line.get("product_id") == product_id and line.get("shade_id") == shade:
                line["quantity"] = min(ddb_int(line.get("quantity")) + qty, S.cart_max_quantity)
                return
        cart["items"].append(
            {
                "item_id": uuid.uuid4().hex,
                "product_id": product_id,
                "shade_id": shade,
                "quantity": qty,
                "added_at": now_iso(),
            }
        )

    return cart_view(_mutate_cart(user_sub, "add", apply))


def _validate_quantity(quantity: Any) -> int:
    if isinstance(quantity, bool):
        raise HTTPException(status_code=400, detail="quantity must be a non-negative integer")
    if isinstance(quantity, float) and quantity.is_integer():
        quantity = int(quantity)
    if not isinstance(quantity, Integral) or quantity < 0:
        raise HTTPException(status_code=400, detail="quantity must be a non-negative integer")
    return int(quantity)


def update_item_quantity(user_sub: str, item_id: str, quantity: Any) -> Dict[str, Any]:
    qty = _validate_quantity(quantity)

    def apply(cart: Dict[str, Any]) -> None:
        idx = _find_line(cart, item_id)
        if qty == 0:
            del cart["items"][idx]
        else:
            cart["items"][idx]["quantity"] = qty

    return cart_view(_mutate_cart(user_sub, "set_quantity", apply))


def remove_item(user_sub: str, item_id: str) -> Dict[str, Any]:
    def apply(cart: Dict[str, Any]) -> None:
        del cart["items"][_find_line(cart, item_id)]

    return cart_view(_mutate_cart(user_sub, "remove", apply))


def clear_cart(user_sub: str) -> Dict[str, Any]:
    def apply(cart: Dict[str, Any]) -> None:
        cart["items"] = []

    return cart_view(_mutate_cart(user_sub, "clear", apply))


def recommend_bundles(user_sub: str) -> List[Dict[str, Any]]:
    cart = _load_cart(user_sub)
    if not cart["items"]:
        return []
    in_cart = catalog.get_products(line["product_id"] for line in cart["items"])
    categories = {p.get("category") for p in in_cart.values()}
    if BUNDLE_TRIGGER_CATEGORY not in categories:
        return []
    recs: List[Dict[str, Any]] = []
    for product in catalog.list_products(limit=10_000):
        if product["category"] not in BUNDLE_CATEGORIES or product["product_id"] in in_cart:
            continue
        recs.append({"product_id": product["product_id"], "reason": "pairs_with_foundation", "confidence": 0.8})
        if len(recs) >= BUNDLE_LIMIT:
            break
    return recs
