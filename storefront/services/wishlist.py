from __future__ import annotations

from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError
from fastapi import HTTPException

from storefront.core.normalize import ddb_int, normalize_shade
from storefront.core.tables import T
from storefront.core.time import now_iso
from storefront.services import catalog
from storefront.services.audit import log_storage_failure

DEFAULT_NOTIFY = {"price_drop": True, "restock": True}


def _load_wishlist(user_sub: str) -> Dict[str, Any]:
    try:
        item = T.wishlists.get_item(Key={"user_sub": user_sub}).get("Item")
    except ClientError as exc:
        raise log_storage_failure("wishlist", exc, user_sub=user_sub) from exc
    if not item:
        return {"user_sub": user_sub, "items": [], "notify": dict(DEFAULT_NOTIFY)}
    item.setdefault("items", [])
    item["notify"] = {**DEFAULT_NOTIFY, **(item.get("notify") or {})}
    return item


def _save_wishlist(wl: Dict[str, Any]) -> None:
    wl["updated_at"] = now_iso()
    try:
        T.wishlists.put_item(Item=wl)
    except ClientError as exc:
        raise log_storage_failure("wishlist", exc, user_sub=wl["user_sub"]) from exc


def _wishlist_out(wl: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "user_sub": wl["user_sub"],
        "items": [
            {"product_id": i["product_id"], "shade_id": i.get("shade_id"), "added_at": i.get("added_at")}
            for i in wl.get("items", [])
        ],
        "notify": wl["notify"],
    }


def get_wishlist(user_sub: str) -> Dict[str, Any]:
    return _wishlist_out(_load_wishlist(user_sub))


def toggle_item(user_sub: str, product_id: str, shade_id: Optional[str] = None) -> Dict[str, Any]:
    shade = normalize_shade(shade_id)
    wl = _load_wishlist(user_sub)
    items = wl["items"]
    for idx, entry in enumerate(items):
        if entry.get("product_id") == product_id and entry.get("shade_id") == shade:
            del items[idx]
            break
    else:
        if not catalog.get_product_item(product_id):
            raise HTTPException(404, "Product not found")
        items.append({"product_id": product_id, "shade_id": shade, "added_at": now_iso()})
    _save_wishlist(wl)
    return _wishlist_out(wl)


def set_notify(user_sub: str, price_drop: Optional[bool] = None, restock: Optional[bool] = None) -> Dict[str, Any]:
    wl = _load_wishlist(user_sub)
    if price_drop is not None:
        wl["notify"]["price_drop"] = bool(price_drop)
    if restock is not None:
        wl["notify"]["restock"] = bool(restock)
    _save_wishlist(wl)
    return _wishlist_out(wl)


def compute_alerts(user_sub: str) -> List[Dict[str, Any]]:
    """Price-drop and restock alerts for wishlisted products, derived on every read."""
    wl = _load_wishlist(user_sub)
    notify = wl["notify"]
    products = catalog.get_products(i["product_id"] for i in wl["items"])
    alerts: List[Dict[str, Any]] = []
    for product_id, product in products.items():
        if notify["price_drop"]:
            prices = catalog.latest_prices(product_id, 2)
            if len(prices) == 2 and prices[0] < prices[1]:
                alerts.append({"type": "price_drop", "product_id": product_id, "from_cents": prices[1], "to_cents": prices[0]})
        stock = ddb_int(product.get("stock"))
        if notify["restock"] and stock > 0:
            alerts.append({"type": "restock", "product_id": product_id, "stock": stock})
    return alerts
