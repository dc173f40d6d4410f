from __future__ import annotations

import uuid
from typing import Any, Dict, Iterable, List, Optional

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError
from fastapi import HTTPException

from storefront.core.normalize import ddb_float, ddb_int, search_tokens, to_ddb_decimal
from storefront.core.tables import T
from storefront.core.time import now_iso
from storefront.services.audit import is_conditional_failure, log_storage_failure

SORTS = ("newest", "price_asc", "price_desc", "rating_desc")

# Fields an admin may write. The rating aggregate is owned by the rating engine.
_EDITABLE_FIELDS = ("name", "description", "price_cents", "stock", "category", "image_url", "ingredients")


def _price_sk(at: str) -> str:
    return f"PRICE#{at}#{uuid.uuid4().hex}"


def product_out(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "product_id": item["product_id"],
        "name": item.get("name", ""),
        "description": item.get("description", ""),
        "price_cents": ddb_int(item.get("price_cents")),
        "stock": ddb_int(item.get("stock")),
        "category": item.get("category"),
        "image_url": item.get("image_url", ""),
        "ingredients": list(item.get("ingredients") or []),
        "average_rating": ddb_float(item.get("average_rating")),
        "total_ratings": ddb_int(item.get("total_ratings")),
        "created_at": item.get("created_at"),
        "updated_at": item.get("updated_at"),
    }


def get_product_item(product_id: str) -> Optional[Dict[str, Any]]:
    try:
        return T.products.get_item(Key={"product_id": product_id}).get("Item")
    except ClientError as exc:
        raise log_storage_failure("catalog", exc, product_id=product_id) from exc


def get_product(product_id: str) -> Dict[str, Any]:
    item = get_product_item(product_id)
    if not item:
        raise HTTPException(status_code=404, detail="Product not found")
    return product_out(item)


def get_products(product_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Fetch products by id. Ids that no longer resolve are absent from the result."""
    found: Dict[str, Dict[str, Any]] = {}
    for product_id in dict.fromkeys(product_ids):
        item = get_product_item(product_id)
        if item:
            found[product_id] = item
    return found


def _scan_all() -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = []
    kwargs: Dict[str, Any] = {}
    try:
        while True:
            resp = T.products.scan(**kwargs)
            items.extend(resp.get("Items", []))
            lek = resp.get("LastEvaluatedKey")
            if not lek:
                break
            kwargs["ExclusiveStartKey"] = lek
    except ClientError as exc:
        raise log_storage_failure("catalog", exc) from exc
    return items


def _matches(tokens: List[str], item: Dict[str, Any]) -> bool:
    haystack = " ".join([str(item.get("name", "")), str(item.get("category", "") or "")]).lower()
    return all(token in haystack for token in tokens)


def list_products(
    *,
    q: Optional[str] = None,
    category: Optional[str] = None,
    min_price_cents: Optional[int] = None,
    max_price_cents: Optional[int] = None,
    min_rating: Optional[float] = None,
    sort: str = "newest",
    limit: int = 100,
) -> List[Dict[str, Any]]:
    if sort not in SORTS:
        raise HTTPException(status_code=400, detail=f"sort must be one of {', '.join(SORTS)}")
    tokens = search_tokens(q or "")
    out: List[Dict[str, Any]] = []
    for item in _scan_all():
        product = product_out(item)
        if tokens and not _matches(tokens, item):
            continue
        if category and product["category"] != category:
            continue
        if min_price_cents is not None and product["price_cents"] < min_price_cents:
            continue
        if max_price_cents is not None and product["price_cents"] > max_price_cents:
            continue
        if min_rating is not None and product["average_rating"] < min_rating:
            continue
        out.append(product)

    if sort == "price_asc":
        out.sort(key=lambda p: p["price_cents"])
    elif sort == "price_desc":
        out.sort(key=lambda p: p["price_cents"], reverse=True)
    elif sort == "rating_desc":
        out.sort(key=lambda p: (p["average_rating"], p["total_ratings"]), reverse=True)
    else:
        out.sort(key=lambda p: p.get("created_at") or "", reverse=True)
    return out[:limit]


def record_price(product_id: str, price_cents: int, at: Optional[str] = None) -> None:
    at = at or now_iso()
    try:
        T.price_history.put_item(
            Item={
                "product_id": product_id,
                "sk": _price_sk(at),
                "price_cents": int(price_cents),
                "date": at,
            }
        )
    except ClientError as exc:
        raise log_storage_failure("catalog", exc, product_id=product_id) from exc


def latest_prices(product_id: str, n: int = 2) -> List[int]:
    """Most recent prices first."""
    try:
        resp = T.price_history.query(
            KeyConditionExpression=Key("product_id").eq(product_id) & Key("sk").begins_with("PRICE#"),
            ScanIndexForward=False,
            Limit=n,
        )
    except ClientError as exc:
        raise log_storage_failure("catalog", exc, product_id=product_id) from exc
    return [ddb_int(item.get("price_cents")) for item in resp.get("Items", [])]


def create_product(body: Dict[str, Any]) -> Dict[str, Any]:
    product_id = body.get("product_id") or uuid.uuid4().hex
    now = now_iso()
    item: Dict[str, Any] = {
        "product_id": product_id,
        "name": body["name"],
        "description": body.get("description") or "",
        "price_cents": int(body["price_cents"]),
        "stock": int(body.get("stock") or 0),
        "image_url": body.get("image_url") or "",
        "ingredients": list(body.get("ingredients") or []),
        "average_rating": to_ddb_decimal(0),
        "total_ratings": 0,
        "created_at": now,
        "updated_at": now,
    }
    if body.get("category"):
        item["category"] = body["category"]
    try:
        T.products.put_item(Item=item, ConditionExpression=Attr("product_id").not_exists())
    except ClientError as exc:
        if is_conditional_failure(exc):
            raise HTTPException(status_code=409, detail="Product already exists.") from exc
        raise log_storage_failure("catalog", exc, product_id=product_id) from exc
    record_price(product_id, item["price_cents"], at=now)
    return product_out(item)


def update_product(product_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
    existing = get_product_item(product_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Product not found")

    now = now_iso()
    names: Dict[str, str] = {"#updated_at": "updated_at"}
    values: Dict[str, Any] = {":updated_at": now}
    updates: List[str] = ["#updated_at = :updated_at"]
    for field in _EDITABLE_FIELDS:
        if patch.get(field) is None:
            continue
        names[f"#{field}"] = field
        values[f":{field}"] = patch[field]
        updates.append(f"#{field} = :{field}")

    if len(updates) == 1:
        raise HTTPException(status_code=400, detail="No fields to update.")

    try:
        resp = T.products.update_item(
            Key={"product_id": product_id},
            ConditionExpression=Attr("product_id").exists(),
            UpdateExpression="SET " + ", ".join(updates),
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values,
            ReturnValues="ALL_NEW",
        )
    except ClientError as exc:
        if is_conditional_failure(exc):
            raise HTTPException(status_code=404, detail="Product not found") from exc
        raise log_storage_failure("catalog", exc, product_id=product_id) from exc

    new_price = patch.get("price_cents")
    if new_price is not None and int(new_price) != ddb_int(existing.get("price_cents")):
        record_price(product_id, int(new_price), at=now)
    return product_out(resp.get("Attributes") or {**existing, **patch, "updated_at": now})


def delete_product(product_id: str) -> None:
    try:
        T.products.delete_item(
            Key={"product_id": product_id},
            ConditionExpression=Attr("product_id").exists(),
        )
    except ClientError as exc:
        if is_conditional_failure(exc):
            raise HTTPException(status_code=404, detail="Product not found") from exc
        raise log_storage_failure("catalog", exc, product_id=product_id) from exc


def set_rating_aggregate(product_id: str, average: float, total: int) -> bool:
    """Persist the rating aggregate onto the product. False when the product no longer exists.

    Storage errors other than a missing product propagate as ClientError.
    """
    try:
        T.products.update_item(
            Key={"product_id": product_id},
            ConditionExpression=Attr("product_id").exists(),
            UpdateExpression="SET #avg = :avg, #total = :total",
            ExpressionAttributeNames={"#avg": "average_rating", "#total": "total_ratings"},
            ExpressionAttributeValues={":avg": to_ddb_decimal(average), ":total": int(total)},
        )
    except ClientError as exc:
        if is_conditional_failure(exc):
            return False
        raise
    return True
