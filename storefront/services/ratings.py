from __future__ import annotations

import csv
import io
import math
from numbers import Integral, Real
from typing import Any, Dict, Iterator, List, Optional, Tuple

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from fastapi import HTTPException

from storefront.core.normalize import ddb_int, normalize_item_id, normalize_item_type
from storefront.core.settings import S
from storefront.core.tables import T
from storefront.core.time import now_iso, parse_iso
from storefront.metrics import AGGREGATE_RECOMPUTE_FAILURES, RATINGS_IMPORTED, RATINGS_SUBMITTED
from storefront.services import catalog
from storefront.services.audit import audit_event, log_storage_failure

EXPORT_COLUMNS = ("userId", "itemId", "itemType", "rating", "createdAt")
STARS = (1, 2, 3, 4, 5)


def _item_key(item_type: str, item_id: str) -> str:
    return f"{item_type}#{item_id}"


def validate_rating_value(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise HTTPException(400, "Rating must be an integer from 1 to 5")
    if not isinstance(value, Integral):
        f = float(value)
        if not math.isfinite(f) or not f.is_integer():
            raise HTTPException(400, "Rating must be an integer from 1 to 5")
        value = int(f)
    if value < 1 or value > 5:
        raise HTTPException(400, "Rating must be an integer from 1 to 5")
    return int(value)


def _upsert(
    user_sub: str,
    item_type: str,
    item_id: str,
    rating: int,
    *,
    review_text: Optional[str],
    created_at: Optional[str] = None,
) -> Dict[str, Any]:
    """Insert or overwrite the single rating row for (item_type, item_id, user_sub).

    review_text=None keeps whatever review the row already has.
    """
    key = {"item_key": _item_key(item_type, item_id), "user_sub": user_sub}
    existing = T.ratings.get_item(Key=key).get("Item") or {}
    now = now_iso()
    item = {
        **key,
        "item_type": item_type,
        "item_id": item_id,
        "rating": int(rating),
        "review_text": existing.get("review_text", "") if review_text is None else review_text,
        "created_at": created_at or existing.get("created_at") or now,
        "updated_at": now,
    }
    T.ratings.put_item(Item=item)
    return item


def _item_ratings(item_type: str, item_id: str) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    kwargs: Dict[str, Any] = {"KeyConditionExpression": Key("item_key").eq(_item_key(item_type, item_id))}
    while True:
        resp = T.ratings.query(**kwargs)
        rows.extend(resp.get("Items", []))
        lek = resp.get("LastEvaluatedKey")
        if not lek:
            return rows
        kwargs["ExclusiveStartKey"] = lek


def _aggregate(rows: List[Dict[str, Any]]) -> Tuple[float, int]:
    total = len(rows)
    if not total:
        return 0.0, 0
    return sum(ddb_int(r.get("rating")) for r in rows) / total, total


def recompute_aggregate(item_type: str, item_id: str) -> Dict[str, Any]:
    """Full recomputation over every rating row of the item.

    Products get the result written onto their record; diary aggregates are only computed.
    Raises ClientError on storage failure.
    """
    average, total = _aggregate(_item_ratings(item_type, item_id))
    materialized = False
    if item_type == "product":
        materialized = catalog.set_rating_aggregate(item_id, average, total)
    return {"average_rating": average, "total_ratings": total, "materialized": materialized}


def _refresh_after_write(user_sub: str, item_type: str, item_id: str) -> Dict[str, Any]:
    try:
        agg = recompute_aggregate(item_type, item_id)
    except ClientError as exc:
        AGGREGATE_RECOMPUTE_FAILURES.inc()
        err = exc.response.get("Error", {})
        audit_event(
            "aggregate_recompute_failed",
            user_sub,
            item_type=item_type,
            item_id=item_id,
            error_code=err.get("Code"),
            error_message=err.get("Message"),
        )
        # The rating row is written; report what the rows say now, if they can be read.
        try:
            average, total = _aggregate(_item_ratings(item_type, item_id))
        except ClientError:
            return {"average_rating": None, "total_ratings": None}
        return {"average_rating": average, "total_ratings": total}
    return {"average_rating": agg["average_rating"], "total_ratings": agg["total_ratings"]}


def submit_rating(
    user_sub: str,
    item_id: Any,
    item_type: Any,
    rating: Any,
    review_text: Optional[str] = None,
) -> Dict[str, Any]:
    item_type = normalize_item_type(item_type)
    item_id = normalize_item_id(item_id)
    value = validate_rating_value(rating)
    try:
        _upsert(user_sub, item_type, item_id, value, review_text=review_text or "")
    except ClientError as exc:
        raise log_storage_failure("rating", exc, user_sub=user_sub, item_type=item_type, item_id=item_id) from exc
    RATINGS_SUBMITTED.labels(item_type=item_type).inc()
    return {"user_rating": value, **_refresh_after_write(user_sub, item_type, item_id)}


def _rows_or_500(item_type: str, item_id: str) -> List[Dict[str, Any]]:
    try:
        return _item_ratings(item_type, item_id)
    except ClientError as exc:
        raise log_storage_failure("rating", exc, item_type=item_type, item_id=item_id) from exc


def get_rating(item_type: Any, item_id: Any, user_sub: Optional[str] = None) -> Dict[str, Any]:
    item_type = normalize_item_type(item_type)
    item_id = normalize_item_id(item_id)
    rows = _rows_or_500(item_type, item_id)
    average, total = _aggregate(rows)
    user_rating = None
    if user_sub:
        own = next((r for r in rows if r.get("user_sub") == user_sub), None)
        user_rating = ddb_int(own["rating"]) if own else None
    return {"average_rating": average, "total_ratings": total, "user_rating": user_rating}


def get_distribution(item_type: Any, item_id: Any) -> Dict[str, Any]:
    item_type = normalize_item_type(item_type)
    item_id = normalize_item_id(item_id)
    dist = {str(star): 0 for star in STARS}
    for row in _rows_or_500(item_type, item_id):
        star = str(ddb_int(row.get("rating")))
        if star in dist:
            dist[star] += 1
    total = sum(dist.values())
    average = sum(star * dist[str(star)] for star in STARS) / total if total else 0.0
    return {"distribution": dist, "total_ratings": total, "average_rating": average}


def recompute(item_type: Any, item_id: Any) -> Dict[str, Any]:
    item_type = normalize_item_type(item_type)
    item_id = normalize_item_id(item_id)
    try:
        return recompute_aggregate(item_type, item_id)
    except ClientError as exc:
        raise log_storage_failure("rating", exc, item_type=item_type, item_id=item_id) from exc


def _parse_import_row(row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    row = {(k or "").strip(): (v or "").strip() if isinstance(v, str) else v for k, v in row.items()}
    user_sub = row.get("userId") or ""
    item_id = row.get("itemId") or ""
    if not user_sub or not item_id:
        return None
    try:
        raw = float(row.get("rating") or "")
    except ValueError:
        return None
    if not math.isfinite(raw):
        return None
    created_at = None
    if row.get("createdAt"):
        try:
            created_at = parse_iso(row["createdAt"])
        except ValueError:
            created_at = None
    return {
        "user_sub": user_sub,
        "item_id": item_id,
        "item_type": "diary" if (row.get("itemType") or "").lower() == "diary" else "product",
        "rating": max(1, min(5, math.floor(raw + 0.5))),
        "created_at": created_at,
    }


def import_ratings(text: str, *, actor: str = "") -> int:
    """Upsert every valid CSV row in file order. Returns how many rows were imported."""
    imported = 0
    reader = csv.DictReader(io.StringIO(text))
    for row in reader:
        parsed = _parse_import_row(row)
        if parsed is None:
            continue
        try:
            _upsert(
                parsed["user_sub"],
                parsed["item_type"],
                parsed["item_id"],
                parsed["rating"],
                review_text=None,
                created_at=parsed["created_at"],
            )
        except ClientError as exc:
            err = exc.response.get("Error", {})
            audit_event(
                "rating_import_row_failed",
                actor,
                line=reader.line_num,
                error_code=err.get("Code"),
                error_message=err.get("Message"),
            )
            continue
        _refresh_after_write(actor, parsed["item_type"], parsed["item_id"])
        imported += 1
    RATINGS_IMPORTED.inc(imported)
    return imported


def _csv_line(values: List[Any]) -> str:
    buf = io.StringIO()
    csv.writer(buf, lineterminator="\n").writerow(values)
    return buf.getvalue()


def export_ratings() -> Iterator[str]:
    yield _csv_line(list(EXPORT_COLUMNS))
    kwargs: Dict[str, Any] = {"Limit": S.ratings_export_page_size}
    while True:
        try:
            resp = T.ratings.scan(**kwargs)
        except ClientError as exc:
            # Headers are already sent; the truncated body is the only signal left.
            log_storage_failure("rating", exc, operation="export")
            return
        for r in resp.get("Items", []):
            yield _csv_line([r.get("user_sub"), r.get("item_id"), r.get("item_type"), ddb_int(r.get("rating")), r.get("created_at") or ""])
        lek = resp.get("LastEvaluatedKey")
        if not lek:
            return
        kwargs["ExclusiveStartKey"] = lek
