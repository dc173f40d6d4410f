from __future__ import annotations

import importlib.util

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import StreamingResponse

from storefront.auth.deps import optional_user, require_admin, require_user
from storefront.models import (
    RatingDistributionOut,
    RatingImportOut,
    RatingIn,
    RatingSubmitOut,
    RatingSummaryOut,
)
from storefront.services.audit import audit_event
from storefront.services.ratings import (
    export_ratings,
    get_distribution,
    get_rating,
    import_ratings,
    submit_rating,
)

router = APIRouter(prefix="/ratings", tags=["ratings"])

_MULTIPART_AVAILABLE = any(importlib.util.find_spec(name) is not None for name in ("python_multipart", "multipart"))


@router.post("", response_model=RatingSubmitOut)
async def ratings_submit(body: RatingIn, req: Request = None, ctx=Depends(require_user)):
    result = submit_rating(ctx["user_sub"], body.item_id, body.item_type, body.rating, body.review_text)
    audit_event(
        "rating_submitted",
        ctx["user_sub"],
        req,
        outcome="success",
        item_type=body.item_type,
        item_id=body.item_id,
        rating=body.rating,
    )
    return result


@router.get("/export")
async def ratings_export():
    return StreamingResponse(
        export_ratings(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="ratings.csv"'},
    )


async def _ratings_upload_unavailable(ctx=Depends(require_admin)):
    raise HTTPException(501, "python-multipart is required for uploads")


if _MULTIPART_AVAILABLE:
    @router.post("/upload", response_model=RatingImportOut)
    async def ratings_upload(file: UploadFile = File(...), req: Request = None, ctx=Depends(require_admin)):
        content = await file.read()
        if not content:
            raise HTTPException(400, "CSV file is required")
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise HTTPException(400, "CSV file must be UTF-8") from exc
        imported = import_ratings(text, actor=ctx["user_sub"])
        audit_event(
            "ratings_imported",
            ctx["user_sub"],
            req,
            outcome="success",
            file_name=file.filename,
            imported=imported,
        )
        return {"ok": True, "imported": imported}
else:
    router.post("/upload")(_ratings_upload_unavailable)


@router.get("/{item_type}/{item_id}", response_model=RatingSummaryOut)
async def ratings_get(item_type: str, item_id: str, ctx=Depends(optional_user)):
    return get_rating(item_type, item_id, ctx["user_sub"] if ctx else None)


@router.get("/{item_type}/{item_id}/distribution", response_model=RatingDistributionOut)
async def ratings_distribution(item_type: str, item_id: str):
    return get_distribution(item_type, item_id)
