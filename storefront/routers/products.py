from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query

from storefront.models import ProductOut
from storefront.services.catalog import get_product, list_products

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=list[ProductOut])
async def products_list(
    q: Optional[str] = Query(default=None, max_length=200),
    category: Optional[str] = Query(default=None),
    min_price_cents: Optional[int] = Query(default=None, ge=0),
    max_price_cents: Optional[int] = Query(default=None, ge=0),
    rating: Optional[float] = Query(default=None, ge=0, le=5, description="Minimum average rating"),
    sort: str = Query(default="newest"),
    limit: int = Query(default=100, ge=1, le=500),
):
    return list_products(
        q=q,
        category=category,
        min_price_cents=min_price_cents,
        max_price_cents=max_price_cents,
        min_rating=rating,
        sort=sort,
        limit=limit,
    )


@router.get("/{product_id}", response_model=ProductOut)
async def products_get(product_id: str):
    return get_product(product_id)
