from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, conint

from storefront.core.settings import S


# Cart

class CartAddIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    product_id: str = Field(min_length=1, validation_alias=AliasChoices("product_id", "productId"))
    shade_id: Optional[str] = Field(default=None, max_length=64, validation_alias=AliasChoices("shade_id", "shadeId"))
    # Missing or < 1 is clamped to 1 by the cart engine.
    quantity: Optional[int] = Field(default=None, le=S.cart_max_quantity, validation_alias=AliasChoices("quantity", "qty"))


class CartUpdateQtyIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    quantity: conint(ge=0, le=S.cart_max_quantity) = Field(validation_alias=AliasChoices("quantity", "qty"))


class CartProductOut(BaseModel):
    product_id: str
    name: str
    price_cents: int
    image_url: str
    description: str
    category: Optional[str] = None
    stock: int


class CartLineOut(BaseModel):
    item_id: str
    product_id: str
    shade_id: Optional[str] = None
    quantity: int
    product: Optional[CartProductOut] = None
    line_total_cents: Optional[int] = None


class CartOut(BaseModel):
    user_sub: str
    items: List[CartLineOut]
    total_items: int
    total_cents: int
    unavailable_items: int
    currency: str


class BundleRecommendationOut(BaseModel):
    product_id: str
    reason: str
    confidence: float


# Ratings

class RatingIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    item_id: str = Field(min_length=1, max_length=128, validation_alias=AliasChoices("item_id", "itemId"))
    item_type: str = Field(validation_alias=AliasChoices("item_type", "itemType"))
    # Validated by services.ratings, uncoerced.
    rating: Any
    review_text: Optional[str] = Field(default=None, max_length=4000, validation_alias=AliasChoices("review_text", "reviewText"))


class RatingSubmitOut(BaseModel):
    user_rating: int
    average_rating: Optional[float] = None
    total_ratings: Optional[int] = None


class RatingSummaryOut(BaseModel):
    average_rating: float
    total_ratings: int
    user_rating: Optional[int] = None


class RatingDistributionOut(BaseModel):
    distribution: Dict[str, int]
    total_ratings: int
    average_rating: float


class RatingImportOut(BaseModel):
    ok: bool = True
    imported: int


class RatingRecomputeOut(BaseModel):
    average_rating: float
    total_ratings: int
    materialized: bool


# Orders

class OrderItemIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    product_id: str = Field(min_length=1, validation_alias=AliasChoices("product_id", "productId"))
    quantity: conint(ge=1, le=S.cart_max_quantity)


class ShippingIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    full_name: str = Field(min_length=1, validation_alias=AliasChoices("full_name", "fullName"))
    address_line1: str = Field(min_length=1, validation_alias=AliasChoices("address_line1", "addressLine1"))
    address_line2: Optional[str] = Field(default=None, validation_alias=AliasChoices("address_line2", "addressLine2"))
    city: str = Field(min_length=1)
    state: Optional[str] = None
    zip_code: str = Field(min_length=1, validation_alias=AliasChoices("zip_code", "zipCode"))
    country: str = Field(min_length=1)


class OrderCreateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    items: List[OrderItemIn] = Field(default_factory=list)
    shipping: Optional[ShippingIn] = None
    total_cents: int = Field(validation_alias=AliasChoices("total_cents", "totalAmountCents"))
    payment_method: str = Field(default="card", validation_alias=AliasChoices("payment_method", "paymentMethod"))
    payment_details: Optional[Dict[str, Any]] = Field(default=None, validation_alias=AliasChoices("payment_details", "paymentDetails"))


class OrderLineOut(BaseModel):
    product_id: str
    quantity: int
    product: Optional[Dict[str, Any]] = None


class OrderOut(BaseModel):
    order_id: str
    user_sub: str
    items: List[OrderLineOut]
    shipping: Optional[Dict[str, Any]] = None
    total_cents: int
    payment_method: Optional[str] = None
    payment_details: Optional[Dict[str, Any]] = None
    status: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class OrderListOut(BaseModel):
    items: List[OrderOut]
    next_token: Optional[str] = None


class OrderStatusIn(BaseModel):
    status: str


# Wishlist

class WishlistToggleIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    product_id: str = Field(min_length=1, validation_alias=AliasChoices("product_id", "productId"))
    shade_id: Optional[str] = Field(default=None, max_length=64, validation_alias=AliasChoices("shade_id", "shadeId"))


class WishlistNotifyIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    price_drop: Optional[bool] = Field(default=None, validation_alias=AliasChoices("price_drop", "priceDrop"))
    restock: Optional[bool] = None


class WishlistItemOut(BaseModel):
    product_id: str
    shade_id: Optional[str] = None
    added_at: Optional[str] = None


class WishlistNotifyOut(BaseModel):
    price_drop: bool
    restock: bool


class WishlistOut(BaseModel):
    user_sub: str
    items: List[WishlistItemOut]
    notify: WishlistNotifyOut


class WishlistAlertOut(BaseModel):
    type: str
    product_id: str
    # price_drop
    from_cents: Optional[int] = None
    to_cents: Optional[int] = None
    # restock
    stock: Optional[int] = None


class WishlistAlertsOut(BaseModel):
    alerts: List[WishlistAlertOut]


# Catalog

class ProductCreateIn(BaseModel):
    product_id: Optional[str] = None
    name: str = Field(min_length=1)
    description: Optional[str] = None
    price_cents: int = Field(ge=0, le=10_000_000_00)
    stock: int = Field(default=0, ge=0)
    category: Optional[str] = None
    image_url: Optional[str] = None
    ingredients: List[str] = Field(default_factory=list)


class ProductPatchIn(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price_cents: Optional[int] = Field(default=None, ge=0, le=10_000_000_00)
    stock: Optional[int] = Field(default=None, ge=0)
    category: Optional[str] = None
    image_url: Optional[str] = None
    ingredients: Optional[List[str]] = None


class ProductOut(BaseModel):
    product_id: str
    name: str
    description: str
    price_cents: int
    stock: int
    category: Optional[str] = None
    image_url: str
    ingredients: List[str]
    average_rating: float
    total_ratings: int
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
