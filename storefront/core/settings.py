from __future__ import annotations

import os
from dataclasses import dataclass


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default) not in ("0", "false", "False")


@dataclass(frozen=True)
class Settings:
    # AWS
    aws_region: str = os.environ.get("AWS_REGION", "us-east-1")
    ddb_endpoint_url: str = os.environ.get("DDB_ENDPOINT_URL", "")  # DynamoDB Local, e.g. http://localhost:8001

    # DynamoDB tables
    products_table_name: str = os.environ.get("PRODUCTS_TABLE_NAME", "products")
    price_history_table_name: str = os.environ.get("PRICE_HISTORY_TABLE_NAME", "price_history")
    carts_table_name: str = os.environ.get("CARTS_TABLE_NAME", "carts")
    ratings_table_name: str = os.environ.get("RATINGS_TABLE_NAME", "ratings")
    orders_table_name: str = os.environ.get("ORDERS_TABLE_NAME", "orders")
    orders_user_index: str = os.environ.get("ORDERS_USER_INDEX", "user_sub-index")
    wishlists_table_name: str = os.environ.get("WISHLISTS_TABLE_NAME", "wishlists")

    # Auth (tokens are issued elsewhere; we only verify them)
    jwt_secret: str = os.environ.get("JWT_SECRET", "dev_secret")
    jwt_algorithm: str = os.environ.get("JWT_ALGORITHM", "HS256")
    auth_dev_header_enabled: bool = _flag("AUTH_DEV_HEADER_ENABLED", "0")

    # Cart
    cart_write_retries: int = int(os.environ.get("CART_WRITE_RETRIES", "3"))
    cart_max_quantity: int = int(os.environ.get("CART_MAX_QUANTITY", "1000"))
    default_currency: str = os.environ.get("DEFAULT_CURRENCY", "INR")

    # Ratings
    ratings_export_page_size: int = int(os.environ.get("RATINGS_EXPORT_PAGE_SIZE", "500"))

    # Observability
    audit_log_enabled: bool = _flag("AUDIT_LOG_ENABLED", "1")
    metrics_enabled: bool = _flag("METRICS_ENABLED", "1")


S = Settings()
