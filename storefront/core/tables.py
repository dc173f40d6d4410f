from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .aws import ddb
from .settings import S

@dataclass(frozen=True)
class Tables:
    products: Any
    price_history: Any
    carts: Any
    ratings: Any
    orders: Any
    wishlists: Any

T = Tables(
    products=ddb.Table(S.products_table_name),
    price_history=ddb.Table(S.price_history_table_name),
    carts=ddb.Table(S.carts_table_name),
    ratings=ddb.Table(S.ratings_table_name),
    orders=ddb.Table(S.orders_table_name),
    wishlists=ddb.Table(S.wishlists_table_name),
)
