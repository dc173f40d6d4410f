import unittest
from decimal import Decimal

from fastapi import HTTPException

from fakes import patched_tables, seed_product
from storefront.services import catalog


class TestCatalogAdmin(unittest.TestCase):
    def test_create_starts_with_empty_rating_and_records_price(self):
        with patched_tables() as tables:
            product = catalog.create_product({"name": "Kajal", "price_cents": 450, "category": "eyes"})
            history = catalog.latest_prices(product["product_id"])
        self.assertEqual(product["average_rating"], 0.0)
        self.assertEqual(product["total_ratings"], 0)
        self.assertEqual(product["category"], "eyes")
        self.assertEqual(history, [450])
        self.assertEqual(len(tables.price_history.items), 1)

    def test_create_duplicate_id_is_409(self):
        with patched_tables() as tables:
            seed_product(tables, "p1")
            with self.assertRaises(HTTPException) as ctx:
                catalog.create_product({"product_id": "p1", "name": "Dup", "price_cents": 1})
        self.assertEqual(ctx.exception.status_code, 409)

    def test_update_ignores_rating_fields(self):
        with patched_tables() as tables:
            seed_product(tables, "p1", average_rating=Decimal("4.5"), total_ratings=2)
            updated = catalog.update_product("p1", {"name": "Renamed", "average_rating": 1, "total_ratings": 99})
        self.assertEqual(updated["name"], "Renamed")
        self.assertEqual(updated["average_rating"], 4.5)
        self.assertEqual(updated["total_ratings"], 2)

    def test_update_records_price_only_on_change(self):
        with patched_tables() as tables:
            seed_product(tables, "p1", price_cents=1000)
            catalog.update_product("p1", {"price_cents": 1000, "stock": 2})
            self.assertEqual(len(tables.price_history.items), 0)
            catalog.update_product("p1", {"price_cents": 800})
            self.assertEqual(catalog.latest_prices("p1"), [800])

    def test_update_missing_or_empty(self):
        with patched_tables() as tables:
            with self.assertRaises(HTTPException) as missing:
                catalog.update_product("ghost", {"name": "x"})
            seed_product(tables, "p1")
            with self.assertRaises(HTTPException) as empty:
                catalog.update_product("p1", {})
        self.assertEqual(missing.exception.status_code, 404)
        self.assertEqual(empty.exception.status_code, 400)

    def test_delete(self):
        with patched_tables() as tables:
            seed_product(tables, "p1")
            catalog.delete_product("p1")
            with self.assertRaises(HTTPException) as ctx:
                catalog.delete_product("p1")
            self.assertEqual(tables.products.items, {})
        self.assertEqual(ctx.exception.status_code, 404)


class TestCatalogListing(unittest.TestCase):
    def _seed(self, tables):
        seed_product(tables, "a", price_cents=300, name="Matte Lipstick", category="lips", average_rating=Decimal("4.2"), created_at="2024-01-03")
        seed_product(tables, "b", price_cents=1200, name="Liquid Foundation", category="foundation", average_rating=Decimal("3.9"), created_at="2024-01-01")
        seed_product(tables, "c", price_cents=800, name="Glossy Lipstick", category="lips", average_rating=Decimal("4.8"), created_at="2024-01-02")

    def test_filters_and_search(self):
        with patched_tables() as tables:
            self._seed(tables)
            by_query = catalog.list_products(q="lipstick")
            by_category = catalog.list_products(category="foundation")
            by_price = catalog.list_products(min_price_cents=500, max_price_cents=1000)
            by_rating = catalog.list_products(min_rating=4.5)
        self.assertEqual({p["product_id"] for p in by_query}, {"a", "c"})
        self.assertEqual([p["product_id"] for p in by_category], ["b"])
        self.assertEqual([p["product_id"] for p in by_price], ["c"])
        self.assertEqual([p["product_id"] for p in by_rating], ["c"])

    def test_sorts(self):
        with patched_tables() as tables:
            self._seed(tables)
            newest = catalog.list_products()
            cheap = catalog.list_products(sort="price_asc")
            dear = catalog.list_products(sort="price_desc", limit=1)
            best = catalog.list_products(sort="rating_desc")
        self.assertEqual([p["product_id"] for p in newest], ["a", "c", "b"])
        self.assertEqual([p["product_id"] for p in cheap], ["a", "c", "b"])
        self.assertEqual([p["product_id"] for p in dear], ["b"])
        self.assertEqual([p["product_id"] for p in best], ["c", "a", "b"])

    def test_unknown_sort_is_400(self):
        with patched_tables():
            with self.assertRaises(HTTPException) as ctx:
                catalog.list_products(sort="random")
        self.assertEqual(ctx.exception.status_code, 400)

    def test_get_product_missing_is_404(self):
        with patched_tables():
            with self.assertRaises(HTTPException) as ctx:
                catalog.get_product("nope")
        self.assertEqual(ctx.exception.status_code, 404)

    def test_get_products_skips_missing(self):
        with patched_tables() as tables:
            seed_product(tables, "a")
            found = catalog.get_products(["a", "missing", "a"])
        self.assertEqual(list(found), ["a"])
