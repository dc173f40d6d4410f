import unittest

from fastapi import HTTPException

from fakes import patched_tables, seed_product
from storefront.core.settings import S
from storefront.models import OrderItemIn
from storefront.services import cart


class TestCartAdd(unittest.TestCase):
    def test_add_same_product_and_shade_merges_into_one_line(self):
        with patched_tables() as tables:
            seed_product(tables, "p1", price_cents=1000)
            cart.add_item("user", "p1", "ivory", 1)
            resp = cart.add_item("user", "p1", "ivory", 2)
        self.assertEqual(len(resp["items"]), 1)
        self.assertEqual(resp["items"][0]["quantity"], 3)
        self.assertEqual(resp["total_items"], 3)
        self.assertEqual(resp["total_cents"], 3000)

    def test_different_shades_are_separate_lines(self):
        with patched_tables() as tables:
            seed_product(tables, "p1")
            cart.add_item("user", "p1", "ivory", 1)
            resp = cart.add_item("user", "p1", "beige", 1)
        self.assertEqual(len(resp["items"]), 2)

    def test_blank_shade_is_same_as_no_shade(self):
        with patched_tables() as tables:
            seed_product(tables, "p1")
            cart.add_item("user", "p1", None, 1)
            resp = cart.add_item("user", "p1", "  ", 1)
        self.assertEqual(len(resp["items"]), 1)
        self.assertIsNone(resp["items"][0]["shade_id"])
        self.assertEqual(resp["items"][0]["quantity"], 2)

    def test_missing_or_low_quantity_counts_as_one(self):
        with patched_tables() as tables:
            seed_product(tables, "p1")
            cart.add_item("user", "p1")
            resp = cart.add_item("user", "p1", quantity=-4)
        self.assertEqual(resp["items"][0]["quantity"], 2)

    def test_merged_quantity_is_capped_and_still_orderable(self):
        with patched_tables() as tables:
            seed_product(tables, "p1")
            for _ in range(3):
                resp = cart.add_item("user", "p1", None, S.cart_max_quantity)
        line = resp["items"][0]
        self.assertEqual(line["quantity"], S.cart_max_quantity)
        OrderItemIn(product_id=line["product_id"], quantity=line["quantity"])

    def test_single_add_above_cap_is_clamped(self):
        with patched_tables() as tables:
            seed_product(tables, "p1")
            resp = cart.add_item("user", "p1", None, S.cart_max_quantity * 5)
        self.assertEqual(resp["items"][0]["quantity"], S.cart_max_quantity)

    def test_add_unknown_product_is_404(self):
        with patched_tables() as tables:
            with self.assertRaises(HTTPException) as ctx:
                cart.add_item("user", "ghost", None, 1)
            self.assertEqual(tables.carts.items, {})
        self.assertEqual(ctx.exception.status_code, 404)

    def test_add_without_product_id_is_400(self):
        with patched_tables():
            with self.assertRaises(HTTPException) as ctx:
                cart.add_item("user", "  ", None, 1)
        self.assertEqual(ctx.exception.status_code, 400)


class TestCartUpdate(unittest.TestCase):
    def test_quantity_zero_removes_line(self):
        with patched_tables() as tables:
            seed_product(tables, "p1")
            seed_product(tables, "p2")
            cart.add_item("user", "p1", None, 1)
            added = cart.add_item("user", "p2", None, 1)
            item_id = added["items"][0]["item_id"]
            cart.update_item_quantity("user", item_id, 0)
            resp = cart.get_cart("user")
        self.assertEqual([line["product_id"] for line in resp["items"]], ["p2"])

    def test_set_quantity_replaces_value(self):
        with patched_tables() as tables:
            seed_product(tables, "p1", price_cents=250)
            added = cart.add_item("user", "p1", None, 1)
            resp = cart.update_item_quantity("user", added["items"][0]["item_id"], 4)
        self.assertEqual(resp["items"][0]["quantity"], 4)
        self.assertEqual(resp["total_cents"], 1000)

    def test_unknown_item_is_404_and_cart_unchanged(self):
        with patched_tables() as tables:
            seed_product(tables, "p1")
            cart.add_item("user", "p1", None, 2)
            before = dict(tables.carts.items[("user",)])
            with self.assertRaises(HTTPException) as ctx:
                cart.update_item_quantity("user", "missing", 5)
            after = tables.carts.items[("user",)]
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(before, after)

    def test_negative_or_fractional_quantity_is_400(self):
        with patched_tables():
            for bad in (-1, 1.5, True, "3"):
                with self.assertRaises(HTTPException) as ctx:
                    cart.update_item_quantity("user", "x", bad)
                self.assertEqual(ctx.exception.status_code, 400)

    def test_remove_item(self):
        with patched_tables() as tables:
            seed_product(tables, "p1")
            added = cart.add_item("user", "p1", None, 1)
            resp = cart.remove_item("user", added["items"][0]["item_id"])
        self.assertEqual(resp["items"], [])
        self.assertEqual(resp["total_items"], 0)

    def test_remove_unknown_item_is_404(self):
        with patched_tables():
            with self.assertRaises(HTTPException) as ctx:
                cart.remove_item("user", "missing")
        self.assertEqual(ctx.exception.status_code, 404)

    def test_clear_on_fresh_user_persists_empty_cart(self):
        with patched_tables() as tables:
            resp = cart.clear_cart("new-user")
            stored = tables.carts.items[("new-user",)]
        self.assertEqual(resp["items"], [])
        self.assertEqual(stored["items"], [])
        self.assertEqual(stored["version"], 1)


class TestCartTotals(unittest.TestCase):
    def test_totals_follow_live_price(self):
        with patched_tables() as tables:
            seed_product(tables, "p1", price_cents=1000)
            seed_product(tables, "p2", price_cents=300)
            cart.add_item("user", "p1", None, 2)
            cart.add_item("user", "p2", None, 1)
            tables.products.items[("p1",)]["price_cents"] = 800
            resp = cart.get_cart("user")
        self.assertEqual(resp["total_items"], 3)
        self.assertEqual(resp["total_cents"], 2 * 800 + 300)
        line = next(i for i in resp["items"] if i["product_id"] == "p1")
        self.assertEqual(line["line_total_cents"], 1600)
        self.assertEqual(line["product"]["price_cents"], 800)

    def test_deleted_product_line_is_kept_but_excluded_from_total(self):
        with patched_tables() as tables:
            seed_product(tables, "p1", price_cents=1000)
            seed_product(tables, "p2", price_cents=300)
            cart.add_item("user", "p1", None, 1)
            cart.add_item("user", "p2", None, 2)
            del tables.products.items[("p1",)]
            resp = cart.get_cart("user")
        self.assertEqual(len(resp["items"]), 2)
        gone = next(i for i in resp["items"] if i["product_id"] == "p1")
        self.assertIsNone(gone["product"])
        self.assertIsNone(gone["line_total_cents"])
        self.assertEqual(resp["unavailable_items"], 1)
        self.assertEqual(resp["total_items"], 3)
        self.assertEqual(resp["total_cents"], 600)

    def test_get_cart_for_new_user_does_not_write(self):
        with patched_tables() as tables:
            resp = cart.get_cart("nobody")
        self.assertEqual(resp["items"], [])
        self.assertEqual(resp["currency"], "INR")
        self.assertEqual(tables.carts.items, {})


class TestCartConcurrency(unittest.TestCase):
    def test_interleaved_adds_both_survive(self):
        with patched_tables() as tables:
            seed_product(tables, "p1")
            seed_product(tables, "p2")
            cart.add_item("user", "p1", None, 1)

            def racing_writer(_item):
                cart.add_item("user", "p2", None, 1)

            tables.carts.before_put = racing_writer
            resp = cart.add_item("user", "p1", None, 2)
        by_product = {line["product_id"]: line["quantity"] for line in resp["items"]}
        self.assertEqual(by_product, {"p1": 3, "p2": 1})

    def test_interleaved_first_writes_on_empty_cart(self):
        with patched_tables() as tables:
            seed_product(tables, "p1")
            seed_product(tables, "p2")

            def racing_writer(_item):
                cart.add_item("user", "p2", None, 1)

            tables.carts.before_put = racing_writer
            resp = cart.add_item("user", "p1", None, 1)
        self.assertEqual(sorted(line["product_id"] for line in resp["items"]), ["p1", "p2"])

    def test_gives_up_with_409_after_retries(self):
        with patched_tables() as tables:
            seed_product(tables, "p1")
            cart.add_item("user", "p1", None, 1)

            def always_bump(_item):
                tables.carts.items[("user",)]["version"] += 1
                tables.carts.before_put = always_bump

            tables.carts.before_put = always_bump
            with self.assertRaises(HTTPException) as ctx:
                cart.add_item("user", "p1", None, 1)
        self.assertEqual(ctx.exception.status_code, 409)

    def test_storage_error_is_500(self):
        with patched_tables() as tables:
            seed_product(tables, "p1")
            tables.carts.errors["PutItem"] = "ProvisionedThroughputExceededException"
            with self.assertRaises(HTTPException) as ctx:
                cart.add_item("user", "p1", None, 1)
        self.assertEqual(ctx.exception.status_code, 500)


class TestBundleRecommendations(unittest.TestCase):
    def test_foundation_in_cart_suggests_companions(self):
        with patched_tables() as tables:
            seed_product(tables, "f1", category="foundation")
            seed_product(tables, "s1", category="setting_spray")
            seed_product(tables, "pr1", category="primer")
            seed_product(tables, "l1", category="lipstick")
            cart.add_item("user", "f1", None, 1)
            cart.add_item("user", "pr1", None, 1)
            recs = cart.recommend_bundles("user")
        self.assertEqual([r["product_id"] for r in recs], ["s1"])
        self.assertEqual(recs[0]["reason"], "pairs_with_foundation")

    def test_no_foundation_no_recommendations(self):
        with patched_tables() as tables:
            seed_product(tables, "l1", category="lipstick")
            seed_product(tables, "s1", category="setting_spray")
            cart.add_item("user", "l1", None, 1)
            self.assertEqual(cart.recommend_bundles("user"), [])
            self.assertEqual(cart.recommend_bundles("empty-user"), [])
