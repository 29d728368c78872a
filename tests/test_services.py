from datetime import datetime

import pytest

from database import flatten_fields, utcnow
from errors import RuleViolation, StoreError
from services import (
    CollectionService, OrderService, ProductService, SettingsService,
    apply_product_defaults, build_services,
)
from config import AppConfig
from conftest import FailingStore, make_product


class TestCollectionService:

    def test_create_is_listed_with_id_and_timestamp(self, services):
        before = utcnow()
        new_id = services.categories.create({"name": "Spices", "is_active": True})
        listed = services.categories.list_all()
        assert len(listed) == 1
        record = listed[0]
        assert record["id"] == new_id
        assert record["name"] == "Spices"
        assert record["is_active"] is True
        assert record["timestamp"] >= before

    def test_blog_posts_use_created_at(self, services):
        post_id = services.blogs.create({"name": "One", "category": "DIY"})
        post = services.blogs.read(post_id)
        assert "createdAt" in post
        assert "timestamp" not in post

    def test_ordered_collections_list_newest_first(self, services, store):
        for day in (3, 1, 2):
            store.insert("enquiries", f"e{day}", {"type": "General", "timestamp": datetime(2024, 5, day)})
        assert [e["id"] for e in services.enquiries.list_all()] == ["e3", "e2", "e1"]

    def test_client_supplied_id_is_replaced(self, services):
        new_id = services.categories.create({"id": "mine", "name": "Tea"})
        assert new_id != "mine"
        assert services.categories.read("mine") is None

    def test_read_missing_returns_none(self, services):
        assert services.categories.read("missing") is None

    def test_update_merges_fields(self, services):
        cat_id = services.categories.create({"name": "Tea", "arabic_name": "شاي"})
        assert services.categories.update(cat_id, {"is_active": False}) is True
        record = services.categories.read(cat_id)
        assert record["arabic_name"] == "شاي"
        assert record["is_active"] is False

    def test_update_and_delete_missing(self, services):
        assert services.categories.update("missing", {"name": "x"}) is False
        assert services.categories.delete("missing") is False

    def test_delete(self, services):
        cat_id = services.categories.create({"name": "Tea"})
        assert services.categories.delete(cat_id) is True
        assert services.categories.list_all() == []

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_blank_name_is_rejected_before_writing(self, services, store, name):
        with pytest.raises(RuleViolation, match="Category name cannot be empty"):
            services.categories.create({"name": name})
        assert store.find("category") == []

    def test_store_failures(self):
        service = CollectionService(FailingStore(), "category", "Category")
        assert service.list_all() == []
        assert service.read("x") is None
        with pytest.raises(StoreError, match="Failed to save category"):
            service.create({"name": "Tea"})
        with pytest.raises(StoreError):
            service.update("x", {"name": "Tea"})
        with pytest.raises(StoreError):
            service.delete("x")


class TestProducts:

    def test_defaults_are_applied(self, services):
        product_id = services.products.create(make_product())
        product = services.products.read(product_id)
        assert product["sku"] == ""
        assert product["inventory"] == {"stock": 0, "lowStockThreshold": 5}
        assert product["tax"] == {"taxClass": "standard", "taxRate": 0}
        assert product["seo"]["keywords"] == ""

    def test_defaults_keep_existing_values(self):
        product = apply_product_defaults({"sku": "T-1", "tax": {"taxRate": 5}})
        assert product["sku"] == "T-1"
        assert product["tax"] == {"taxClass": "standard", "taxRate": 5}

    def test_needs_a_variant(self, services):
        with pytest.raises(RuleViolation, match="at least one variant"):
            services.products.create(make_product(variants=[]))

    def test_active_needs_active_variant(self, services):
        inactive = [{"name": "1kg", "is_active": False}]
        with pytest.raises(RuleViolation, match="active variant"):
            services.products.create(make_product(variants=inactive))
        product_id = services.products.create(make_product(active=False, variants=inactive))
        with pytest.raises(RuleViolation):
            services.products.update(product_id, {"is_active": True})

    def test_variant_rewrite_is_validated(self, services):
        product_id = services.products.create(make_product())
        with pytest.raises(RuleViolation):
            services.products.update(product_id, {"variants": []})
        assert len(services.products.read(product_id)["variants"]) == 1

    def test_active_variants_only(self, services):
        variants = [{"name": "a", "is_active": True}, {"name": "b", "is_active": False}]
        product_id = services.products.create(make_product(variants=variants))
        assert len(services.products.read(product_id)["variants"]) == 2
        only = services.products.read(product_id, active_variants_only=True)["variants"]
        assert [v["name"] for v in only] == ["a"]

    def test_list_adds_category_name_and_legacy_variants(self, services, store):
        cat_id = services.categories.create({"name": "Tea"})
        services.products.create(make_product(name="Assam", category_id=cat_id))
        store.insert("Products", "legacy", {"id": "legacy", "name": "Old", "category_id": "gone"})
        store.insert("PRODUCT_VARIANT", "v1", {"product_id": "legacy", "name": "500g", "is_active": True})
        products = {p["name"]: p for p in services.products.list_all()}
        assert products["Assam"]["category_name"] == "Tea"
        assert products["Old"]["category_name"] == "Unknown"
        assert [v["name"] for v in products["Old"]["variants"]] == ["500g"]

    def test_toggle_guard(self, services):
        service = services.products
        with pytest.raises(RuleViolation):
            service.check_toggle({"variants": []}, "is_active", True)
        service.check_toggle({"variants": []}, "is_active", False)
        service.check_toggle({"variants": []}, "is_featured", True)

    def test_reviews(self, services):
        product_id = services.products.create(make_product())
        services.products.add_review(product_id, {"user_name": "Ana", "rating": 5})
        services.products.add_review("other", {"user_name": "Ben", "rating": 2})
        reviews = services.products.get_reviews(product_id)
        assert [r["user_name"] for r in reviews] == ["Ana"]
        assert reviews[0]["product_id"] == product_id

    def test_reviews_on_failing_store(self):
        service = ProductService(FailingStore(), "Products", "Product")
        assert service.get_reviews("x") == []
        with pytest.raises(StoreError):
            service.add_review("x", {"user_name": "Ana", "rating": 5})


class TestOrders:

    def test_set_status(self, services):
        order_id = services.orders.create({"userId": "u1", "status": "Order placed", "totalAmount": 20})
        assert services.orders.set_status(order_id, "Order shipped") is True
        assert services.orders.read(order_id)["status"] == "Order shipped"
        assert services.orders.set_status("missing", "Order shipped") is False

    def test_describe_fills_placeholders(self):
        detail = OrderService.describe({
            "id": "o1",
            "status": "Order delivered",
            "address": {"name": "Sara", "landMark": "Mall"},
            "cartItems": [{"productName": "Tea", "quantity": "2", "variantPrice": "4.5"}],
        }, "ar")
        assert detail["status_label"] == "تم تسليم الطلب"
        assert detail["paymentMethod"] == "N/A"
        assert detail["address"]["landmark"] == "Mall"
        assert detail["address"]["district"] == "N/A"
        item = detail["cartItems"][0]
        assert (item["quantity"], item["price"]) == (2, 4.5)
        assert item["variantName"] == "Unknown Variant"

    def test_describe_unknown_language_falls_back(self):
        detail = OrderService.describe({"status": "Order placed"}, "fr")
        assert detail["status_label"] == "Order placed"
        assert detail["id"] == "N/A"


class TestUsers:

    def test_password_is_never_stored(self, services, store):
        user_id = services.users.create({"name": "Ana", "email": "ana@example.com", "password": "hunter2"})
        assert "password" not in store.get("users", user_id)

    def test_email_required(self, services):
        with pytest.raises(RuleViolation, match="User email cannot be empty"):
            services.users.create({"name": "Ana", "email": ""})


class TestSettings:

    def test_defaults_when_missing(self, services):
        settings = services.settings.get()
        assert settings["homepageBanners"] == {"desktop": [], "mobile": []}
        assert settings["testimonials"] == []

    def test_save_merges(self, services, store):
        services.settings.save({"storeName": "Nilgiris"})
        services.settings.save({"email": "hello@example.com"})
        settings = services.settings.get()
        assert settings["storeName"] == "Nilgiris"
        assert settings["email"] == "hello@example.com"
        assert store.get("settings", "NILGIRIS_SETTINGS")["storeName"] == "Nilgiris"

    def test_configured_document_id(self, store):
        services = build_services(store, AppConfig(settings_doc_id="SHOP"))
        services.settings.save({"storeName": "Shop"})
        assert store.get("settings", "SHOP") is not None

    def test_failing_store(self):
        settings = SettingsService(FailingStore(), "S")
        assert settings.get() is None
        with pytest.raises(StoreError, match="Error saving settings"):
            settings.save({"storeName": "x"})

    def test_nested_maps_are_merged(self, services):
        services.settings.save({"homepageBanners": {"desktop": ["d1"], "mobile": ["m1"]}})
        services.settings.save({"homepageBanners": {"desktop": ["d2"]}})
        assert services.settings.get()["homepageBanners"] == {"desktop": ["d2"], "mobile": ["m1"]}


def test_flatten_fields_for_mongo_set():
    flat = flatten_fields({"storeName": "x", "homepageBanners": {"desktop": ["d"]}, "seo": {}})
    assert flat == {"storeName": "x", "homepageBanners.desktop": ["d"], "seo": {}}


def test_users_read_and_list_hide_passwords(services, store):
    store.insert("users", "u1", {"name": "Ana", "email": "ana@example.com", "password": "hunter2"})
    assert "password" not in services.users.read("u1")
    assert "password" not in services.users.list_all()[0]
