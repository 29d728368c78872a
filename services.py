"""
Service wrappers: one object per entity over the document store.

Reads never fail towards the caller (a store failure is logged and reported as
"nothing there"); writes log and re-raise so the HTTP layer can report them.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

from config import AppConfig
from database import DocumentStore, create_document, get_documents
from errors import RuleViolation, StoreError

logger = logging.getLogger(__name__)

Payload = Union[BaseModel, Dict[str, Any]]


def _as_dict(data: Payload, partial: bool = False) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        dumped = data.model_dump()
        if partial:
            # Sent fields are kept whole; nested items still get their defaults.
            return {k: v for k, v in dumped.items() if k in data.model_fields_set}
        return dumped
    return dict(data)


class CollectionService:
    required_fields = ("name",)

    def __init__(
        self,
        store: DocumentStore,
        collection: str,
        label: str,
        timestamp_field: str = "timestamp",
        ordered: bool = False,
    ):
        self.store = store
        self.collection = collection
        self.label = label
        self.timestamp_field = timestamp_field
        self.ordered = ordered

    def validate(self, data: Dict[str, Any], partial: bool = False) -> None:
        for name in self.required_fields:
            if partial and name not in data:
                continue
            value = data.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise RuleViolation(f"{self.label} {name} cannot be empty")

    def prepare(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return data

    def create(self, data: Payload) -> str:
        doc = self.prepare(_as_dict(data))
        doc.pop("id", None)
        self.validate(doc)
        try:
            doc_id = create_document(self.store, self.collection, doc, self.timestamp_field)
        except StoreError as e:
            logger.error(f"Error creating {self.label}: {e}", exc_info=True)
            raise StoreError(f"Failed to save {self.label.lower()}") from e
        logger.info(f"{self.label} created successfully with ID: {doc_id}")
        return doc_id

    def read(self, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            doc = self.store.get(self.collection, doc_id)
        except StoreError as e:
            logger.error(f"Error reading {self.label} {doc_id}: {e}", exc_info=True)
            return None
        if doc is None:
            logger.info(f"No such {self.label}: {doc_id}")
        return doc

    def update(self, doc_id: str, fields: Payload) -> bool:
        updates = _as_dict(fields, partial=True)
        updates.pop("id", None)
        self.validate(updates, partial=True)
        if not updates:
            return self.read(doc_id) is not None
        try:
            found = self.store.update(self.collection, doc_id, updates)
        except StoreError as e:
            logger.error(f"Error updating {self.label} {doc_id}: {e}", exc_info=True)
            raise StoreError(f"Failed to update {self.label.lower()}") from e
        if found:
            logger.info(f"{self.label} {doc_id} updated successfully")
        else:
            logger.warning(f"Cannot update missing {self.label} {doc_id}")
        return found

    def delete(self, doc_id: str) -> bool:
        try:
            found = self.store.delete(self.collection, doc_id)
        except StoreError as e:
            logger.error(f"Error deleting {self.label} {doc_id}: {e}", exc_info=True)
            raise StoreError(f"Failed to delete {self.label.lower()}") from e
        if found:
            logger.info(f"{self.label} {doc_id} deleted successfully")
        return found

    def list_all(self) -> List[Dict[str, Any]]:
        try:
            if self.ordered:
                return get_documents(self.store, self.collection, order_by=self.timestamp_field)
            return get_documents(self.store, self.collection)
        except StoreError as e:
            logger.error(f"Error fetching all {self.label}: {e}", exc_info=True)
            return []

    def check_toggle(self, record: Dict[str, Any], field: str, value: bool) -> None:
        """Hook for entity rules that forbid a particular flag value."""


# Products

PRODUCT_DEFAULTS: Dict[str, Any] = {
    "sku": "",
    "weight": 0,
    "dimensions": "",
    "manufacturer": "",
    "warranty": "",
    "shippingDetails": {},
    "relatedProducts": [],
    "tags": [],
    "images": [],
    "variants": [],
}
NESTED_PRODUCT_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "seo": {"metaTitle": "", "metaDescription": "", "keywords": ""},
    "inventory": {"stock": 0, "lowStockThreshold": 5},
    "tax": {"taxClass": "standard", "taxRate": 0},
}


def apply_product_defaults(product: Dict[str, Any]) -> Dict[str, Any]:
    for key, default in PRODUCT_DEFAULTS.items():
        if not product.get(key):
            product[key] = copy.deepcopy(default)
    for key, defaults in NESTED_PRODUCT_DEFAULTS.items():
        current = product.get(key) or {}
        product[key] = {k: current.get(k) or v for k, v in defaults.items()}
    return product


def has_active_variant(product: Dict[str, Any]) -> bool:
    return any(v.get("is_active") for v in product.get("variants") or [])


class ProductService(CollectionService):
    legacy_variant_collection = "PRODUCT_VARIANT"
    category_collection = "category"
    review_collection = "product_reviews"

    def prepare(self, data):
        return apply_product_defaults(data)

    def validate(self, data, partial=False):
        super().validate(data, partial)
        if partial:
            return
        if not data.get("variants"):
            raise RuleViolation("Product must have at least one variant")
        if data.get("is_active") and not has_active_variant(data):
            raise RuleViolation("Product cannot be active without at least one active variant")

    def update(self, doc_id, fields):
        updates = _as_dict(fields, partial=True)
        if "variants" in updates or updates.get("is_active"):
            current = self.read(doc_id)
            if current is None:
                return False
            self.validate({**current, **updates})
        return super().update(doc_id, updates)

    def read(self, doc_id, active_variants_only=False):
        product = super().read(doc_id)
        if product is None:
            return None
        apply_product_defaults(product)
        if active_variants_only:
            product["variants"] = [v for v in product["variants"] if v.get("is_active")]
        return product

    def list_all(self):
        products = super().list_all()
        if not products:
            return products
        try:
            categories = self.store.find(self.category_collection)
            legacy = self.store.find(self.legacy_variant_collection)
        except StoreError as e:
            logger.error(f"Error fetching product categories/variants: {e}", exc_info=True)
            categories, legacy = [], []
        names = {c.get("id"): c.get("name") for c in categories}
        by_product: Dict[str, List[Dict[str, Any]]] = {}
        for variant in legacy:
            by_product.setdefault(str(variant.get("product_id", "")), []).append(variant)
        for product in products:
            if not product.get("variants"):
                product["variants"] = by_product.get(str(product.get("id")), [])
            apply_product_defaults(product)
            product["category_name"] = names.get(product.get("category_id"), "Unknown")
        return products

    def check_toggle(self, record, field, value):
        if field == "is_active" and value and not has_active_variant(record):
            raise RuleViolation("Product cannot be active without at least one active variant")

    def add_review(self, product_id: str, review: Payload) -> str:
        data = _as_dict(review)
        data["product_id"] = product_id
        try:
            review_id = create_document(self.store, self.review_collection, data, "timestamp")
        except StoreError as e:
            logger.error(f"Error adding review: {e}", exc_info=True)
            raise StoreError("Failed to add review") from e
        logger.info(f"Review added successfully to product {product_id}")
        return review_id

    def get_reviews(self, product_id: str) -> List[Dict[str, Any]]:
        try:
            return get_documents(self.store, self.review_collection, {"product_id": product_id},
                                 order_by="timestamp")
        except StoreError as e:
            logger.error(f"Error fetching reviews: {e}", exc_info=True)
            return []


# Orders

STATUS_LABELS = {
    "en": {
        "Order placed": "Order placed",
        "Order shipped": "Order shipped",
        "Order delivered": "Order delivered",
        "Order cancelled": "Order cancelled",
    },
    "ar": {
        "Order placed": "تم تقديم الطلب",
        "Order shipped": "تم شحن الطلب",
        "Order delivered": "تم تسليم الطلب",
        "Order cancelled": "تم إلغاء الطلب",
    },
}


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class OrderService(CollectionService):
    required_fields = ()

    def set_status(self, order_id: str, status: str) -> bool:
        return self.update(order_id, {"status": status})

    @staticmethod
    def describe(order: Dict[str, Any], language: str = "en") -> Dict[str, Any]:
        """Order detail with placeholders for anything the storefront left out."""
        labels = STATUS_LABELS.get(language, STATUS_LABELS["en"])
        status = order.get("status") or "Unknown"
        address = order.get("address") or {}
        return {
            "id": order.get("id") or "N/A",
            "status": status,
            "status_label": labels.get(status, status),
            "totalAmount": order.get("totalAmount") or "0.00",
            "paymentMethod": order.get("paymentMethod") or "N/A",
            "createdAt": order.get("createdAt") or "N/A",
            "userId": order.get("userId") or "Unknown",
            "address": {
                "name": address.get("name") or "N/A",
                "phoneNumber": address.get("phoneNumber") or "N/A",
                "district": address.get("district") or "N/A",
                "landmark": address.get("landMark") or "N/A",
                "fullAddress": address.get("address") or "N/A",
            },
            "cartItems": [
                {
                    "productName": item.get("productName") or "Unknown Product",
                    "variantName": item.get("variantName") or "Unknown Variant",
                    "quantity": _to_int(item.get("quantity")),
                    "price": _to_float(item.get("variantPrice")),
                    "imageUrl": item.get("productImageUrl") or "/placeholder.png",
                    "description": item.get("discription") or "No description available",
                    "arabicDescription": item.get("arabicDiscription") or "N/A",
                }
                for item in order.get("cartItems") or []
            ],
        }


class UserService(CollectionService):
    required_fields = ("name", "email")

    def prepare(self, data):
        data.pop("password", None)
        return data

    def read(self, doc_id):
        user = super().read(doc_id)
        if user is not None:
            user.pop("password", None)
        return user

    def list_all(self):
        users = super().list_all()
        for user in users:
            user.pop("password", None)
        return users


class EnquiryService(CollectionService):
    required_fields = ()


# Settings singleton

SETTINGS_DEFAULTS: Dict[str, Any] = {
    "storeName": "",
    "email": "",
    "phoneNumber": "",
    "address": "",
    "headerLogo": "",
    "footerLogo": "",
    "facebookAccount": "",
    "instagramAccount": "",
    "twitterAccount": "",
    "homepageBanners": {"desktop": [], "mobile": []},
    "testimonials": [],
}


class SettingsService:
    collection = "settings"

    def __init__(self, store: DocumentStore, doc_id: str):
        self.store = store
        self.doc_id = doc_id

    def get(self) -> Optional[Dict[str, Any]]:
        """Stored settings over the defaults; None when the store failed."""
        try:
            stored = self.store.get(self.collection, self.doc_id) or {}
        except StoreError as e:
            logger.error(f"Error getting settings: {e}", exc_info=True)
            return None
        settings = copy.deepcopy(SETTINGS_DEFAULTS)
        settings.update({k: v for k, v in stored.items() if k != "id"})
        banners = stored.get("homepageBanners") or {}
        settings["homepageBanners"] = {
            "desktop": banners.get("desktop") or [],
            "mobile": banners.get("mobile") or [],
        }
        settings["testimonials"] = stored.get("testimonials") or []
        return settings

    def save(self, fields: Payload) -> None:
        """Merge ``fields`` into the singleton document, never replacing it."""
        if isinstance(fields, BaseModel):
            data = fields.model_dump(exclude_unset=True)
        else:
            data = dict(fields)
        try:
            self.store.merge(self.collection, self.doc_id, data)
        except StoreError as e:
            logger.error(f"Error saving settings: {e}", exc_info=True)
            raise StoreError("Error saving settings") from e
        logger.info(f"Settings saved successfully ({', '.join(sorted(data)) or 'no fields'})")


@dataclass
class Services:
    categories: CollectionService
    products: ProductService
    orders: OrderService
    users: UserService
    blogs: CollectionService
    enquiries: EnquiryService
    settings: SettingsService


def build_services(store: DocumentStore, config: AppConfig) -> Services:
    return Services(
        categories=CollectionService(store, "category", "Category"),
        products=ProductService(store, "Products", "Product"),
        orders=OrderService(store, "orders", "Order", timestamp_field="createdAt", ordered=True),
        users=UserService(store, "users", "User", timestamp_field="createdAt"),
        blogs=CollectionService(store, "blogs", "Blog post", timestamp_field="createdAt", ordered=True),
        enquiries=EnquiryService(store, "enquiries", "Enquiry", ordered=True),
        settings=SettingsService(store, config.settings_doc_id),
    )
