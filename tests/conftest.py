import pytest
from fastapi.testclient import TestClient

from config import AppConfig
from database import MemoryDocumentStore
from errors import StoreError
from main import create_app
from services import build_services
from storage import MemoryImageStore


class FailingStore(MemoryDocumentStore):
    """Accepts nothing: every call fails the way an unreachable database does."""

    def _fail(self, *args, **kwargs):
        raise StoreError("Database error: connection refused")

    insert = get = update = merge = delete = find = collection_names = _fail


@pytest.fixture
def config():
    return AppConfig(public_base_url="http://testserver")


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def images():
    return MemoryImageStore("http://testserver")


@pytest.fixture
def services(store, config):
    return build_services(store, config)


@pytest.fixture
def app(config, store, images):
    return create_app(config, store=store, images=images)


@pytest.fixture
def client(app):
    return TestClient(app)


def make_product(name="Green Tea", category_id="cat-1", active=True, **extra):
    product = {
        "name": name,
        "description": f"{name} description",
        "category_id": category_id,
        "base_price": 10,
        "is_active": active,
        "variants": [{"name": "250g", "price": 10, "mrp": 12, "stock": 5, "is_active": True}],
    }
    product.update(extra)
    return product
