from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from marketline.container import build_container
from marketline.domain import Product, StockUpdateMode, User, UserRole
from marketline.main import create_app
from marketline.notifications import OutboxNotifier
from marketline.providers import SequentialIdProvider
from marketline.repositories import InMemoryCatalogRepository, InMemoryOrderRepository, InMemoryUserRepository
from marketline.services import OrderService
from marketline.settings import Settings

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    def now(self) -> datetime:
        return NOW


class RecordingOrderRepository(InMemoryOrderRepository):
    def __init__(self) -> None:
        super().__init__()
        self.created = []
        self.created_lines = []

    def create_order(self, order):
        self.created.append(order)
        return super().create_order(order)

    def create_order_line(self, line):
        self.created_lines.append(line)
        return super().create_order_line(line)


class InterleavingCatalog(InMemoryCatalogRepository):
    """Runs a one-shot hook right after a read, simulating a concurrent request."""

    def __init__(self, products=()):
        super().__init__(products)
        self.on_find = None
        self.on_get = None

    def find(self, name, category):
        product = super().find(name, category)
        hook, self.on_find = self.on_find, None
        if hook:
            hook()
        return product

    def get(self, product_id):
        product = super().get(product_id)
        hook, self.on_get = self.on_get, None
        if hook:
            hook()
        return product


def make_product(
    product_id="p-widget",
    name="Widget",
    category="Tools",
    price="10.00",
    stock=5,
    owner_id="seller-1",
) -> Product:
    return Product(
        id=product_id,
        name=name,
        category=category,
        price=Decimal(price),
        stock=stock,
        owner_id=owner_id,
        created_at=NOW,
        updated_at=NOW,
    )


def make_user(user_id="buyer-1", email="buyer@example.com", role=UserRole.BUYER) -> User:
    return User(
        id=user_id,
        username=user_id,
        email=email,
        password_hash="not-a-real-hash",
        role=role,
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def catalog():
    return InterleavingCatalog()


@pytest.fixture
def orders():
    return RecordingOrderRepository()


@pytest.fixture
def users():
    repo = InMemoryUserRepository()
    repo.add(make_user())
    repo.add(make_user("buyer-2", "other@example.com"))
    return repo


@pytest.fixture
def notifier(clock):
    return OutboxNotifier(clock)


@pytest.fixture
def order_service_factory(orders, catalog, users, notifier, clock):
    ids = SequentialIdProvider("ord")

    def build(stock_mode=StockUpdateMode.ATOMIC):
        return OrderService(orders, catalog, users, notifier, clock, ids, stock_mode=stock_mode)

    return build


@pytest.fixture
def order_service(order_service_factory):
    return order_service_factory()


@pytest.fixture
def settings():
    return Settings(
        app_name="Marketline Test",
        jwt_secret="test-secret",
        jwt_issuer="marketline-test",
        token_ttl_seconds=600,
        cors_allow_origins="http://localhost:3000",
        catalog_seed_path="",
        stock_update_mode=StockUpdateMode.ATOMIC,
    )


@pytest.fixture
def container(settings):
    return build_container(settings)


@pytest.fixture
def client(settings, container):
    return TestClient(create_app(settings, container))


@pytest.fixture
def register(client):
    def _register(username="buyer", email="buyer@example.com", password="secret-pass"):
        response = client.post("/users", json={"username": username, "email": email, "password": password})
        assert response.status_code == 201, response.text
        return {"Authorization": f"Bearer {response.headers['x-auth-token']}"}

    return _register


@pytest.fixture
def seller_headers(client, register):
    headers = register("seller", "seller@example.com", "seller-pass")
    assert client.get("/users/seller", headers=headers).status_code == 200
    assert client.put("/users/confirmation/seller@example.com", headers=headers).status_code == 200
    return headers
