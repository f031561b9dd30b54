import json
import smtplib
from decimal import Decimal

import pytest

from marketline.domain import ProductCreate, ProductUpdate, TokenInput, UserCreate, UserRole, UserUpdate
from marketline.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from marketline.notifications import SmtpNotifier
from marketline.providers import SequentialIdProvider, SystemClock
from marketline.repositories import InMemoryCatalogRepository
from marketline.seed import seed_catalog_if_empty
from marketline.services import AuthService, CatalogService, UserService

from conftest import make_product, make_user


@pytest.fixture
def auth(settings, users):
    return AuthService(settings, users, SystemClock())


@pytest.fixture
def user_service(users, auth, notifier, clock):
    return UserService(users, auth, notifier, clock, SequentialIdProvider("usr"))


@pytest.fixture
def catalog_service(catalog, users, clock):
    users.add(make_user("seller-1", "seller@example.com", UserRole.SELLER))
    return CatalogService(catalog, users, clock, SequentialIdProvider("prd"))


class TestUserService:
    def test_register_hashes_password_and_issues_token(self, user_service, auth):
        result = user_service.register(UserCreate(username="jane", email="jane@example.com", password="pa55word"))

        assert result.user.role == UserRole.BUYER
        assert result.user.password_hash != "pa55word"
        assert auth.verify_token(TokenInput(token=result.token.access_token)).sub == result.user.id

    def test_register_duplicate_email(self, user_service):
        with pytest.raises(ConflictError):
            user_service.register(UserCreate(username="again", email="buyer@example.com", password="pa55word"))

    def test_token_from_another_issuer_is_rejected(self, settings, users, auth):
        foreign = AuthService(settings.model_copy(update={"jwt_issuer": "elsewhere"}), users, SystemClock())
        token = foreign.issue_token("buyer-1").access_token
        with pytest.raises(UnauthorizedError):
            auth.verify_token(TokenInput(token=token))

    def test_update_email_taken(self, user_service):
        with pytest.raises(ConflictError):
            user_service.update_user("buyer-1", UserUpdate(email="other@example.com"))

    def test_update_without_changes_returns_user(self, user_service):
        assert user_service.update_user("buyer-1", UserUpdate()).id == "buyer-1"

    def test_request_seller_mails_confirmation_link(self, user_service, notifier):
        user_service.request_seller("buyer-1", "shop.example.com")
        message = notifier.last_to("buyer@example.com")
        assert "http://shop.example.com/users/confirmation/buyer@example.com/" in message.body

    def test_confirm_seller(self, user_service, users):
        user_service.confirm_seller("buyer-1", "buyer@example.com")
        assert users.get("buyer-1").role == UserRole.SELLER
        with pytest.raises(ConflictError):
            user_service.request_seller("buyer-1", "shop.example.com")

    def test_confirm_seller_with_foreign_email(self, user_service, users):
        with pytest.raises(ForbiddenError):
            user_service.confirm_seller("buyer-1", "other@example.com")
        assert users.get("buyer-1").role == UserRole.BUYER

    def test_missing_user(self, user_service):
        with pytest.raises(NotFoundError):
            user_service.get_user("ghost")


class TestCatalogService:
    payload = ProductCreate(name="Widget", price=Decimal("10.00"), category="Tools")

    def test_buyer_cannot_create(self, catalog_service):
        with pytest.raises(ForbiddenError):
            catalog_service.create_product("buyer-1", self.payload)

    def test_create_then_increment(self, catalog_service, catalog):
        first = catalog_service.create_product("seller-1", self.payload)
        second = catalog_service.create_product("seller-1", self.payload)

        assert first.created is True
        assert second.created is False
        assert second.product.id == first.product.id
        assert catalog.get(first.product.id).stock == 2

    def test_search_requires_name(self, catalog_service):
        with pytest.raises(ValidationError):
            catalog_service.search_by_name("  ")

    def test_category_summary(self, catalog_service, catalog):
        catalog.add(make_product(stock=0))
        [summary] = catalog_service.list_by_category("TOOLS")
        assert summary.model_dump(by_alias=True) == {
            "name": "Widget",
            "description": None,
            "stockAvailability": "Out of stock",
        }

    def test_update_rename_clash(self, catalog_service, catalog):
        catalog.add(make_product())
        catalog.add(make_product("p-2", "Hammer"))
        with pytest.raises(ConflictError):
            catalog_service.update_product("p-2", "seller-1", ProductUpdate(name="Widget"))

    def test_update_stock(self, catalog_service, catalog):
        catalog.add(make_product())
        updated = catalog_service.update_product("p-widget", "seller-1", ProductUpdate(stock=0))
        assert updated.stock == 0
        assert catalog.get("p-widget").stock == 0

    def test_delete_by_non_owner(self, catalog_service, catalog, users):
        users.add(make_user("seller-2", "seller2@example.com", UserRole.SELLER))
        catalog.add(make_product())
        with pytest.raises(ForbiddenError):
            catalog_service.delete_product("p-widget", "seller-2")


class TestCatalogSeed:
    def test_seeds_empty_catalog_once(self, tmp_path, clock):
        path = tmp_path / "seed.json"
        path.write_text(
            json.dumps({"items": [{"name": "Widget", "category": "Tools", "price": "10.00", "stock": 5}]}),
            encoding="utf-8",
        )
        catalog = InMemoryCatalogRepository()
        ids = SequentialIdProvider("seed")

        assert seed_catalog_if_empty(catalog, str(path), clock, ids) == 1
        assert seed_catalog_if_empty(catalog, str(path), clock, ids) == 0
        product = catalog.find("Widget", "Tools")
        assert product.stock == 5
        assert product.owner_id == "seed"

    def test_missing_file_is_ignored(self, tmp_path, clock):
        catalog = InMemoryCatalogRepository()
        assert seed_catalog_if_empty(catalog, str(tmp_path / "missing.json"), clock, SequentialIdProvider()) == 0


class TestSmtpNotifier:
    def test_delivery_failure_raises_internal_error(self, monkeypatch, clock):
        def refuse(*args, **kwargs):
            raise ConnectionRefusedError("no server")

        monkeypatch.setattr(smtplib, "SMTP", refuse)
        notifier = SmtpNotifier(host="localhost", port=2525, sender="no-reply@example.com", clock=clock)

        with pytest.raises(InternalError):
            notifier.send("buyer@example.com", "Hello", "Body")

    def test_sends_message(self, monkeypatch, clock):
        sent = []

        class FakeSMTP:
            def __init__(self, host, port, timeout):
                self.host = host

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                return False

            def starttls(self):
                pass

            def send_message(self, message):
                sent.append(message)

        monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
        notifier = SmtpNotifier(host="localhost", port=2525, sender="no-reply@example.com", clock=clock)

        notification = notifier.send("buyer@example.com", "Hello", "Body")

        assert notification.recipient == "buyer@example.com"
        assert sent[0]["To"] == "buyer@example.com"
        assert sent[0]["Subject"] == "Hello"
