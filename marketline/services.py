from __future__ import annotations

from decimal import Decimal
from typing import Callable, Dict, List, Optional

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from .allocation import allocate
from .domain import (
    AuthContext,
    FulfilledLine,
    HealthStatus,
    LoginRequest,
    Order,
    OrderDetail,
    OrderLine,
    OrderRequest,
    OrderStatus,
    PlacementResult,
    Product,
    ProductCreate,
    ProductCreateResult,
    ProductSummary,
    ProductUpdate,
    RegistrationResult,
    StockUpdateMode,
    TokenInput,
    TokenResponse,
    User,
    UserCreate,
    UserRole,
    UserUpdate,
)
from .errors import (
    ConflictError,
    DomainError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    OutOfStockError,
    UnauthorizedError,
    ValidationError,
)
from .logging import ServiceLogger
from .notifications import Notifier
from .providers import Clock, IdProvider
from .repositories import CatalogRepository, OrderRepository, UserRepository
from .settings import Settings


class AuthService:
    def __init__(self, settings: Settings, users: UserRepository, clock: Clock) -> None:
        self._settings = settings
        self._users = users
        self._clock = clock

    def login(self, payload: LoginRequest) -> TokenResponse:
        user = self._users.get_by_email(payload.email)
        if not user or not check_password_hash(user.password_hash, payload.password):
            raise UnauthorizedError()
        return self.issue_token(user.id)

    def issue_token(self, user_id: str) -> TokenResponse:
        expires = int(self._clock.now().timestamp()) + self._settings.token_ttl_seconds
        payload = {"sub": user_id, "iss": self._settings.jwt_issuer, "exp": expires}
        token = jwt.encode(payload, self._settings.jwt_secret, algorithm="HS256")
        return TokenResponse(access_token=token, expires_in=self._settings.token_ttl_seconds)

    def verify_token(self, payload: TokenInput) -> AuthContext:
        try:
            decoded = jwt.decode(
                payload.token,
                self._settings.jwt_secret,
                algorithms=["HS256"],
                issuer=self._settings.jwt_issuer,
            )
        except jwt.PyJWTError as exc:
            raise UnauthorizedError() from exc
        return AuthContext(**decoded)


class UserService:
    def __init__(
        self,
        users: UserRepository,
        auth: AuthService,
        notifier: Notifier,
        clock: Clock,
        ids: IdProvider,
    ) -> None:
        self._users = users
        self._auth = auth
        self._notifier = notifier
        self._clock = clock
        self._ids = ids
        self._log = ServiceLogger("users")

    def register(self, payload: UserCreate) -> RegistrationResult:
        if self._users.get_by_email(payload.email):
            raise ConflictError("A user with this email already exists")

        now = self._clock.now()
        user = User(
            id=self._ids.new_id(),
            username=payload.username,
            email=payload.email,
            password_hash=generate_password_hash(payload.password),
            role=UserRole.BUYER,
            created_at=now,
            updated_at=now,
        )
        self._users.add(user)
        self._log.info("User registered", user_id=user.id)
        return RegistrationResult(user=user, token=self._auth.issue_token(user.id))

    def get_user(self, user_id: str) -> User:
        user = self._users.get(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def update_user(self, user_id: str, payload: UserUpdate) -> User:
        user = self.get_user(user_id)
        changes: Dict[str, object] = {}

        if payload.password:
            if check_password_hash(user.password_hash, payload.password):
                raise ConflictError("The new password cannot match the old password")
            changes["password_hash"] = generate_password_hash(payload.password)
        if payload.email and payload.email != user.email:
            if self._users.get_by_email(payload.email):
                raise ConflictError("A user with this email already exists")
            changes["email"] = payload.email
        if payload.username:
            changes["username"] = payload.username

        if not changes:
            return user
        changes["updated_at"] = self._clock.now()
        return self._users.update(user.model_copy(update=changes))

    def delete_user(self, user_id: str) -> User:
        user = self.get_user(user_id)
        self._users.delete(user.id)
        self._notifier.send(
            user.email,
            "Goodbye from Marketline",
            f"Hello {user.username},\n\nWe're sad to see you go!",
        )
        self._log.info("User deleted", user_id=user.id)
        return user

    def request_seller(self, user_id: str, host: str) -> User:
        user = self.get_user(user_id)
        if user.role == UserRole.SELLER:
            raise ConflictError("This user already is a seller!")

        self._notifier.send(
            user.email,
            "Verify your seller account",
            f"Hello {user.username},\n\n"
            "Please verify your account by clicking the link: \n"
            f"http://{host}/users/confirmation/{user.email}/"
            "\n\nThank You!\n",
        )
        return user

    def confirm_seller(self, user_id: str, email: str) -> User:
        user = self.get_user(user_id)
        if user.email != email:
            raise ForbiddenError("This confirmation link belongs to another user")
        if user.role == UserRole.SELLER:
            raise ConflictError("This user already is a seller!")
        updated = user.model_copy(update={"role": UserRole.SELLER, "updated_at": self._clock.now()})
        self._log.info("User promoted to seller", user_id=user.id)
        return self._users.update(updated)


class CatalogService:
    def __init__(
        self,
        catalog: CatalogRepository,
        users: UserRepository,
        clock: Clock,
        ids: IdProvider,
    ) -> None:
        self._catalog = catalog
        self._users = users
        self._clock = clock
        self._ids = ids
        self._log = ServiceLogger("catalog")

    def create_product(self, seller_id: str, payload: ProductCreate) -> ProductCreateResult:
        self._require_seller(seller_id)

        existing = self._catalog.find(payload.name, payload.category)
        if existing:
            updated = self._catalog.increment_stock(existing.id, 1)
            if not updated:
                raise NotFoundError("Product not found")
            self._log.info("Product stock incremented", product_id=updated.id, stock=updated.stock)
            return ProductCreateResult(product=updated, created=False)

        now = self._clock.now()
        product = Product(
            id=self._ids.new_id(),
            name=payload.name,
            category=payload.category,
            price=payload.price,
            stock=1,
            description=payload.description,
            owner_id=seller_id,
            created_at=now,
            updated_at=now,
        )
        self._catalog.add(product)
        self._log.info("Product created", product_id=product.id, owner_id=seller_id)
        return ProductCreateResult(product=product, created=True)

    def search_by_name(self, name: str) -> List[Product]:
        if not name.strip():
            raise ValidationError("Query parameter 'name' is required")
        products = self._catalog.search_by_name(name)
        if not products:
            raise NotFoundError("Products not found")
        return products

    def list_by_category(self, category: str) -> List[ProductSummary]:
        if not category.strip():
            raise ValidationError("Query parameter 'category' is required")
        products = self._catalog.list_by_category(category)
        if not products:
            raise NotFoundError("There isn't any product with the given category!")
        return [
            ProductSummary(
                name=product.name,
                description=product.description,
                stock_availability="Available" if product.stock > 0 else "Out of stock",
            )
            for product in products
        ]

    def get_product(self, product_id: str) -> Product:
        product = self._catalog.get(product_id)
        if not product:
            raise NotFoundError("There isn't any product with the given ID!")
        return product

    def update_product(self, product_id: str, actor_id: str, payload: ProductUpdate) -> Product:
        self._require_seller(actor_id)
        product = self.get_product(product_id)
        if product.owner_id != actor_id:
            raise ForbiddenError()

        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return product

        name = changes.get("name", product.name)
        category = changes.get("category", product.category)
        clash = self._catalog.find(name, category)
        if clash and clash.id != product.id:
            raise ConflictError("Another product already uses this name and category")

        changes["updated_at"] = self._clock.now()
        updated = self._catalog.update(product.model_copy(update=changes))
        self._log.info("Product updated", product_id=product_id, fields=",".join(sorted(changes)))
        return updated

    def delete_product(self, product_id: str, actor_id: str) -> Product:
        self._require_seller(actor_id)
        product = self.get_product(product_id)
        if product.owner_id != actor_id:
            raise ForbiddenError()
        deleted = self._catalog.delete(product_id)
        if not deleted:
            raise NotFoundError("There isn't any product with the given ID!")
        self._log.info("Product deleted", product_id=product_id)
        return deleted

    def _require_seller(self, user_id: str) -> User:
        user = self._users.get(user_id)
        if not user or user.role != UserRole.SELLER:
            raise ForbiddenError("Only sellers are allowed to manage products")
        return user


class OrderService:
    def __init__(
        self,
        orders: OrderRepository,
        catalog: CatalogRepository,
        users: UserRepository,
        notifier: Notifier,
        clock: Clock,
        ids: IdProvider,
        stock_mode: StockUpdateMode = StockUpdateMode.ATOMIC,
    ) -> None:
        self._orders = orders
        self._catalog = catalog
        self._users = users
        self._notifier = notifier
        self._clock = clock
        self._ids = ids
        self._stock_mode = stock_mode
        self._log = ServiceLogger("orders")

    def place_order(self, owner_id: str, request: OrderRequest) -> PlacementResult:
        self._validate(request)

        allocation = allocate(request.products, self._catalog.find)
        self._log.debug(
            "Allocation computed",
            owner_id=owner_id,
            outcomes=",".join(outcome.kind for outcome in allocation.outcomes),
        )
        if not allocation.in_stock:
            self._log.info("Order rejected, nothing in stock", owner_id=owner_id, lines=len(request.products))
            raise OutOfStockError(allocation.out_of_stock)

        order = self._persist(owner_id, allocation.total_amount, allocation.in_stock)
        self._log.info(
            "Order placed",
            order_id=order.id,
            owner_id=owner_id,
            total=order.total_amount,
            fulfilled=len(allocation.in_stock),
            short=len(allocation.out_of_stock),
        )
        return PlacementResult(
            order_id=order.id,
            total_amount=order.total_amount,
            out_of_stock=allocation.out_of_stock,
        )

    def get_order(self, order_id: str) -> OrderDetail:
        order = self._orders.get(order_id)
        if not order:
            raise NotFoundError("Order not found")
        return OrderDetail(order=order, lines=self._orders.lines_for(order_id))

    def mark_arrived(self, order_id: str, host: str) -> OrderDetail:
        detail = self.get_order(order_id)
        owner = self._users.get(detail.order.owner_id)
        if not owner:
            raise NotFoundError("User not found")

        self._notifier.send(
            owner.email,
            "Your order has arrived",
            f"Hello {owner.username},\n\n"
            "Your order has been arrived to your address please complete the process and then "
            "confirm that all good by go to this link to confirm the process : \n"
            f"http://{host}/orders/confirmation/{order_id}/"
            "\n\nThank You!\n",
        )
        self._log.info("Arrival notice sent", order_id=order_id, owner_id=owner.id)
        return detail

    def confirm_order(self, order_id: str, acting_user_id: str) -> Order:
        order = self._owned_order(order_id, acting_user_id)
        updated = self._orders.set_status(order.id, OrderStatus.COMPLETED, self._clock.now())
        if not updated:
            raise NotFoundError("Order not found")
        return updated

    def delete_order(self, order_id: str, acting_user_id: str) -> Order:
        order = self._owned_order(order_id, acting_user_id)
        deleted = self._orders.delete(order.id)
        if not deleted:
            raise NotFoundError("Order not found")
        self._log.info("Order deleted", order_id=order_id)
        return deleted

    def _owned_order(self, order_id: str, acting_user_id: str) -> Order:
        order = self._orders.get(order_id)
        if not order:
            raise NotFoundError("Order not found")
        if order.owner_id != acting_user_id:
            raise ForbiddenError()
        return order

    def _validate(self, request: OrderRequest) -> None:
        if not request.products:
            raise ValidationError("Invalid or empty products array")
        for line in request.products:
            if not line.name.strip() or not line.category.strip():
                raise ValidationError("Invalid product data")
            if line.quantity <= 0:
                raise ValidationError("Product quantity must be greater than zero")

    def _persist(self, owner_id: str, total_amount: Decimal, lines: List[FulfilledLine]) -> Order:
        now = self._clock.now()
        order = Order(
            id=self._ids.new_id(),
            total_amount=total_amount,
            status=OrderStatus.UNCOMPLETED,
            owner_id=owner_id,
            created_at=now,
            updated_at=now,
        )
        self._write("create order", lambda: self._orders.create_order(order))

        for line in lines:
            order_line = OrderLine(
                id=self._ids.new_id(),
                order_id=order.id,
                product_id=line.product_id,
                product_name=line.name,
                product_category=line.category,
                quantity=line.quantity,
                price=line.unit_price,
            )
            self._write("create order line", lambda: self._orders.create_order_line(order_line), order_id=order.id)

        failed: List[str] = []
        for line in lines:
            try:
                self._write("decrement stock", lambda: self._decrement(line), order_id=order.id)
            except InternalError:
                failed.append(line.product_id)
        if failed:
            raise InternalError(f"Order {order.id} was created but stock could not be updated for: {', '.join(failed)}")
        return order

    def _decrement(self, line: FulfilledLine) -> Product:
        if self._stock_mode == StockUpdateMode.ATOMIC:
            updated = self._catalog.decrement_stock(line.product_id, line.quantity)
            if not updated:
                raise InternalError(f"Stock for product {line.product_id} changed before it could be decremented")
            return updated

        product = self._catalog.get(line.product_id)
        if not product:
            raise InternalError(f"Product {line.product_id} no longer exists")
        remaining = product.stock - line.quantity
        if remaining < 0:
            raise InternalError(f"Product {line.product_id} stock would drop below zero")
        updated = self._catalog.set_stock(product.id, remaining)
        if not updated:
            raise InternalError(f"Product {line.product_id} no longer exists")
        return updated

    def _write(self, step: str, action: Callable[[], object], order_id: Optional[str] = None):
        try:
            return action()
        except DomainError as exc:
            self._log.error("Order write failed", step=step, order_id=order_id, error=exc)
            raise
        except Exception as exc:
            self._log.exception("Order write failed", step=step, order_id=order_id)
            raise InternalError(f"Failed to {step}") from exc


class HealthService:
    def __init__(self, clock: Clock, checks: Optional[Dict[str, Callable[[], bool]]] = None) -> None:
        self._clock = clock
        self._checks = checks or {}
        self._log = ServiceLogger("health")

    def health(self) -> HealthStatus:
        backends: Dict[str, str] = {}
        for name, check in self._checks.items():
            try:
                backends[name] = "ok" if check() else "down"
            except Exception:
                self._log.warning("Backend check failed", backend=name)
                backends[name] = "down"
        status = "ok" if all(value == "ok" for value in backends.values()) else "degraded"
        return HealthStatus(status=status, time=self._clock.now(), backends=backends)
