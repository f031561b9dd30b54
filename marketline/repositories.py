from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol

from .domain import Order, OrderLine, OrderStatus, Product, User


class CatalogRepository(Protocol):
    def add(self, product: Product) -> Product: ...

    def get(self, product_id: str) -> Optional[Product]: ...

    def find(self, name: str, category: str) -> Optional[Product]: ...

    def search_by_name(self, fragment: str) -> List[Product]: ...

    def list_by_category(self, category: str) -> List[Product]: ...

    def update(self, product: Product) -> Product: ...

    def delete(self, product_id: str) -> Optional[Product]: ...

    def increment_stock(self, product_id: str, amount: int) -> Optional[Product]: ...

    def decrement_stock(self, product_id: str, amount: int) -> Optional[Product]:
        """Subtract ``amount`` only if at least that much is in stock; None otherwise."""
        ...

    def set_stock(self, product_id: str, stock: int) -> Optional[Product]: ...

    def count(self) -> int: ...


class OrderRepository(Protocol):
    def create_order(self, order: Order) -> Order: ...

    def create_order_line(self, line: OrderLine) -> OrderLine: ...

    def get(self, order_id: str) -> Optional[Order]: ...

    def lines_for(self, order_id: str) -> List[OrderLine]: ...

    def set_status(self, order_id: str, status: OrderStatus, updated_at: datetime) -> Optional[Order]: ...

    def delete(self, order_id: str) -> Optional[Order]: ...


class UserRepository(Protocol):
    def add(self, user: User) -> User: ...

    def get(self, user_id: str) -> Optional[User]: ...

    def get_by_email(self, email: str) -> Optional[User]: ...

    def update(self, user: User) -> User: ...

    def delete(self, user_id: str) -> Optional[User]: ...


class InMemoryCatalogRepository(CatalogRepository):
    def __init__(self, products: Iterable[Product] = ()) -> None:
        self._products: Dict[str, Product] = {product.id: product for product in products}
        self._lock = threading.Lock()

    def add(self, product: Product) -> Product:
        with self._lock:
            self._products[product.id] = product
        return product

    def get(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def find(self, name: str, category: str) -> Optional[Product]:
        for product in self._products.values():
            if product.name == name and product.category == category:
                return product
        return None

    def search_by_name(self, fragment: str) -> List[Product]:
        needle = fragment.lower()
        return [product for product in self._products.values() if needle in product.name.lower()]

    def list_by_category(self, category: str) -> List[Product]:
        wanted = category.lower()
        return [product for product in self._products.values() if product.category.lower() == wanted]

    def update(self, product: Product) -> Product:
        with self._lock:
            self._products[product.id] = product
        return product

    def delete(self, product_id: str) -> Optional[Product]:
        with self._lock:
            return self._products.pop(product_id, None)

    def increment_stock(self, product_id: str, amount: int) -> Optional[Product]:
        with self._lock:
            current = self._products.get(product_id)
            if not current:
                return None
            updated = current.model_copy(update={"stock": current.stock + amount})
            self._products[product_id] = updated
            return updated

    def decrement_stock(self, product_id: str, amount: int) -> Optional[Product]:
        with self._lock:
            current = self._products.get(product_id)
            if not current or current.stock < amount:
                return None
            updated = current.model_copy(update={"stock": current.stock - amount})
            self._products[product_id] = updated
            return updated

    def set_stock(self, product_id: str, stock: int) -> Optional[Product]:
        with self._lock:
            current = self._products.get(product_id)
            if not current:
                return None
            updated = current.model_copy(update={"stock": stock})
            self._products[product_id] = updated
            return updated

    def count(self) -> int:
        return len(self._products)


class InMemoryOrderRepository(OrderRepository):
    def __init__(self) -> None:
        self._orders: Dict[str, Order] = {}
        self._lines: Dict[str, OrderLine] = {}

    def create_order(self, order: Order) -> Order:
        self._orders[order.id] = order
        return order

    def create_order_line(self, line: OrderLine) -> OrderLine:
        self._lines[line.id] = line
        return line

    def get(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    def lines_for(self, order_id: str) -> List[OrderLine]:
        return [line for line in self._lines.values() if line.order_id == order_id]

    def set_status(self, order_id: str, status: OrderStatus, updated_at: datetime) -> Optional[Order]:
        current = self._orders.get(order_id)
        if not current:
            return None
        updated = current.model_copy(update={"status": status, "updated_at": updated_at})
        self._orders[order_id] = updated
        return updated

    def delete(self, order_id: str) -> Optional[Order]:
        return self._orders.pop(order_id, None)


class InMemoryUserRepository(UserRepository):
    def __init__(self) -> None:
        self._users: Dict[str, User] = {}

    def add(self, user: User) -> User:
        self._users[user.id] = user
        return user

    def get(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        for user in self._users.values():
            if user.email == email:
                return user
        return None

    def update(self, user: User) -> User:
        self._users[user.id] = user
        return user

    def delete(self, user_id: str) -> Optional[User]:
        return self._users.pop(user_id, None)
