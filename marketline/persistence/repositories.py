from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select

from ..domain import Order, OrderLine, OrderStatus, User, UserRole
from .db import Database
from .models import OrderLineRecord, OrderRecord, UserRecord


def order_from_record(record: OrderRecord) -> Order:
    return Order(
        id=record.id,
        total_amount=record.total_amount,
        status=OrderStatus(record.status),
        owner_id=record.owner_id,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def line_from_record(record: OrderLineRecord) -> OrderLine:
    return OrderLine(
        id=record.id,
        order_id=record.order_id,
        product_id=record.product_id,
        product_name=record.product_name,
        product_category=record.product_category,
        quantity=record.quantity,
        price=record.price,
    )


def user_from_record(record: UserRecord) -> User:
    return User(
        id=record.id,
        username=record.username,
        email=record.email,
        password_hash=record.password_hash,
        role=UserRole(record.role),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class SqlAlchemyOrderRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def create_order(self, order: Order) -> Order:
        with self._db.session() as session:
            session.add(
                OrderRecord(
                    id=order.id,
                    total_amount=order.total_amount,
                    status=order.status.value,
                    owner_id=order.owner_id,
                    created_at=order.created_at,
                    updated_at=order.updated_at,
                )
            )
        return order

    def create_order_line(self, line: OrderLine) -> OrderLine:
        with self._db.session() as session:
            session.add(
                OrderLineRecord(
                    id=line.id,
                    order_id=line.order_id,
                    product_id=line.product_id,
                    product_name=line.product_name,
                    product_category=line.product_category,
                    quantity=line.quantity,
                    price=line.price,
                )
            )
        return line

    def get(self, order_id: str) -> Optional[Order]:
        with self._db.session() as session:
            record = session.get(OrderRecord, order_id)
            return order_from_record(record) if record else None

    def lines_for(self, order_id: str) -> List[OrderLine]:
        with self._db.session() as session:
            stmt = select(OrderLineRecord).where(OrderLineRecord.order_id == order_id).order_by(OrderLineRecord.id)
            records = session.execute(stmt).scalars().all()
            return [line_from_record(record) for record in records]

    def set_status(self, order_id: str, status: OrderStatus, updated_at: datetime) -> Optional[Order]:
        with self._db.session() as session:
            record = session.get(OrderRecord, order_id)
            if not record:
                return None
            record.status = status.value
            record.updated_at = updated_at
            session.flush()
            return order_from_record(record)

    def delete(self, order_id: str) -> Optional[Order]:
        with self._db.session() as session:
            record = session.get(OrderRecord, order_id)
            if not record:
                return None
            snapshot = order_from_record(record)
            session.delete(record)
        return snapshot


class SqlAlchemyUserRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def add(self, user: User) -> User:
        with self._db.session() as session:
            session.add(
                UserRecord(
                    id=user.id,
                    username=user.username,
                    email=user.email,
                    password_hash=user.password_hash,
                    role=user.role.value,
                    created_at=user.created_at,
                    updated_at=user.updated_at,
                )
            )
        return user

    def get(self, user_id: str) -> Optional[User]:
        with self._db.session() as session:
            record = session.get(UserRecord, user_id)
            return user_from_record(record) if record else None

    def get_by_email(self, email: str) -> Optional[User]:
        with self._db.session() as session:
            record = session.execute(select(UserRecord).where(UserRecord.email == email)).scalars().first()
            return user_from_record(record) if record else None

    def update(self, user: User) -> User:
        with self._db.session() as session:
            record = session.get(UserRecord, user.id)
            if not record:
                return user
            record.username = user.username
            record.email = user.email
            record.password_hash = user.password_hash
            record.role = user.role.value
            record.updated_at = user.updated_at
        return user

    def delete(self, user_id: str) -> Optional[User]:
        with self._db.session() as session:
            record = session.get(UserRecord, user_id)
            if not record:
                return None
            snapshot = user_from_record(record)
            session.delete(record)
        return snapshot
