from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .documents.db import DocumentDb
from .documents.store import MongoCatalogRepository
from .logging import ServiceLogger
from .notifications import Notifier, OutboxNotifier, SmtpNotifier
from .persistence.db import Database
from .persistence.repositories import SqlAlchemyOrderRepository, SqlAlchemyUserRepository
from .providers import Clock, IdProvider, SystemClock, UUIDProvider
from .repositories import (
    CatalogRepository,
    InMemoryCatalogRepository,
    InMemoryOrderRepository,
    InMemoryUserRepository,
    OrderRepository,
    UserRepository,
)
from .seed import seed_catalog_if_empty
from .services import AuthService, CatalogService, HealthService, OrderService, UserService
from .settings import Settings


@dataclass
class Container:
    settings: Settings
    auth_service: AuthService
    user_service: UserService
    catalog_service: CatalogService
    order_service: OrderService
    health_service: HealthService
    catalog: CatalogRepository
    orders: OrderRepository
    users: UserRepository
    notifier: Notifier
    clock: Clock
    id_provider: IdProvider
    db: Optional[Database] = None
    document_db: Optional[DocumentDb] = None

    def close(self) -> None:
        if self.document_db:
            self.document_db.close()
        if self.db:
            self.db.dispose()


def build_notifier(settings: Settings, clock: Clock) -> Notifier:
    if settings.smtp_host:
        return SmtpNotifier(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.mail_from,
            clock=clock,
            user=settings.smtp_user,
            password=settings.smtp_password,
            starttls=settings.smtp_starttls,
        )
    return OutboxNotifier(clock)


def build_container(
    settings: Settings,
    clock: Optional[Clock] = None,
    ids: Optional[IdProvider] = None,
) -> Container:
    clock = clock or SystemClock()
    ids = ids or UUIDProvider()
    log = ServiceLogger("container")
    checks: Dict[str, Callable[[], bool]] = {}

    db: Optional[Database] = None
    document_db: Optional[DocumentDb] = None

    if settings.database_url:
        db = Database(settings.database_url, echo=settings.db_echo)
        db.create_tables()
        orders: OrderRepository = SqlAlchemyOrderRepository(db)
        users: UserRepository = SqlAlchemyUserRepository(db)
        checks["relational"] = db.ping
        log.info("Relational store enabled", dialect=db.engine.dialect.name)
    else:
        orders = InMemoryOrderRepository()
        users = InMemoryUserRepository()

    if settings.mongodb_url:
        document_db = DocumentDb(url=settings.mongodb_url, database=settings.mongodb_database)
        document_db.verify_connectivity()
        document_db.ensure_indexes()
        catalog: CatalogRepository = MongoCatalogRepository(document_db, clock)

        def ping_documents() -> bool:
            document_db.verify_connectivity()
            return True

        checks["documents"] = ping_documents
        log.info("Document store enabled", database=settings.mongodb_database)
    else:
        catalog = InMemoryCatalogRepository()

    seeded = seed_catalog_if_empty(catalog, settings.catalog_seed_path, clock, ids)
    if seeded:
        log.info("Catalog seeded", products=seeded)

    notifier = build_notifier(settings, clock)

    auth_service = AuthService(settings, users, clock)
    user_service = UserService(users, auth_service, notifier, clock, ids)
    catalog_service = CatalogService(catalog, users, clock, ids)
    order_service = OrderService(
        orders,
        catalog,
        users,
        notifier,
        clock,
        ids,
        stock_mode=settings.stock_update_mode,
    )
    health_service = HealthService(clock, checks)

    return Container(
        settings=settings,
        auth_service=auth_service,
        user_service=user_service,
        catalog_service=catalog_service,
        order_service=order_service,
        health_service=health_service,
        catalog=catalog,
        orders=orders,
        users=users,
        notifier=notifier,
        clock=clock,
        id_provider=ids,
        db=db,
        document_db=document_db,
    )
