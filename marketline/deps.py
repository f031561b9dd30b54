from __future__ import annotations

from fastapi import Depends, Request

from .container import Container
from .services import AuthService, CatalogService, HealthService, OrderService, UserService


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_auth_service(container: Container = Depends(get_container)) -> AuthService:
    return container.auth_service


def get_user_service(container: Container = Depends(get_container)) -> UserService:
    return container.user_service


def get_catalog_service(container: Container = Depends(get_container)) -> CatalogService:
    return container.catalog_service


def get_order_service(container: Container = Depends(get_container)) -> OrderService:
    return container.order_service


def get_health_service(container: Container = Depends(get_container)) -> HealthService:
    return container.health_service
