from __future__ import annotations

from typing import Optional

import strawberry
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from strawberry.fastapi import GraphQLRouter
from strawberry.types import Info

from .api.rest import router as rest_router
from .container import Container, build_container
from .domain import Product
from .errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    OutOfStockError,
    UnauthorizedError,
    ValidationError,
)
from .logging import ServiceLogger, setup_logging
from .middleware.rate_limit import configure_rate_limiting
from .observability import configure_observability
from .services import CatalogService
from .settings import Settings, load_settings


@strawberry.type
class GraphQLProduct:
    id: str
    name: str
    category: str
    price: str
    stock: int
    description: Optional[str]
    in_stock: bool


def to_graphql_product(product: Product) -> GraphQLProduct:
    return GraphQLProduct(
        id=product.id,
        name=product.name,
        category=product.category,
        price=str(product.price),
        stock=product.stock,
        description=product.description,
        in_stock=product.stock > 0,
    )


def graphql_schema() -> strawberry.Schema:
    @strawberry.type
    class Query:
        @strawberry.field
        def product(self, info: Info, id: str) -> Optional[GraphQLProduct]:
            service: CatalogService = info.context["container"].catalog_service
            try:
                product = service.get_product(id)
            except NotFoundError:
                return None
            return to_graphql_product(product)

        @strawberry.field
        def products(self, info: Info, name: str) -> list[GraphQLProduct]:
            service: CatalogService = info.context["container"].catalog_service
            try:
                products = service.search_by_name(name)
            except (NotFoundError, ValidationError):
                return []
            return [to_graphql_product(product) for product in products]

    return strawberry.Schema(query=Query)


def create_app(settings: Settings, container: Optional[Container] = None) -> FastAPI:
    setup_logging(settings.log_level)
    log = ServiceLogger("http")

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        description="Users, product catalog and order placement with stock allocation.",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    configure_rate_limiting(app, settings)

    container = container or build_container(settings)
    app.state.container = container

    configure_observability(
        app,
        settings,
        engine=container.db.engine if container.db else None,
        mongo_enabled=container.document_db is not None,
    )

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        container.close()

    @app.exception_handler(NotFoundError)
    async def handle_not_found(_, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"message": exc.detail})

    @app.exception_handler(UnauthorizedError)
    async def handle_unauthorized(_, __):
        return JSONResponse(status_code=401, content={"message": "Unauthorized"})

    @app.exception_handler(ForbiddenError)
    async def handle_forbidden(_, exc: ForbiddenError):
        return JSONResponse(status_code=403, content={"message": exc.detail})

    @app.exception_handler(ConflictError)
    async def handle_conflict(_, exc: ConflictError):
        return JSONResponse(status_code=409, content={"message": exc.detail})

    @app.exception_handler(ValidationError)
    async def handle_validation(_, exc: ValidationError):
        if isinstance(exc.detail, dict):
            return JSONResponse(status_code=400, content=exc.detail)
        if isinstance(exc.detail, str):
            return JSONResponse(status_code=400, content={"message": exc.detail})
        return JSONResponse(status_code=400, content={"message": "Validation error", "errors": exc.detail})

    @app.exception_handler(OutOfStockError)
    async def handle_out_of_stock(_, exc: OutOfStockError):
        return JSONResponse(
            status_code=400,
            content={
                "message": "All products are out of stock.",
                "outOfStockProducts": [
                    shortage.model_dump(mode="json", by_alias=True, exclude_none=True) for shortage in exc.shortages
                ],
            },
        )

    @app.exception_handler(InternalError)
    async def handle_internal(request: Request, exc: InternalError):
        log.error("Request failed", path=request.url.path, error=exc.detail)
        return JSONResponse(status_code=500, content={"error": exc.detail})

    async def graphql_context(request: Request):
        return {"container": request.app.state.container}

    schema = graphql_schema()
    app.include_router(GraphQLRouter(schema, context_getter=graphql_context), prefix="/graphql")

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get(settings.request_id_header, "") or container.id_provider.new_id()
        response = await call_next(request)
        response.headers[settings.request_id_header] = request_id
        return response

    app.include_router(rest_router)
    app.include_router(rest_router, prefix="/v1")

    return app


app = create_app(load_settings())
