from __future__ import annotations

from typing import Any, Dict, Type, TypeVar

import pydantic
from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..deps import (
    get_auth_service,
    get_catalog_service,
    get_health_service,
    get_order_service,
    get_user_service,
)
from ..domain import (
    AuthContext,
    HealthStatus,
    LoginRequest,
    OrderDetail,
    OrderRequest,
    Product,
    ProductCreate,
    ProductUpdate,
    TokenInput,
    TokenResponse,
    User,
    UserCreate,
    UserProfile,
    UserUpdate,
)
from ..errors import ValidationError
from ..services import AuthService, CatalogService, HealthService, OrderService, UserService

security = HTTPBearer()

router = APIRouter()

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


def auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    auth: AuthService = Depends(get_auth_service),
) -> AuthContext:
    return auth.verify_token(TokenInput(token=credentials.credentials))


def request_host(request: Request) -> str:
    return request.headers.get("host") or request.url.netloc


def parse_changes(model: Type[ModelT], payload: Dict[str, Any]) -> ModelT:
    invalid = sorted(set(payload) - set(model.model_fields))
    if invalid:
        raise ValidationError({"message": "Invalid fields provided", "invalidFields": invalid})
    try:
        return model(**payload)
    except pydantic.ValidationError as exc:
        raise ValidationError(exc.errors(include_url=False, include_context=False)) from exc


def parse_order_request(payload: Any) -> OrderRequest:
    products = payload.get("products") if isinstance(payload, dict) else None
    if not isinstance(products, list) or not products:
        raise ValidationError("Invalid or empty products array")
    try:
        return OrderRequest(products=products)
    except pydantic.ValidationError as exc:
        raise ValidationError("Invalid product data") from exc


def profile(user: User) -> Dict[str, Any]:
    return UserProfile(**user.model_dump()).model_dump(mode="json")


def product_payload(product: Product) -> Dict[str, Any]:
    return product.model_dump(mode="json", exclude={"owner_id"})


def order_detail_payload(detail: OrderDetail) -> Dict[str, Any]:
    return {
        "orderInformation": detail.order.model_dump(mode="json", by_alias=True, exclude={"owner_id"}),
        "orderInDetail": [
            line.model_dump(mode="json", by_alias=True, exclude={"id", "order_id"}) for line in detail.lines
        ],
    }


@router.get("/health", response_model=HealthStatus)
async def health(service: HealthService = Depends(get_health_service)):
    return service.health()


# Users


@router.post("/auth/login", response_model=TokenResponse)
async def login(payload: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    return auth.login(payload)


@router.post("/users", status_code=201)
async def register(payload: UserCreate, service: UserService = Depends(get_user_service)):
    result = service.register(payload)
    user = result.user
    return JSONResponse(
        status_code=201,
        content={
            "message": "New user created successfully!",
            "data": {"email": user.email, "username": user.username, "created_at": user.created_at.isoformat()},
        },
        headers={"x-auth-token": result.token.access_token},
    )


@router.get("/users/me")
async def get_me(
    ctx: AuthContext = Depends(auth_context),
    service: UserService = Depends(get_user_service),
):
    return {"data": profile(service.get_user(ctx.sub))}


@router.put("/users/me")
async def update_me(
    payload: Dict[str, Any] = Body(...),
    ctx: AuthContext = Depends(auth_context),
    service: UserService = Depends(get_user_service),
):
    user = service.update_user(ctx.sub, parse_changes(UserUpdate, payload))
    return {"message": "User updated successfully", "data": profile(user)}


@router.delete("/users/me")
def delete_me(
    ctx: AuthContext = Depends(auth_context),
    service: UserService = Depends(get_user_service),
):
    user = service.delete_user(ctx.sub)
    return {"message": "This user has been deleted successfully!", "data": user.email}


@router.get("/users/seller")
def request_seller(
    request: Request,
    ctx: AuthContext = Depends(auth_context),
    service: UserService = Depends(get_user_service),
):
    user = service.request_seller(ctx.sub, request_host(request))
    return {"message": f"A verification email has been sent to {user.email}"}


@router.put("/users/confirmation/{email}")
async def confirm_seller(
    email: str,
    ctx: AuthContext = Depends(auth_context),
    service: UserService = Depends(get_user_service),
):
    service.confirm_seller(ctx.sub, email)
    return {"message": "BINGO, You are a seller now!"}


# Products


@router.post("/products", status_code=201)
async def create_product(
    payload: ProductCreate,
    ctx: AuthContext = Depends(auth_context),
    service: CatalogService = Depends(get_catalog_service),
):
    result = service.create_product(ctx.sub, payload)
    if result.created:
        return {"message": "New product created successfully!", "data": product_payload(result.product)}
    return JSONResponse(
        status_code=200,
        content={"message": "Product count incremented successfully!", "data": product_payload(result.product)},
    )


@router.get("/products/search")
async def search_products(name: str = "", service: CatalogService = Depends(get_catalog_service)):
    products = service.search_by_name(name)
    return {"productsInfo": [product_payload(product) for product in products]}


@router.get("/products/by-category")
async def products_by_category(category: str = "", service: CatalogService = Depends(get_catalog_service)):
    summaries = service.list_by_category(category)
    return {"Products": [summary.model_dump(mode="json", by_alias=True) for summary in summaries]}


@router.get("/products/{product_id}")
async def get_product(product_id: str, service: CatalogService = Depends(get_catalog_service)):
    return {"data": product_payload(service.get_product(product_id))}


@router.put("/products/{product_id}")
async def update_product(
    product_id: str,
    payload: Dict[str, Any] = Body(...),
    ctx: AuthContext = Depends(auth_context),
    service: CatalogService = Depends(get_catalog_service),
):
    product = service.update_product(product_id, ctx.sub, parse_changes(ProductUpdate, payload))
    return {"message": "Product updated successfully!", "data": product_payload(product)}


@router.delete("/products/{product_id}")
async def delete_product(
    product_id: str,
    ctx: AuthContext = Depends(auth_context),
    service: CatalogService = Depends(get_catalog_service),
):
    product = service.delete_product(product_id, ctx.sub)
    return {"message": "This product has been deleted successfully!", "data": product_payload(product)}


# Orders


@router.post("/orders", status_code=201)
async def place_order(
    payload: Any = Body(...),
    ctx: AuthContext = Depends(auth_context),
    service: OrderService = Depends(get_order_service),
):
    result = service.place_order(ctx.sub, parse_order_request(payload))
    if not result.partial:
        return {"message": "New order created successfully!", "data": result.order_id}
    return {
        "message": "New order created successfully, and there were some out of stock products!",
        "data": result.order_id,
        "outOfStock": [
            shortage.model_dump(mode="json", by_alias=True, exclude_none=True) for shortage in result.out_of_stock
        ],
    }


@router.get("/orders/{order_id}")
async def get_order(
    order_id: str,
    _: AuthContext = Depends(auth_context),
    service: OrderService = Depends(get_order_service),
):
    return order_detail_payload(service.get_order(order_id))


@router.post("/orders/{order_id}/arrived")
def order_arrived(
    order_id: str,
    request: Request,
    _: AuthContext = Depends(auth_context),
    service: OrderService = Depends(get_order_service),
):
    detail = service.mark_arrived(order_id, request_host(request))
    return {"message": "Your order has arrived!", **order_detail_payload(detail)}


@router.put("/orders/confirmation/{order_id}")
async def confirm_order(
    order_id: str,
    ctx: AuthContext = Depends(auth_context),
    service: OrderService = Depends(get_order_service),
):
    order = service.confirm_order(order_id, ctx.sub)
    return {
        "message": "You have confirm the complete of the delivery process successfully!",
        "data": order.model_dump(mode="json", by_alias=True),
    }


@router.delete("/orders/{order_id}")
async def delete_order(
    order_id: str,
    ctx: AuthContext = Depends(auth_context),
    service: OrderService = Depends(get_order_service),
):
    order = service.delete_order(order_id, ctx.sub)
    return {
        "message": "This order has been deleted successfully!",
        "data": order.model_dump(mode="json", by_alias=True),
    }
