from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, condecimal, conint, constr
from pydantic.alias_generators import to_camel


class OrderStatus(str, Enum):
    UNCOMPLETED = "uncompleted"
    COMPLETED = "completed"


class UserRole(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"


class StockUpdateMode(str, Enum):
    ATOMIC = "atomic"
    COMPAT = "compat"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Users and auth


class UserCreate(BaseModel):
    username: constr(min_length=3, max_length=15)
    email: constr(min_length=7, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: constr(min_length=4, max_length=25)


class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    username: Optional[constr(min_length=3, max_length=15)] = None
    email: Optional[constr(min_length=7, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")] = None
    password: Optional[constr(min_length=4, max_length=25)] = None


class User(BaseModel):
    id: str
    username: str
    email: str
    password_hash: str
    role: UserRole = UserRole.BUYER
    created_at: datetime
    updated_at: datetime


class UserProfile(BaseModel):
    username: str
    email: str
    role: UserRole
    created_at: datetime
    updated_at: datetime


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int


class TokenInput(BaseModel):
    token: str


class AuthContext(BaseModel):
    sub: str
    iss: str
    exp: int


class RegistrationResult(BaseModel):
    user: User
    token: TokenResponse


# Catalog


class ProductCreate(BaseModel):
    name: constr(min_length=1)
    price: condecimal(ge=0, max_digits=10, decimal_places=2)
    category: constr(min_length=1)
    description: Optional[str] = None


class ProductUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[constr(min_length=1)] = None
    price: Optional[condecimal(ge=0, max_digits=10, decimal_places=2)] = None
    description: Optional[str] = None
    category: Optional[constr(min_length=1)] = None
    stock: Optional[conint(ge=0)] = None


class Product(BaseModel):
    id: str
    name: str
    category: str
    price: Decimal
    stock: int = Field(ge=0)
    description: Optional[str] = None
    owner_id: str
    created_at: datetime
    updated_at: datetime


class ProductSummary(CamelModel):
    name: str
    description: Optional[str] = None
    stock_availability: str


class ProductCreateResult(BaseModel):
    product: Product
    created: bool


# Orders and allocation


class RequestedLine(BaseModel):
    name: str = ""
    category: str = ""
    quantity: int = 0


class OrderRequest(BaseModel):
    products: List[RequestedLine] = Field(default_factory=list)


class FulfilledLine(BaseModel):
    product_id: str
    name: str
    category: str
    quantity: int
    unit_price: Decimal


class ShortageRecord(CamelModel):
    name: str
    wanted_quantity: int
    available_quantity: Optional[int] = None
    remaining_quantity: Optional[int] = None
    # False only for products missing from the catalog.
    available: Optional[bool] = None


class Unavailable(BaseModel):
    kind: Literal["unavailable"] = "unavailable"
    name: str
    wanted_quantity: int

    @property
    def shortage(self) -> ShortageRecord:
        return ShortageRecord(name=self.name, wanted_quantity=self.wanted_quantity, available=False)


class FullyAllocated(BaseModel):
    kind: Literal["fully_allocated"] = "fully_allocated"
    line: FulfilledLine


class PartiallyAllocated(BaseModel):
    kind: Literal["partially_allocated"] = "partially_allocated"
    line: FulfilledLine
    shortage: ShortageRecord


class ZeroAvailable(BaseModel):
    kind: Literal["zero_available"] = "zero_available"
    shortage: ShortageRecord


AllocationOutcome = Annotated[
    Union[Unavailable, FullyAllocated, PartiallyAllocated, ZeroAvailable],
    Field(discriminator="kind"),
]


class Allocation(BaseModel):
    outcomes: List[AllocationOutcome]
    in_stock: List[FulfilledLine]
    out_of_stock: List[ShortageRecord]
    total_amount: Decimal


class Order(CamelModel):
    id: str
    total_amount: Decimal
    status: OrderStatus = OrderStatus.UNCOMPLETED
    owner_id: str
    created_at: datetime
    updated_at: datetime


class OrderLine(CamelModel):
    id: str
    order_id: str
    product_id: str
    product_name: str
    product_category: str
    quantity: int
    price: Decimal


class OrderDetail(BaseModel):
    order: Order
    lines: List[OrderLine]


class PlacementResult(BaseModel):
    order_id: str
    total_amount: Decimal
    out_of_stock: List[ShortageRecord] = Field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.out_of_stock)


# Misc


class Notification(BaseModel):
    recipient: str
    subject: str
    body: str
    sent_at: datetime


class HealthStatus(BaseModel):
    status: str
    time: datetime
    backends: Dict[str, Any] = Field(default_factory=dict)
