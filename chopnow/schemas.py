import re
from datetime import datetime
from typing import Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import DeliveryStatus, OrderStatus, PaymentStatus, Role

T = TypeVar("T")

PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$")
NAME_RE = re.compile(r"^[a-zA-Z\s'-]+$")
PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")


class CamelModel(BaseModel):
    """Wire format is camelCase; snake_case is accepted on input too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Envelope(CamelModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


def _check_password(value: str) -> str:
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters long")
    if len(value) > 128:
        raise ValueError("Password must not exceed 128 characters")
    if not PASSWORD_RE.match(value):
        raise ValueError(
            "Password must contain at least one uppercase letter, one lowercase letter, "
            "one number, and one special character (@$!%*?&)"
        )
    return value


def _reject_null(value, info):
    # fields may be omitted from an update, but not cleared
    if value is None:
        raise ValueError(f"{to_camel(info.field_name)} cannot be null")
    return value


# ----- Auth -----

class RegisterRequest(CamelModel):
    email: EmailStr = Field(..., max_length=100)
    password: str
    name: str
    phone: Optional[str] = None
    role: Literal["CUSTOMER", "RESTAURANT_OWNER", "RIDER"] = "CUSTOMER"

    @field_validator("password")
    @classmethod
    def password_policy(cls, v: str) -> str:
        return _check_password(v)

    @field_validator("name")
    @classmethod
    def name_format(cls, v: str) -> str:
        v = v.strip()
        if not 2 <= len(v) <= 50:
            raise ValueError("Name must be between 2 and 50 characters long")
        if not NAME_RE.match(v):
            raise ValueError("Name can only contain letters, spaces, hyphens, and apostrophes")
        return v

    @field_validator("phone")
    @classmethod
    def phone_format(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not PHONE_RE.match(v):
            raise ValueError("Phone number must be valid (e.g., +1234567890 or 1234567890)")
        return v


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def password_policy(cls, v: str) -> str:
        return _check_password(v)


class UserRead(CamelModel):
    id: int
    email: str
    name: str
    phone: Optional[str] = None
    role: Role
    is_active: bool


class AuthData(CamelModel):
    user: UserRead
    token: str


# ----- Restaurants / menu -----

class RestaurantCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None
    address: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    image_url: Optional[str] = None
    delivery_fee: float = Field(0.0, ge=0)
    min_order: float = Field(0.0, ge=0)
    delivery_time: int = Field(30, ge=1)


class RestaurantUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    image_url: Optional[str] = None
    delivery_fee: Optional[float] = Field(None, ge=0)
    min_order: Optional[float] = Field(None, ge=0)
    delivery_time: Optional[int] = Field(None, ge=1)
    is_open: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator(
        "name", "address", "phone", "delivery_fee", "min_order", "delivery_time", "is_open", "is_active"
    )
    @classmethod
    def not_null(cls, v, info):
        return _reject_null(v, info)


class MenuItemCreate(CamelModel):
    restaurant_id: int
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    category: str = Field(..., min_length=1)
    image_url: Optional[str] = None
    is_available: bool = True


class MenuItemUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    image_url: Optional[str] = None
    is_available: Optional[bool] = None

    @field_validator("name", "price", "category", "is_available")
    @classmethod
    def not_null(cls, v, info):
        return _reject_null(v, info)


class MenuItemRead(CamelModel):
    id: int
    restaurant_id: int
    name: str
    description: Optional[str] = None
    price: float
    category: str
    image_url: Optional[str] = None
    is_available: bool


class RestaurantRead(CamelModel):
    id: int
    owner_id: int
    name: str
    description: Optional[str] = None
    address: str
    phone: str
    image_url: Optional[str] = None
    delivery_fee: float
    min_order: float
    delivery_time: int
    rating: float
    is_active: bool
    is_open: bool


class RestaurantDetail(RestaurantRead):
    menu_items: List[MenuItemRead] = []


# ----- Orders -----

class OrderItemRequest(CamelModel):
    menu_item_id: int
    quantity: int = Field(..., ge=1)
    notes: Optional[str] = Field(None, max_length=500)


class CreateOrderRequest(CamelModel):
    restaurant_id: int
    items: List[OrderItemRequest] = Field(..., min_length=1)
    delivery_address: str = Field(..., min_length=1, max_length=255)
    delivery_notes: Optional[str] = Field(None, max_length=500)
    payment_method: str = Field("CARD", min_length=1, max_length=30)

    @field_validator("delivery_address")
    @classmethod
    def address_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Delivery address is required")
        return v.strip()


class UpdateOrderStatusRequest(CamelModel):
    status: OrderStatus
    estimated_delivery_time: Optional[datetime] = None


class AssignRiderRequest(CamelModel):
    rider_id: int


class MenuItemSummary(CamelModel):
    id: int
    name: str
    price: float


class OrderItemRead(CamelModel):
    id: int
    menu_item_id: int
    quantity: int
    price: float
    notes: Optional[str] = None
    menu_item: Optional[MenuItemSummary] = None


class RestaurantSummary(CamelModel):
    id: int
    name: str
    address: str
    phone: str


class CustomerSummary(CamelModel):
    id: int
    name: str
    email: str


class DeliveryRead(CamelModel):
    id: int
    rider_id: Optional[int] = None
    status: DeliveryStatus
    pickup_time: Optional[datetime] = None
    delivery_time: Optional[datetime] = None


class PaymentRead(CamelModel):
    id: int
    amount: float
    method: str
    status: PaymentStatus


class OrderRead(CamelModel):
    id: int
    order_number: str
    customer_id: int
    restaurant_id: int
    status: OrderStatus
    delivery_address: str
    delivery_notes: Optional[str] = None
    subtotal: float
    delivery_fee: float
    tax: float
    total: float
    estimated_delivery_time: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemRead]
    restaurant: Optional[RestaurantSummary] = None
    customer: Optional[CustomerSummary] = None
    delivery: Optional[DeliveryRead] = None
    payment: Optional[PaymentRead] = None


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int


class OrderPage(CamelModel):
    orders: List[OrderRead]
    pagination: Pagination


# ----- Reviews -----

class ReviewCreate(CamelModel):
    order_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


class ReviewRead(CamelModel):
    id: int
    user_id: int
    restaurant_id: int
    order_id: int
    rating: int
    comment: Optional[str] = None
    created_at: datetime
