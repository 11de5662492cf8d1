"""
Pydantic Schemas for Request/Response Validation

Order requests are deliberately loose: line items are free-form objects
that the price calculator normalizes, and required fields are checked by the
order assembler so that a missing field is a 400 with the usual error body.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator

from food_delivery.services.pricing import MAX_INTEGER
from food_delivery.services.records import CompositeItem, CompositeOrder, OrderStatusRecord

# Decimal in Python, JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

MAX_DISH_PRICE = Decimal("99999999.99")
DEFAULT_PREPARATION_TIME = 30
DISH_REQUIRED_FIELDS = ("restaurant_id", "name", "price")


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderCreate(BaseModel):
    """Request schema for creating a new order."""
    model_config = ConfigDict(extra="ignore")

    restaurant_id: Optional[Union[int, str]] = Field(None, examples=[1])
    items: Optional[List[Any]] = Field(
        None,
        examples=[[{"dish_id": 1, "dish_name": "Pizza", "dish_price": "699.00", "quantity": 2}]],
    )
    delivery_address: Optional[str] = Field(None, max_length=500, examples=["10 Lenin St, apt 5"])
    payment_method: Optional[str] = Field(None, max_length=50, examples=["Card online"])
    restaurant_name: Optional[str] = Field(None, max_length=100)
    restaurant_image: Optional[str] = None
    customer_name: Optional[str] = Field(None, max_length=100)
    customer_phone: Optional[str] = Field(None, max_length=50)


class StatusUpdate(BaseModel):
    status: Optional[str] = Field(None, examples=["preparing"])


def parse_dish_price(v: Any) -> Optional[Decimal]:
    """Admin-entered price: accepts a decimal comma, must fit ``Numeric(10, 2)``."""
    if v is None:
        return v
    if isinstance(v, str):
        v = v.strip().replace(",", ".")
    try:
        price = Decimal(str(v))
        if not price.is_finite() or price <= 0 or price > MAX_DISH_PRICE:
            raise ValueError("Price must be a positive number up to 99999999.99")
        return price.quantize(Decimal("0.01"))
    except ArithmeticError:
        raise ValueError("Price must be a positive number up to 99999999.99")


def parse_preparation_time(v: Any) -> Optional[int]:
    # Unparseable or out-of-range values fall back to the default 30 minutes
    if v is None:
        return v
    try:
        minutes = int(v)
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_PREPARATION_TIME
    if not 0 <= minutes <= MAX_INTEGER:
        return DEFAULT_PREPARATION_TIME
    return minutes


class DishUpdate(BaseModel):
    """Partial dish update. Only fields present in the request are applied."""
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    image_url: Optional[str] = None
    price: Optional[Decimal] = None
    preparation_time: Optional[int] = None
    is_spicy: Optional[bool] = None
    is_vegetarian: Optional[bool] = None
    is_available: Optional[bool] = None

    @field_validator("price", mode="before")
    @classmethod
    def validate_price(cls, v: Any) -> Any:
        return parse_dish_price(v)

    @field_validator("preparation_time", mode="before")
    @classmethod
    def validate_preparation_time(cls, v: Any) -> Any:
        return parse_preparation_time(v)


class DishCreate(BaseModel):
    """
    New menu dish.

    ``restaurant_id``, ``name`` and ``price`` are checked by the route so a
    missing one is reported with the other two.
    """
    model_config = ConfigDict(extra="ignore")

    restaurant_id: Optional[int] = Field(None, gt=0, le=MAX_INTEGER, examples=[1])
    name: Optional[str] = Field(None, max_length=100, examples=["Ribeye Steak"])
    price: Optional[Decimal] = Field(None, examples=["1899.00"])
    description: Optional[str] = None
    image_url: Optional[str] = None
    ingredients: List[str] = Field(default_factory=list)
    preparation_time: int = DEFAULT_PREPARATION_TIME
    is_vegetarian: bool = False
    is_spicy: bool = False

    @field_validator("price", mode="before")
    @classmethod
    def validate_price(cls, v: Any) -> Any:
        if v == "":
            return None
        return parse_dish_price(v)

    @field_validator("preparation_time", mode="before")
    @classmethod
    def validate_preparation_time(cls, v: Any) -> Any:
        return parse_preparation_time(v) or DEFAULT_PREPARATION_TIME

    @field_validator("ingredients", mode="before")
    @classmethod
    def validate_ingredients(cls, v: Any) -> Any:
        # A single ingredient may be sent as a bare string
        if v is None or v == "":
            return []
        if isinstance(v, list):
            return v
        return [v]

    def missing_fields(self) -> List[str]:
        return [name for name in DISH_REQUIRED_FIELDS if getattr(self, name) in (None, "")]


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderItemResponse(BaseModel):
    dish_id: Optional[int] = None
    dish_name: str
    dish_price: Money
    quantity: int
    dish_image: str = ""
    dish_description: Optional[str] = None

    @classmethod
    def from_record(cls, item: CompositeItem) -> "OrderItemResponse":
        return cls(
            dish_id=item.dish_id,
            dish_name=item.dish_name,
            dish_price=item.dish_price,
            quantity=item.quantity,
            dish_image=item.dish_image,
            dish_description=item.dish_description,
        )


class OrderResponse(BaseModel):
    """Order as returned to customers."""
    id: str
    restaurant_name: str
    restaurant_image: str
    order_date: datetime
    total_amount: Money
    status: str
    delivery_address: str
    payment_method: str
    items: List[OrderItemResponse]

    @classmethod
    def from_record(cls, order: CompositeOrder) -> "OrderResponse":
        return cls(
            id=str(order.id),
            restaurant_name=order.restaurant_name,
            restaurant_image=order.restaurant_image,
            order_date=order.order_date,
            total_amount=order.total_amount,
            status=order.status,
            delivery_address=order.delivery_address,
            payment_method=order.payment_method,
            items=[OrderItemResponse.from_record(i) for i in order.items],
        )


class BotOrderResponse(OrderResponse):
    """Order as returned to the operations bot: adds customer contact."""
    customer_name: str
    customer_phone: str
    mode: Optional[str] = None

    @classmethod
    def from_record(cls, order: CompositeOrder) -> "BotOrderResponse":
        base = OrderResponse.from_record(order)
        return cls(
            **base.model_dump(),
            customer_name=order.customer_name,
            customer_phone=order.customer_phone,
            mode=order.mode,
        )


class OrderCreateResponse(BaseModel):
    success: bool = True
    message: str
    order: OrderResponse


class OrderListResponse(BaseModel):
    success: bool = True
    orders: List[OrderResponse]


class BotOrderListResponse(BaseModel):
    success: bool = True
    orders: List[BotOrderResponse]
    mode: Optional[str] = None


class BotOrderDetailResponse(BaseModel):
    success: bool = True
    order: BotOrderResponse


class StatusChange(BaseModel):
    id: str
    status: str
    updated_at: datetime
    mode: Optional[str] = None

    @classmethod
    def from_record(cls, record: OrderStatusRecord) -> "StatusChange":
        return cls(
            id=str(record.id),
            status=record.status,
            updated_at=record.updated_at,
            mode=record.mode,
        )


class StatusUpdateResponse(BaseModel):
    success: bool = True
    message: str
    order: StatusChange


class UserStatsResponse(BaseModel):
    total_orders: int
    delivered_orders: int
    pending_orders: int
    total_spent: Money
    average_order_value: int
    favorite_restaurant: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    notification_service: str
    telegram: str
    environment: str
    timestamp: datetime
