"""
Plain records passed between the persistence gateway and its callers.

They carry no ORM state, so real (database) and synthetic (mock mode)
orders look exactly the same to the rest of the application.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

DEFAULT_RESTAURANT_NAME = "Restaurant"
DEFAULT_PAYMENT_METHOD = "Card online"
DEFAULT_CUSTOMER_NAME = "Customer"
DEFAULT_CUSTOMER_PHONE = "Not provided"
DEFAULT_DELIVERY_ADDRESS = "Address not provided"


@dataclass
class OrderHeader:
    """Everything needed to insert an order row."""
    user_id: Optional[int]
    restaurant_id: Optional[int]
    total_amount: Decimal
    delivery_address: str
    restaurant_name: str = DEFAULT_RESTAURANT_NAME
    restaurant_image: str = ""
    payment_method: str = DEFAULT_PAYMENT_METHOD
    customer_name: str = DEFAULT_CUSTOMER_NAME
    customer_phone: str = DEFAULT_CUSTOMER_PHONE
    status: str = "pending"


@dataclass
class CompositeItem:
    dish_id: Optional[int]
    dish_name: str
    dish_price: Decimal
    quantity: int
    dish_image: str = ""
    dish_description: Optional[str] = None


@dataclass
class CompositeOrder:
    """An order header joined with its line items."""
    id: int
    restaurant_name: str
    restaurant_image: str
    order_date: datetime
    total_amount: Decimal
    status: str
    delivery_address: str
    payment_method: str
    customer_name: str = DEFAULT_CUSTOMER_NAME
    customer_phone: str = DEFAULT_CUSTOMER_PHONE
    user_id: Optional[int] = None
    items: list[CompositeItem] = field(default_factory=list)
    mode: Optional[str] = None  # "mock" for synthesized orders


@dataclass
class OrderStatusRecord:
    """Result of a status write."""
    id: int
    status: str
    user_id: Optional[int]
    updated_at: datetime
    mode: Optional[str] = None
