"""
Mock-Mode Data

Fixed responses served while the database is unreachable, plus the demo
catalog that seeds an empty database. Nothing here touches storage.
"""

import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

from food_delivery.services.pricing import PricedOrder
from food_delivery.services.records import (
    CompositeItem,
    CompositeOrder,
    OrderHeader,
    OrderStatusRecord,
)

MOCK_MODE = "mock"
DEMO_USER_ID = 1
NO_DATA = "No data"

RESTAURANT_IMAGE = "https://images.unsplash.com/photo-1517248135467-4c7edcad34c4?w=400"

DEMO_RESTAURANT: dict[str, Any] = {
    "id": 1,
    "name": "The Hungry Boar",
    "description": "Fire-grilled meat house: steaks, ribs, burgers and plenty more meat!",
    "image_url": "https://images.unsplash.com/photo-1517248135467-4c7edcad34c4?w=800&auto=format&fit=crop",
    "rating": Decimal("4.90"),
    "delivery_time": "30-45 min",
    "delivery_price": "Free from 1000",
    "categories": ["Meat", "Steaks", "Burgers", "Ribs", "Grill"],
}

DEMO_DISHES: list[dict[str, Any]] = [
    {
        "id": 1,
        "name": "Ribeye Steak",
        "description": "Juicy marbled beef steak, cooked to order",
        "image_url": "https://images.unsplash.com/photo-1600891964092-4316c288032e?w=400",
        "price": Decimal("1899.00"),
        "ingredients": ["Beef", "Salt", "Pepper", "Herbs"],
        "preparation_time": 25,
        "is_vegetarian": False,
        "is_spicy": False,
    },
    {
        "id": 2,
        "name": "BBQ Ribs",
        "description": "Pork ribs in honey-butter sauce",
        "image_url": "https://images.unsplash.com/photo-1544025162-d76694265947?w=400",
        "price": Decimal("1299.00"),
        "ingredients": ["Pork ribs", "BBQ sauce", "Honey", "Spices"],
        "preparation_time": 30,
        "is_vegetarian": False,
        "is_spicy": True,
    },
    {
        "id": 3,
        "name": "Boar Burger",
        "description": "Beef patty burger with bacon and cheddar",
        "image_url": "https://images.unsplash.com/photo-1568901346375-23c9450c58cd?w=400",
        "price": Decimal("799.00"),
        "ingredients": ["Bun", "Beef", "Bacon", "Cheese", "Sauce"],
        "preparation_time": 20,
        "is_vegetarian": False,
        "is_spicy": False,
    },
    {
        "id": 4,
        "name": "Chicken Wings",
        "description": "Crispy chicken wings with a sauce of your choice",
        "image_url": "https://images.unsplash.com/photo-1567620832903-9fc6debc209f?w=400",
        "price": Decimal("599.00"),
        "ingredients": ["Chicken wings", "Sauce", "Spices"],
        "preparation_time": 15,
        "is_vegetarian": False,
        "is_spicy": True,
    },
    {
        "id": 5,
        "name": "Country Potatoes",
        "description": "Baked potatoes with herbs and garlic",
        "image_url": "https://images.unsplash.com/photo-1573080496219-bb080dd4f877?w=400",
        "price": Decimal("299.00"),
        "ingredients": ["Potatoes", "Garlic", "Herbs", "Butter"],
        "preparation_time": 15,
        "is_vegetarian": True,
        "is_spicy": False,
    },
]


def sample_items() -> list[tuple[dict[str, Any], int]]:
    """Dish and quantity pairs of the example order: one steak, two potatoes."""
    return [(DEMO_DISHES[0], 1), (DEMO_DISHES[4], 2)]


def _now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# CATALOG
# =============================================================================

def restaurants() -> list[dict[str, Any]]:
    return [dict(DEMO_RESTAURANT)]


def restaurant(restaurant_id: int) -> Optional[dict[str, Any]]:
    if restaurant_id == DEMO_RESTAURANT["id"]:
        return dict(DEMO_RESTAURANT)
    return None


def menu(restaurant_id: int) -> list[dict[str, Any]]:
    if restaurant_id != DEMO_RESTAURANT["id"]:
        return []
    # Mock menu is the first two dishes, like the demo app shows offline
    return [dict(dish, restaurant_id=DEMO_RESTAURANT["id"], is_available=True) for dish in DEMO_DISHES[:2]]


# =============================================================================
# ORDERS
# =============================================================================

def synthesize_order(header: OrderHeader, priced: PricedOrder) -> CompositeOrder:
    """
    Build the order echoed back when it could not be stored.

    The id is the current time in milliseconds and is not checked for
    collisions.
    """
    return CompositeOrder(
        id=int(time.time() * 1000),
        user_id=header.user_id,
        restaurant_name=header.restaurant_name,
        restaurant_image=header.restaurant_image or RESTAURANT_IMAGE,
        order_date=_now(),
        total_amount=priced.total,
        status=header.status,
        delivery_address=header.delivery_address,
        payment_method=header.payment_method,
        customer_name=header.customer_name,
        customer_phone=header.customer_phone,
        items=[
            CompositeItem(
                dish_id=item.dish_id,
                dish_name=item.name,
                dish_price=item.unit_price,
                quantity=item.quantity,
                dish_image=item.image,
            )
            for item in priced.items
        ],
        mode=MOCK_MODE,
    )


def example_order(order_id: int = 100, status: str = "pending") -> CompositeOrder:
    """The fixed order shown to the bot and the demo user in mock mode."""
    lines = sample_items()
    return CompositeOrder(
        id=order_id,
        user_id=DEMO_USER_ID,
        restaurant_name=DEMO_RESTAURANT["name"],
        restaurant_image=RESTAURANT_IMAGE,
        order_date=_now() - timedelta(hours=2),
        total_amount=sum((dish["price"] * quantity for dish, quantity in lines), Decimal("0.00")),
        status=status,
        delivery_address="10 Lenin St, apt 5",
        payment_method="Card online",
        customer_name="Ivan Ivanov",
        customer_phone="+7 (999) 123-45-67",
        items=[
            CompositeItem(
                dish_id=dish["id"],
                dish_name=dish["name"],
                dish_price=dish["price"],
                quantity=quantity,
                dish_image=dish["image_url"],
                dish_description=dish["description"],
            )
            for dish, quantity in lines
        ],
        mode=MOCK_MODE,
    )


def orders_for_user(user_id: int) -> list[CompositeOrder]:
    if user_id == DEMO_USER_ID:
        return [example_order(status="delivered")]
    return []


def status_update(order_id: int, status: str) -> OrderStatusRecord:
    """Cosmetic status change: reported as done, nothing is written."""
    return OrderStatusRecord(
        id=order_id,
        status=status,
        user_id=None,
        updated_at=_now(),
        mode=MOCK_MODE,
    )


# =============================================================================
# STATISTICS
# =============================================================================

def user_stats(user_id: int) -> dict[str, Any]:
    if user_id == DEMO_USER_ID:
        return {
            "total_orders": 5,
            "delivered_orders": 4,
            "pending_orders": 1,
            "total_spent": 4500,
            "average_order_value": 900,
            "favorite_restaurant": DEMO_RESTAURANT["name"],
        }
    return {
        "total_orders": 0,
        "delivered_orders": 0,
        "pending_orders": 0,
        "total_spent": 0,
        "average_order_value": 0,
        "favorite_restaurant": NO_DATA,
    }
