"""
SQLAlchemy Database Models

Users, restaurants, dishes, orders and order line items.

Orders copy the restaurant name/image and customer contact details, and line
items copy dish name/price/image, at creation time. Later catalog edits never
change historical orders.
"""

import enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import func

from food_delivery.database import Base


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "pending"
    PREPARING = "preparing"
    DELIVERING = "delivering"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class User(Base):
    """
    Registered customer or admin.

    Owned by the account service; this backend only reads
    ``telegram_chat_id`` to deliver status-change messages.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, nullable=False)
    password = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    avatar_url = Column(Text, nullable=True)
    role = Column(String(20), default=UserRole.USER.value, nullable=False)
    telegram_chat_id = Column(BigInteger, nullable=True)
    email_verified = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<User #{self.id} - {self.email} - {self.role}>"


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    rating = Column(Numeric(3, 2), default=0)
    delivery_time = Column(String(50), nullable=True)
    delivery_price = Column(String(50), nullable=True)
    categories = Column(JSON, default=list)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Restaurant #{self.id} - {self.name}>"


class Dish(Base):
    __tablename__ = "dishes"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    ingredients = Column(JSON, default=list)
    preparation_time = Column(Integer, nullable=True)
    is_vegetarian = Column(Boolean, default=False, nullable=False)
    is_spicy = Column(Boolean, default=False, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Dish #{self.id} - {self.name} - {self.price}>"


class Order(Base):
    """
    Order header.

    ``total_amount`` is computed server-side from the line items and is
    never taken from the client.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=True)

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================
    restaurant_name = Column(String(100), nullable=True)
    restaurant_image = Column(Text, nullable=True)
    customer_name = Column(String(100), nullable=True)
    customer_phone = Column(String(50), nullable=True)

    # =========================================================================
    # ORDER DETAILS
    # =========================================================================
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(50), default=OrderStatus.PENDING.value, nullable=False, index=True)
    delivery_address = Column(Text, nullable=False)
    payment_method = Column(String(50), nullable=True)

    order_date = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    def __repr__(self):
        return f"<Order #{self.id} - {self.restaurant_name} - {self.status}>"


class OrderItem(Base):
    """Line item snapshot. Immutable once written."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    dish_id = Column(Integer, ForeignKey("dishes.id"), nullable=True)
    dish_name = Column(String(100), nullable=True)
    dish_price = Column(Numeric(10, 2), nullable=True)
    quantity = Column(Integer, default=1, nullable=False)
    dish_image = Column(Text, nullable=True)

    def __repr__(self):
        return f"<OrderItem #{self.id} - order {self.order_id} - {self.dish_name} x{self.quantity}>"
