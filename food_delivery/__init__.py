"""
                Food Delivery API

Backend for restaurant browsing, order placement and order-status updates,
with best-effort Telegram notifications and a mock mode that keeps orders
flowing while the database is unreachable.
"""

__version__ = "1.0.0"
