"""
Order Load Simulation Script

Fires concurrent orders at a running API the way the three clients send
them (mobile app, web app, Telegram bot each name line-item fields
differently) and checks that every stored total matches the total computed
from the submitted items.

Run from project root: python scripts/simulate.py --orders 50

Version: 1.0.0
"""

import argparse
import asyncio
import os
import random
import sys
import time
from datetime import datetime
from decimal import Decimal
from typing import Any

import httpx

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from food_delivery.core.config import get_settings  # noqa: E402
from food_delivery.core.security import issue_token  # noqa: E402
from food_delivery.services.pricing import price_items  # noqa: E402

# Configuration
API_BASE_URL = "http://localhost:8000"
TOTAL_ORDERS = 50

CUSTOMERS = ["Ivan Petrov", "Anna Smirnova", "Oleg Ivanov", "Maria Sokolova", "Pavel Orlov"]
STREETS = ["Lenin St", "Pushkin St", "Gagarin Ave", "Mira Ave", "Sadovaya St"]
MENU = [
    {"id": 1, "name": "Ribeye Steak", "price": "1899.00"},
    {"id": 2, "name": "BBQ Ribs", "price": "1299.00"},
    {"id": 3, "name": "Boar Burger", "price": "799.00"},
    {"id": 4, "name": "Chicken Wings", "price": "599.00"},
    {"id": 5, "name": "Country Potatoes", "price": "299.00"},
]


# =============================================================================
# PAYLOADS
# =============================================================================

def mobile_item(dish: dict[str, Any], quantity: int) -> dict[str, Any]:
    return {"dish_id": dish["id"], "dish_name": dish["name"], "dish_price": dish["price"], "quantity": quantity}


def web_item(dish: dict[str, Any], quantity: int) -> dict[str, Any]:
    return {"dishId": dish["id"], "name": dish["name"], "price": float(dish["price"]), "quantity": str(quantity)}


def bot_item(dish: dict[str, Any], quantity: int) -> dict[str, Any]:
    return {"dishId": str(dish["id"]), "dishName": dish["name"], "dishPrice": dish["price"], "quantity": quantity}


ITEM_STYLES = {"mobile": mobile_item, "web": web_item, "bot": bot_item}


def generate_order(style: str) -> dict[str, Any]:
    make_item = ITEM_STYLES[style]
    items = [
        make_item(random.choice(MENU), random.randint(1, 3))
        for _ in range(random.randint(1, 4))
    ]
    return {
        "restaurant_id": 1,
        "items": items,
        "delivery_address": f"{random.randint(1, 99)} {random.choice(STREETS)}",
        "customer_name": random.choice(CUSTOMERS),
        "customer_phone": f"+7 (999) {random.randint(100, 999)}-{random.randint(10, 99)}-{random.randint(10, 99)}",
        "payment_method": random.choice(["Card online", "Cash"]),
        # Ignored by the server; totals are always recomputed
        "total": 1,
    }


# =============================================================================
# SIMULATION
# =============================================================================

async def send_order(
    client: httpx.AsyncClient,
    order_num: int,
    headers: dict[str, str],
) -> dict[str, Any]:
    style = random.choice(list(ITEM_STYLES))
    payload = generate_order(style)
    expected = price_items(payload["items"]).total
    start_time = time.time()

    try:
        response = await client.post(f"{API_BASE_URL}/orders", json=payload, headers=headers, timeout=30.0)
    except httpx.HTTPError as e:
        return {"order_num": order_num, "style": style, "success": False, "error": str(e)[:100]}

    elapsed = round(time.time() - start_time, 3)
    if response.status_code != 200:
        return {"order_num": order_num, "style": style, "success": False, "error": response.text[:100], "time": elapsed}

    order = response.json()["order"]
    total = Decimal(str(order["total_amount"]))
    return {
        "order_num": order_num,
        "style": style,
        "success": True,
        "order_id": order["id"],
        "total": total,
        "total_ok": total == expected,
        "time": elapsed,
    }


async def run_simulation(num_orders: int = TOTAL_ORDERS) -> dict[str, Any]:
    print("=" * 70)
    print("🔥 ORDER LOAD SIMULATION")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    headers = {"Authorization": f"Bearer {issue_token(1, email='simulation@example.com')}"}
    start_time = time.time()

    async with httpx.AsyncClient() as client:
        health = await client.get(f"{API_BASE_URL}/health")
        print(f"\n🩺 Database: {health.json().get('database')}")

        tasks = [send_order(client, i + 1, headers) for i in range(num_orders)]
        results = await asyncio.gather(*tasks)

    total_time = round(time.time() - start_time, 2)
    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]
    mismatched = [r for r in successful if not r["total_ok"]]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    print(f"⚖️  Total mismatches: {len(mismatched)}")
    print(f"⏱️  Total Time: {total_time}s")

    for style in ITEM_STYLES:
        done = len([r for r in successful if r["style"] == style])
        sent = len([r for r in results if r["style"] == style])
        print(f"   {style:>6}: {done}/{sent}")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        revenue = sum((r["total"] for r in successful), Decimal("0"))
        print(f"\n📈 Average Response: {avg_time}s")
        print(f"   💰 Total Revenue: {revenue}")

    if failed:
        print("\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']} [{f['style']}]: {f.get('error', 'Unknown error')}")

    print("=" * 70)
    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "mismatched": len(mismatched),
        "total_time": total_time,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Order Load Simulation")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--url", default=None, help="API base URL")
    args = parser.parse_args()

    if args.url:
        API_BASE_URL = args.url.rstrip("/")
    else:
        API_BASE_URL = f"http://localhost:{get_settings().api_port}"

    summary = asyncio.run(run_simulation(args.orders))
    sys.exit(1 if summary["failed"] or summary["mismatched"] else 0)
