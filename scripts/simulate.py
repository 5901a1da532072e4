"""
Order Flow Simulation Script

Drives concurrent customers through the complete flow against a running
server in development mode (mock payment gateway):

    register → login → browse → add to cart → checkout → payment callback

Run from project root: python scripts/simulate.py [--customers 20] [--seed]
"""

import argparse
import asyncio
import os
import random
import re
import sys
import time
import uuid
from decimal import Decimal
from typing import Any

import httpx

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Configuration
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")
API_PREFIX = "/api/v1"
TOTAL_CUSTOMERS = 20
PASSWORD = "simulate123"

TOKEN_RE = re.compile(r'name="token" value="([^"]+)"')

DEMO_MENU = {
    "Pizza": [("Pizza Margherita", "14.99"), ("Pepperoni Pizza", "16.99")],
    "Sides": [("Caesar Salad", "8.99"), ("Garlic Bread", "5.99")],
    "Drinks": [("Coke", "2.99"), ("Sparkling Water", "3.49")],
}


async def seed_catalogue() -> None:
    """Create a demo restaurant with a menu directly in the configured database."""
    from sqlalchemy import select

    from foodorder.database import async_session_maker, engine, init_db
    from foodorder.models import Category, MenuItem, Restaurant

    await init_db()
    async with async_session_maker() as session:
        existing = await session.execute(select(Restaurant).where(Restaurant.name == "Demo Pizzeria"))
        if existing.scalar_one_or_none() is not None:
            print("Demo Pizzeria already exists, skipping seed")
            await engine.dispose()
            return

        restaurant = Restaurant(
            name="Demo Pizzeria",
            description="Seeded by simulate.py",
            cuisine="Italian",
            city="New York",
            district="Manhattan",
            address="350 Fifth Avenue",
            delivery_fee=Decimal("5.99"),
            min_order_amount=Decimal("10.00"),
            rating=Decimal("4.70"),
        )
        session.add(restaurant)
        await session.flush()
        for category_name, items in DEMO_MENU.items():
            category = Category(name=category_name, restaurant_id=restaurant.id, menu_items=[])
            session.add(category)
            for name, price in items:
                session.add(
                    MenuItem(
                        name=name,
                        price=Decimal(price),
                        restaurant=restaurant,
                        category=category,
                    )
                )
        await session.commit()
    await engine.dispose()
    print("Seeded Demo Pizzeria")


async def run_customer(customer_num: int) -> dict[str, Any]:
    """One customer walks the whole flow with their own cookie jar."""
    start_time = time.time()
    email = f"sim-{uuid.uuid4().hex[:10]}@example.com"
    api = f"{API_BASE_URL}{API_PREFIX}"

    async with httpx.AsyncClient(timeout=30.0) as client:
        try:
            response = await client.post(
                f"{api}/auth/register",
                json={"email": email, "password": PASSWORD, "name": f"Sim {customer_num}", "address": "1 Test Lane"},
            )
            response.raise_for_status()
            response = await client.post(f"{api}/auth/login", json={"email": email, "password": PASSWORD})
            response.raise_for_status()

            restaurants = (await client.get(f"{api}/restaurants")).json()["restaurants"]
            if not restaurants:
                raise RuntimeError("No open restaurants; run with --seed first")
            restaurant = restaurants[0]

            menu = (await client.get(f"{api}/restaurants/{restaurant['id']}/menu")).json()
            items = [item for category in menu["categories"] for item in category["items"]]
            for item in random.sample(items, k=min(len(items), random.randint(2, 4))):
                response = await client.post(
                    f"{api}/cart/items",
                    json={"menu_item_id": item["id"], "quantity": random.randint(1, 3)},
                )
                response.raise_for_status()

            response = await client.post(f"{api}/orders", json={"note": random.choice([None, "Ring doorbell"])})
            response.raise_for_status()
            checkout = response.json()

            match = TOKEN_RE.search(checkout["checkout_form_content"])
            if match is None:
                raise RuntimeError("Checkout form has no token (is ENV_MODE=development?)")

            callback = await client.post(f"{api}/orders/callback", data={"token": match.group(1)})
            location = callback.headers.get("location", "")

            return {
                "customer_num": customer_num,
                "success": callback.status_code == 303 and "orderId=" in location,
                "order_id": checkout["order_id"],
                "total": checkout["total_amount"],
                "error": None if "orderId=" in location else location,
                "time": round(time.time() - start_time, 3),
            }

        except (httpx.HTTPError, RuntimeError, KeyError) as e:
            return {
                "customer_num": customer_num,
                "success": False,
                "error": str(e)[:100],
                "time": round(time.time() - start_time, 3),
            }


async def run_simulation(num_customers: int = TOTAL_CUSTOMERS) -> dict[str, Any]:
    print("=" * 70)
    print("ORDER FLOW SIMULATION")
    print("=" * 70)
    print(f"Customers: {num_customers}")
    print(f"Target: {API_BASE_URL}")
    print("=" * 70)

    start_time = time.time()
    results = await asyncio.gather(*(run_customer(i + 1) for i in range(num_customers)))
    total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print(f"\nSuccessful orders: {len(successful)}/{num_customers}")
    print(f"Failed orders: {len(failed)}/{num_customers}")
    print(f"Total time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        revenue = sum(r["total"] for r in successful)
        print(f"Average flow time: {avg_time}s")
        print(f"Total revenue: ${revenue:.2f}")

    if failed:
        print("\nFailed customers (first 5):")
        for f in failed[:5]:
            print(f"   #{f['customer_num']}: {f['error']}")

    return {
        "total": num_customers,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Order Flow Simulation")
    parser.add_argument("--customers", type=int, default=TOTAL_CUSTOMERS, help="Number of concurrent customers")
    parser.add_argument("--seed", action="store_true", help="Seed a demo restaurant before running")
    args = parser.parse_args()

    if args.seed:
        asyncio.run(seed_catalogue())

    summary = asyncio.run(run_simulation(args.customers))
    sys.exit(0 if summary["failed"] == 0 else 1)
