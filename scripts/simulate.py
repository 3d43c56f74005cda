"""
Order Number Race Simulation

Fires many concurrent takeout/dine-in orders for the same day. Every client
allocates its id the way the ordering UI does (read used numbers, take the
lowest free one) so clients collide; losers get 409 and retry.

At the end every admitted id must be unique and the used-number list must
match the successful submissions.

Run from project root (server running): python scripts/simulate.py

Version: 1.0.0
"""

import asyncio
import sys
import os
import random
import time
import argparse
from datetime import datetime
from typing import Any

import httpx
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from order_intake.models import DineType
from order_intake.services.order_numbers import format_order_id, lowest_unused

# Configuration
API_BASE_URL = "http://localhost:5000"
TOTAL_ORDERS = 50
MAX_RETRIES = 10


async def fetch_menu_names(client: httpx.AsyncClient) -> list[str]:
    response = await client.get(f"{API_BASE_URL}/api/menu")
    response.raise_for_status()
    return [item["name"] for item in response.json()]


def generate_random_items(menu_names: list[str]) -> list[dict]:
    """Random lines; one in ten carries a name that is not on the menu."""
    items = []
    for _ in range(random.randint(1, 4)):
        items.append({
            "name": random.choice(menu_names),
            "quantity": random.randint(1, 3),
            "price": round(random.uniform(1, 10), 2),
        })
    if random.random() < 0.1:
        items.append({"name": "Ghost Dish", "quantity": 1, "price": 1.0})
    return items


async def allocate_order_id(
    client: httpx.AsyncClient,
    dine_type: DineType,
    date_prefix: str,
) -> str:
    """Lowest free id according to the server right now."""
    response = await client.get(
        f"{API_BASE_URL}/api/used-order-numbers",
        params={"dineType": dine_type.code, "dateStr": date_prefix},
    )
    response.raise_for_status()
    number = lowest_unused(response.json())
    if number is None:
        raise RuntimeError(f"No free {dine_type.code} numbers left for {date_prefix}")
    return format_order_id(date_prefix, dine_type, number)


async def submit_with_retry(
    client: httpx.AsyncClient,
    order_num: int,
    date_prefix: str,
    menu_names: list[str],
) -> dict[str, Any]:
    """Allocate, submit, and on conflict re-allocate and resubmit."""
    dine_type = random.choice(list(DineType))
    items = generate_random_items(menu_names)
    total = round(sum(i["quantity"] * i["price"] for i in items), 2)
    start_time = time.time()
    conflicts = 0

    try:
        for _ in range(MAX_RETRIES):
            order_id = await allocate_order_id(client, dine_type, date_prefix)
            response = await client.post(
                f"{API_BASE_URL}/api/orders",
                json={
                    "orderId": order_id,
                    "dineType": dine_type.value,
                    "totalAmount": total,
                    "tableNumber": str(random.randint(1, 20)) if dine_type is DineType.DINE_IN else "",
                    "takeoutNumber": str(order_num) if dine_type is DineType.TAKEOUT else "",
                    "notes": "",
                    "items": items,
                },
                timeout=30.0,
            )
            if response.status_code == 409:
                conflicts += 1
                continue

            elapsed = round(time.time() - start_time, 3)
            if response.status_code == 200:
                data = response.json()
                return {
                    "order_num": order_num,
                    "success": True,
                    "order_id": data.get("orderId"),
                    "dropped": data.get("droppedItems", []),
                    "conflicts": conflicts,
                    "time": elapsed,
                }
            return {
                "order_num": order_num,
                "success": False,
                "error": response.text[:100],
                "conflicts": conflicts,
                "time": elapsed,
            }

        return {
            "order_num": order_num,
            "success": False,
            "error": f"gave up after {MAX_RETRIES} conflicts",
            "conflicts": conflicts,
            "time": round(time.time() - start_time, 3),
        }
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "conflicts": conflicts,
            "time": round(time.time() - start_time, 3),
        }


async def run_simulation(num_orders: int = TOTAL_ORDERS, date_prefix: str = "") -> dict[str, Any]:
    """
    Run the race simulation.

    Args:
        num_orders: Number of concurrent clients
        date_prefix: Date part of the ids (defaults to today, YYYYMMDD)
    """
    date_prefix = date_prefix or datetime.now().strftime("%Y%m%d")

    print("=" * 70)
    print("🔥 ORDER NUMBER RACE SIMULATION")
    print("=" * 70)
    print(f"📋 Concurrent Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"📅 Date prefix: {date_prefix}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()
    async with httpx.AsyncClient() as client:
        menu_names = await fetch_menu_names(client)
        if not menu_names:
            print("\n❌ Menu is empty. Seed it first: python scripts/seed_menu.py")
            return {"total": num_orders, "successful": 0, "failed": num_orders, "results": []}

        tasks = [submit_with_retry(client, i + 1, date_prefix, menu_names) for i in range(num_orders)]
        results = await asyncio.gather(*tasks)

        used = {}
        for dine_type in DineType:
            response = await client.get(
                f"{API_BASE_URL}/api/used-order-numbers",
                params={"dineType": dine_type.code, "dateStr": date_prefix},
            )
            used[dine_type.code] = response.json()

    total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]
    admitted_ids = [r["order_id"] for r in successful]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    print(f"🔁 Conflicts retried: {sum(r['conflicts'] for r in results)}")
    print(f"👻 Orders with dropped lines: {len([r for r in successful if r['dropped']])}")
    print(f"⏱️  Total Time: {total_time}s")

    unique = len(admitted_ids) == len(set(admitted_ids))
    print(f"\n🔍 Admitted ids unique: {'yes' if unique else 'NO'}")
    for code, numbers in used.items():
        print(f"   {code}: {len(numbers)} used, highest {max(numbers) if numbers else '-'}")

    if failed:
        print(f"\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "unique": unique,
        "total_time": total_time,
        "results": results,
    }


async def preflight_checks() -> bool:
    """Check the server is up and talking to its database."""
    async with httpx.AsyncClient() as client:
        print("\n1️⃣ Health Check...")
        try:
            response = await client.get(f"{API_BASE_URL}/api/health")
        except httpx.HTTPError as e:
            print(f"   ❌ Server unreachable: {e}")
            return False
        data = response.json()
        if response.status_code != 200:
            print(f"   ❌ Failed: {data}")
            return False
        print(f"   ✅ Status: {data.get('status')}")
        print(f"   Database: {data.get('database')} ({data.get('server')})")
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Order Number Race Simulation")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of concurrent orders")
    parser.add_argument("--date", default="", help="Date prefix for order ids (YYYYMMDD)")
    parser.add_argument("--url", default=API_BASE_URL, help="API base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")

    if not asyncio.run(preflight_checks()):
        print("\n❌ Pre-flight checks failed. Fix issues before running simulation.")
        sys.exit(1)

    summary = asyncio.run(run_simulation(args.orders, args.date))
    sys.exit(0 if summary.get("unique", False) else 1)
