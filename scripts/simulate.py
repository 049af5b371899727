"""
Webhook Simulation Script

Fires voice-assistant webhooks at a running server, in every payload shape
the webhook accepts, to exercise ingestion and the live dashboard.
Run from project root: python scripts/simulate.py

Version: 1.0.0
"""

import asyncio
import sys
import json
import random
import time
import argparse
from datetime import datetime
from typing import Any, Callable

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8001"
WEBHOOK_PATH = "/api/vapi/webhook"
TOTAL_ORDERS = 20

# Sample data for random orders
FIRST_NAMES = ["John", "Jane", "Mike", "Sarah", "Tom", "Emma", "David", "Lisa", "Chris", "Amy"]
LAST_NAMES = ["Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis"]
STREETS = ["Main St", "Broadway", "5th Avenue", "Park Ave", "Madison Ave"]
MENU_ITEMS = ["Pizza Margherita", "Pepperoni Pizza", "Caesar Salad", "Garlic Bread", "Tiramisu", "Coke"]
NOTES = [None, "Extra cheese", "No onions", "Spicy"]


def generate_order_parameters() -> dict[str, Any]:
    """Random submit_order arguments, camelCase as the assistant sends them."""
    items = []
    for name in random.sample(MENU_ITEMS, random.randint(1, 3)):
        item: dict[str, Any] = {"name": name, "quantity": random.randint(1, 3)}
        note = random.choice(NOTES)
        if note:
            item["notes"] = note
        items.append(item)

    return {
        "customerName": f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}",
        "customerPhone": f"555-{random.randint(100, 999)}-{random.randint(1000, 9999)}",
        "customerAddress": f"{random.randint(1, 999)} {random.choice(STREETS)}",
        "items": items,
        "specialInstructions": random.choice(["", "Ring doorbell", "Leave at door"]),
    }


# =============================================================================
# PAYLOAD SHAPES
# =============================================================================

def tool_calls_payload() -> dict[str, Any]:
    return {
        "message": {
            "type": "tool-calls",
            "toolCallList": [{
                "id": f"call_{random.randint(100000, 999999)}",
                "type": "function",
                "function": {
                    "name": "submit_order",
                    "arguments": json.dumps(generate_order_parameters()),
                },
            }],
        },
    }


def function_call_payload() -> dict[str, Any]:
    return {
        "message": {
            "type": "function-call",
            "functionCall": {"name": "submit_order", "parameters": generate_order_parameters()},
        },
    }


def direct_payload() -> dict[str, Any]:
    return generate_order_parameters()


PAYLOADS: dict[str, Callable[[], dict[str, Any]]] = {
    "tool-calls": tool_calls_payload,
    "function-call": function_call_payload,
    "direct": direct_payload,
}


def extract_order_id(shape: str, data: dict[str, Any]) -> Any:
    if shape == "tool-calls":
        return json.loads(data["results"][0]["result"]).get("orderId")
    if shape == "function-call":
        return json.loads(data["result"]).get("orderId")
    return data.get("id")


async def send_order(
    client: httpx.AsyncClient,
    order_num: int,
    shape: str
) -> dict[str, Any]:
    """Send one order in the given payload shape."""
    start_time = time.time()

    try:
        response = await client.post(f"{API_BASE_URL}{WEBHOOK_PATH}", json=PAYLOADS[shape](), timeout=30.0)
        elapsed = round(time.time() - start_time, 3)

        if response.status_code in (200, 201):
            return {
                "order_num": order_num,
                "success": True,
                "order_id": extract_order_id(shape, response.json()),
                "time": elapsed,
                "mode": shape,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
            "mode": shape,
        }
    except (httpx.HTTPError, ValueError, KeyError) as e:
        elapsed = round(time.time() - start_time, 3)
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": elapsed,
            "mode": shape,
        }


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(shapes: list[str], num_orders: int = TOTAL_ORDERS) -> dict[str, Any]:
    """
    Fire ``num_orders`` webhooks concurrently, cycling through ``shapes``.
    """
    print("=" * 70)
    print("🔥 WEBHOOK SIMULATION")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}{WEBHOOK_PATH}")
    print(f"🔧 Shapes: {', '.join(shapes)}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        tasks = [send_order(client, i + 1, shapes[i % len(shapes)]) for i in range(num_orders)]
        results = await asyncio.gather(*tasks)

    total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    print(f"⏱️  Total Time: {total_time}s")

    for shape in shapes:
        of_shape = [r for r in results if r["mode"] == shape]
        ok = len([r for r in of_shape if r["success"]])
        print(f"   {shape}: {ok}/{len(of_shape)} successful")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print(f"\n📈 Average Response: {avg_time}s")

    if failed:
        print("\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']} [{f['mode']}]: {f['error']}")

    print(f"\n👀 Watch them arrive at {API_BASE_URL}/dashboard")
    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


async def check_single_flows() -> bool:
    """Health check plus one order per shape before the concurrent run."""
    print("\n" + "=" * 70)
    print("🧪 CHECKING INDIVIDUAL FLOWS")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        print("\n1️⃣ Health Check...")
        response = await client.get(f"{API_BASE_URL}/health")
        if response.status_code != 200:
            print(f"   ❌ Failed: {response.text}")
            return False
        data = response.json()
        print(f"   ✅ Status: {data.get('status')}")
        print(f"   Database: {data.get('database')}")
        print(f"   Broker: {data.get('broker')}")

        for step, shape in enumerate(PAYLOADS, start=2):
            print(f"\n{step}. {shape} order...")
            result = await send_order(client, step, shape)
            if result["success"]:
                print(f"   ✅ Order {result['order_id']} created")
            else:
                print(f"   ❌ Failed: {result['error']}")
                return False

        print("\n5. Non-order event...")
        response = await client.post(
            f"{API_BASE_URL}{WEBHOOK_PATH}",
            json={"message": {"type": "status-update", "status": "in-progress"}},
        )
        print(f"   {'✅' if response.json() == {'received': True} else '⚠️'} {response.text[:100]}")

    print("\n" + "=" * 70)
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Webhook Simulation Script")
    parser.add_argument("--shape", choices=sorted(PAYLOADS), action="append", help="Payload shape (repeatable)")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--base-url", default=API_BASE_URL, help="Server base URL")
    parser.add_argument("--skip-checks", action="store_true", help="Skip individual flow checks")
    args = parser.parse_args()

    API_BASE_URL = args.base_url.rstrip("/")
    shapes = args.shape or list(PAYLOADS)

    if not args.skip_checks:
        if not asyncio.run(check_single_flows()):
            print("\n❌ Pre-flight checks failed. Fix issues before running simulation.")
            sys.exit(1)
        print("\n✅ Pre-flight checks passed!")

    asyncio.run(run_simulation(shapes, args.orders))
