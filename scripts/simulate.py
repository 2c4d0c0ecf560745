"""
Chaos Simulation Script

Fires concurrent QR submissions at the table tracking API, mixing in
double-taps (same table/order twice) and clashing order numbers, to
check that every order number ends up with exactly one order.
Run from project root: python scripts/simulate.py
"""

import argparse
import asyncio
import os
import random
import sys
import time
from datetime import datetime
from typing import Any, Optional

import httpx
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8001"
TOTAL_SUBMISSIONS = 50
DOUBLE_TAP_RATE = 0.2
CLASH_RATE = 0.1

TABLE_PREFIXES = ["", "", "P", "B"]  # dining tables are the most common


def random_table() -> str:
    return f"{random.choice(TABLE_PREFIXES)}{random.randint(1, 40)}"


def build_submissions(num: int) -> list[dict[str, Any]]:
    """
    Random submissions with deliberate repeats.

    A double-tap reuses the previous pair exactly; a clash reuses an
    earlier order number at a different table.
    """
    base = random.randint(10000, 90000)
    submissions: list[dict[str, Any]] = []
    for i in range(num):
        roll = random.random()
        if submissions and roll < DOUBLE_TAP_RATE:
            submissions.append({**submissions[-1], "kind": "double-tap"})
        elif submissions and roll < DOUBLE_TAP_RATE + CLASH_RATE:
            earlier = random.choice(submissions)
            submissions.append({
                "table_number": random_table(),
                "order_number": earlier["order_number"],
                "kind": "clash",
            })
        else:
            submissions.append({
                "table_number": random_table(),
                "order_number": str(base + i),
                "kind": "fresh",
            })
    return submissions


async def send_submission(
    client: httpx.AsyncClient,
    num: int,
    submission: dict[str, Any],
) -> dict[str, Any]:
    """POST one submission and classify the answer."""
    payload = {k: submission[k] for k in ("table_number", "order_number")}
    start_time = time.time()

    try:
        response = await client.post(
            f"{API_BASE_URL}/api/table-tracking/submit",
            json=payload,
            timeout=30.0
        )
    except httpx.HTTPError as e:
        return {
            "num": num,
            "kind": submission["kind"],
            "status": None,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }

    body = response.json()
    return {
        "num": num,
        "kind": submission["kind"],
        "status": response.status_code,
        "order_number": payload["order_number"],
        "error": body.get("error"),
        "time": round(time.time() - start_time, 3),
    }


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(num_submissions: int = TOTAL_SUBMISSIONS) -> dict[str, Any]:
    """Run the chaos simulation and print a summary."""
    print("=" * 70)
    print("CHAOS SIMULATION - CONCURRENT TABLE SUBMISSIONS")
    print("=" * 70)
    print(f"Submissions: {num_submissions}")
    print(f"Target: {API_BASE_URL}")
    print(f"Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    submissions = build_submissions(num_submissions)
    start_time = time.time()

    async with httpx.AsyncClient() as client:
        tasks = [send_submission(client, i + 1, s) for i, s in enumerate(submissions)]
        results = await asyncio.gather(*tasks)

    total_time = round(time.time() - start_time, 2)

    accepted = [r for r in results if r["status"] == 200]
    throttled = [r for r in results if r["status"] == 429]
    conflicts = [r for r in results if r["status"] == 422]
    failed = [r for r in results if r["status"] not in (200, 422, 429)]

    print("\n" + "=" * 70)
    print("SIMULATION RESULTS")
    print("=" * 70)
    print(f"Accepted:   {len(accepted)}")
    print(f"Throttled:  {len(throttled)} (duplicate submission)")
    print(f"Rejected:   {len(conflicts)} (duplicate order number / validation)")
    print(f"Failed:     {len(failed)}")
    print(f"Total Time: {total_time}s")

    for kind in ("fresh", "double-tap", "clash"):
        subset = [r for r in results if r["kind"] == kind]
        if subset:
            ok_count = len([r for r in subset if r["status"] == 200])
            print(f"   {kind:<11} {ok_count}/{len(subset)} accepted")

    accepted_numbers = [r["order_number"] for r in accepted]
    duplicates = len(accepted_numbers) - len(set(accepted_numbers))
    if duplicates:
        print(f"\n{duplicates} order number(s) accepted more than once!")
    else:
        print("\nEvery order number was accepted at most once")

    if accepted:
        avg_time = round(sum(r["time"] for r in accepted) / len(accepted), 3)
        print(f"\nAverage accepted response: {avg_time}s")

    if failed:
        print("\nFailed submissions (showing first 5):")
        for f in failed[:5]:
            print(f"   #{f['num']} [{f['kind']}]: {f.get('status')} {f.get('error')}")

    print("\n" + "=" * 70)
    print("Next: python scripts/verify.py")
    print("=" * 70)

    return {
        "total": num_submissions,
        "accepted": len(accepted),
        "throttled": len(throttled),
        "rejected": len(conflicts),
        "failed": len(failed),
        "duplicates": duplicates,
        "total_time": total_time,
    }


async def preflight(table_number: Optional[str] = None) -> bool:
    """Check the API is up and a single submission round-trips."""
    print("\n" + "=" * 70)
    print("PRE-FLIGHT CHECKS")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        print("\n1. Health Check...")
        response = await client.get(f"{API_BASE_URL}/health")
        if response.status_code != 200:
            print(f"   Failed: {response.text}")
            return False
        data = response.json()
        print(f"   Status: {data.get('status')}")
        print(f"   Database: {data.get('database')}")
        print(f"   Redis: {data.get('redis')}")
        print(f"   Push sink: {data.get('push_sink')}")

        print("\n2. Table Settings...")
        response = await client.get(f"{API_BASE_URL}/api/table-tracking/settings")
        areas = response.json().get("data", {}).get("settings", {}).get("areas", {})
        print(f"   Areas: {', '.join(areas)}")

        print("\n3. Single Submission...")
        payload = {
            "table_number": table_number or random_table(),
            "order_number": str(random.randint(100000, 999999)),
        }
        response = await client.post(f"{API_BASE_URL}/api/table-tracking/submit", json=payload)
        if response.status_code != 200:
            print(f"   Failed: {response.text[:100]}")
            return False
        mapping = response.json()["data"]["mapping"]
        print(f"   Order #{mapping['order_number']} -> Table {mapping['table_number']} ({mapping['area']})")

        print("\n4. Immediate Re-submission...")
        response = await client.post(f"{API_BASE_URL}/api/table-tracking/submit", json=payload)
        print(f"   {response.status_code} {response.json().get('error')}")

    print("\n" + "=" * 70)
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Chaos Simulation Script")
    parser.add_argument("--submissions", type=int, default=TOTAL_SUBMISSIONS, help="Number of submissions")
    parser.add_argument("--skip-checks", action="store_true", help="Skip pre-flight checks")
    args = parser.parse_args()

    if not args.skip_checks:
        if not asyncio.run(preflight()):
            print("\nPre-flight checks failed. Fix issues before running simulation.")
            sys.exit(1)
        print("\nPre-flight checks passed!")

    asyncio.run(run_simulation(num_submissions=args.submissions))
