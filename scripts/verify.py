"""
Tracking Verification Script

Pulls orders, mappings and analytics from the admin API and checks the
data after a simulation run. Optionally writes the tables to Excel.
Run from project root: python scripts/verify.py [--excel report.xlsx]
"""

import argparse
import os
import sys
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import httpx
import pandas as pd

API_BASE_URL = "http://localhost:8001"
ADMIN_PREFIX = "/api/admin/table-tracking"


def fetch(client: httpx.Client, path: str, key: str):
    response = client.get(f"{API_BASE_URL}{ADMIN_PREFIX}{path}", timeout=30.0)
    response.raise_for_status()
    return response.json()["data"][key]


def verify_tracking(excel_file: str = None) -> bool:
    """Verify order/mapping integrity after simulation."""

    print("=" * 60)
    print("TABLE TRACKING VERIFICATION REPORT")
    print("=" * 60)
    print(f"Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"API: {API_BASE_URL}")
    print("=" * 60)

    try:
        with httpx.Client() as client:
            orders = pd.DataFrame(fetch(client, "/orders", "orders"))
            mappings = pd.DataFrame(fetch(client, "/mappings", "mappings"))
            analytics = fetch(client, "/analytics", "analytics")
    except httpx.HTTPError as e:
        print(f"\nCould not reach the API: {e}")
        print("   Start it with: uvicorn tabletrack.main:app --port 8001")
        return False

    print("\nSTATISTICS:")
    print(f"   Orders: {len(orders)}")
    print(f"   Mappings: {len(mappings)}")
    print(f"   Active mappings: {analytics['activeMappings']}")
    print(f"   Today's submissions: {analytics['todaySubmissions']}")
    print(f"   Today's deliveries: {analytics['todayDeliveries']}")
    print(f"   Average delivery time: {analytics['averageDeliveryTime']} min")

    healthy = True

    if len(orders):
        duplicates = orders["order_number"].duplicated().sum()
        if duplicates > 0:
            print(f"\n{duplicates} duplicate order numbers found!")
            healthy = False
        else:
            print("\nNo duplicate order numbers")

        linked = orders["mapping_id"].dropna()
        if linked.duplicated().any():
            print("Some mappings carry more than one order!")
            healthy = False
        else:
            print("Every mapping has at most one order")

        print("\nORDERS BY STATUS:")
        print(orders["status"].value_counts().to_string())

    if len(mappings):
        print("\nMAPPINGS BY AREA:")
        print(mappings["area"].value_counts().to_string())

        print("\nRECENT MAPPINGS:")
        print("-" * 60)
        cols = ["order_number", "table_number", "area", "status", "source"]
        print(mappings[cols].head(5).to_string(index=False))

    if excel_file:
        with pd.ExcelWriter(excel_file, engine="openpyxl") as writer:
            orders.drop(columns=["mapping"], errors="ignore").to_excel(writer, sheet_name="Orders", index=False)
            mappings.drop(columns=["order"], errors="ignore").to_excel(writer, sheet_name="Mappings", index=False)
        print(f"\nReport written to {excel_file}")

    print("\n" + "=" * 60)
    print("VERIFICATION PASSED" if healthy else "VERIFICATION FAILED")
    print("=" * 60)

    return healthy


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Table tracking verification")
    parser.add_argument("--excel", help="Write orders and mappings to this .xlsx file")
    args = parser.parse_args()
    sys.exit(0 if verify_tracking(args.excel) else 1)
