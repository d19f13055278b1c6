#!/usr/bin/env python3
"""
Demo seed script — populates a household ledger with sample data.

!! NOT FOR PRODUCTION !!
This script creates a workspace with a checking account, a wallet and a
credit card, a few recurring bills and a month of card spending. It is
intended ONLY for local demos and frontend development.

Usage:
    # With the API server running on localhost:8000:
    python demo/seed.py

    # Reset the database and re-seed:
    python demo/seed.py --reset

    # Custom server URL:
    python demo/seed.py --base-url http://localhost:9000

After seeding, the workspace ID is printed; send it as the X-Workspace-ID
header on every request.
"""

import argparse
import asyncio
import os
import random
import sys
from datetime import date

import httpx

BASE_URL = "http://localhost:8000"

# ---------------------------------------------------------------------------
# Demo data
# ---------------------------------------------------------------------------

ACCOUNTS = [
    {"name": "Checking", "template": "bank", "initial_balance_cents": 4_250_00},
    {"name": "Wallet", "template": "cash", "initial_balance_cents": 120_00},
    {"name": "Visa", "template": "credit_card", "initial_balance_cents": 0},
]

# (description, amount_cents, account name, day of month)
RECURRING = [
    ("Rent", 1_450_00, "Checking", 1),
    ("Electricity", 85_00, "Checking", 31),
    ("Streaming", 15_99, "Visa", 12),
    ("Gym", 45_00, "Visa", 28),
]

CARD_SPENDING = [
    ("Groceries", 40_00, 140_00),
    ("Fuel", 35_00, 80_00),
    ("Restaurant", 25_00, 110_00),
    ("Pharmacy", 8_00, 45_00),
    ("Hardware store", 12_00, 95_00),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def log(msg: str) -> None:
    print(f"  {msg}")


def cents_to_dollars(cents: int) -> str:
    return f"${cents / 100:,.2f}"


async def post(client: httpx.AsyncClient, path: str, body: dict) -> dict:
    resp = await client.post(f"{BASE_URL}{path}", json=body)
    resp.raise_for_status()
    return resp.json()


# ---------------------------------------------------------------------------
# Seed logic
# ---------------------------------------------------------------------------

async def seed(base_url: str) -> None:
    global BASE_URL
    BASE_URL = base_url

    print("\n========================================")
    print("  DEMO SEED — NOT FOR PRODUCTION")
    print("========================================\n")

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Health check
        try:
            health = await client.get(f"{BASE_URL}/health")
            health.raise_for_status()
        except (httpx.ConnectError, httpx.HTTPStatusError):
            print(f"  ERROR: Cannot connect to {BASE_URL}")
            print("  Start the server first: uvicorn household_ledger.main:app --reload\n")
            sys.exit(1)

        print("Creating workspace...")
        workspace = await post(client, "/workspaces", {"name": "Demo household"})
        client.headers["X-Workspace-ID"] = workspace["id"]
        log(f"Workspace: {workspace['id']}")

        print("\nCreating accounts...")
        accounts: dict[str, str] = {}
        for info in ACCOUNTS:
            account = await post(client, "/accounts", info)
            accounts[info["name"]] = account["id"]
            log(f"{info['name']} ({info['template']}): {cents_to_dollars(info['initial_balance_cents'])}")

        print("\nCreating recurring templates...")
        this_month = date.today().replace(day=1)
        for description, amount, account_name, day in RECURRING:
            if day <= 28:
                start = this_month.replace(day=day)
            else:
                # The due day comes from start_date; December has every day
                start = date(this_month.year - 1, 12, day)
            result = await post(client, "/recurring-templates", {
                "description": description,
                "amount_cents": amount,
                "account_id": accounts[account_name],
                "start_date": start.isoformat(),
            })
            generation = result["generation"]
            log(f"{description}: {cents_to_dollars(amount)} on day {day}, "
                f"{generation['generated']} projections")

        print("\nRecording card spending...")
        charge_ids: list[str] = []
        for name, low, high in CARD_SPENDING:
            for _ in range(random.randint(1, 3)):
                amount = random.randint(low, high)
                txn = await post(client, "/transactions", {
                    "account_id": accounts["Visa"],
                    "name": name,
                    "amount_cents": amount,
                    "type": "expense",
                })
                charge_ids.append(txn["id"])
        log(f"{len(charge_ids)} pending charges")

        # Bill roughly two thirds, as if a statement had closed
        billed_ids = charge_ids[: (len(charge_ids) * 2) // 3]
        billed = (await client.post(
            f"{BASE_URL}/transactions/batch-billed", json={"transaction_ids": billed_ids}
        )).json()
        log(f"{len(billed)} charges billed")

        # Settle half of the billed charges from checking
        to_settle = billed_ids[: len(billed_ids) // 2]
        if to_settle:
            settlement = await post(client, "/settlements", {
                "transaction_ids": to_settle,
                "source_account_id": accounts["Checking"],
                "target_account_id": accounts["Visa"],
            })
            log(f"Settled {settlement['settled_count']} charges: "
                f"{cents_to_dollars(settlement['total_amount_cents'])}")

        print("\nMoving cash to the wallet...")
        transfer = await post(client, "/transfers", {
            "from_account_id": accounts["Checking"],
            "to_account_id": accounts["Wallet"],
            "amount_cents": 200_00,
            "notes": "ATM withdrawal",
        })
        log(f"Transfer {transfer['transfer_pair_id']}: {cents_to_dollars(transfer['amount_cents'])}")

        overdue = (await client.get(
            f"{BASE_URL}/cc/overdue", params={"after_months": 0}
        )).json()
        outstanding = sum(group["total_amount_cents"] for group in overdue)
        log(f"Billed and unpaid on the card: {cents_to_dollars(outstanding)}")

    print("\n========================================")
    print("  SEED COMPLETE")
    print("========================================")
    print(f"\n  X-Workspace-ID: {workspace['id']}\n")


def reset_database() -> None:
    """Delete the SQLite database file so the server recreates it on restart."""
    db_path = os.path.join(os.path.dirname(__file__), "..", "data", "ledger.db")
    db_path = os.path.normpath(db_path)

    if os.path.exists(db_path):
        os.remove(db_path)
        print(f"\n  Deleted {db_path}")
        print("  Restart the server to recreate empty tables.\n")
    else:
        print(f"\n  No database found at {db_path}\n")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Demo seed script — NOT FOR PRODUCTION",
        epilog="Creates a sample household with accounts, bills and card spending.",
    )
    parser.add_argument(
        "--base-url", default="http://localhost:8000",
        help="Base URL of the running API (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--reset", action="store_true",
        help="Delete the database file and exit (restart server to recreate)",
    )
    args = parser.parse_args()

    if args.reset:
        reset_database()
        return

    await seed(args.base_url)


if __name__ == "__main__":
    asyncio.run(main())
