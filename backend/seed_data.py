"""Seed a few sample goals and contributions via the API."""

import os
import sys

import httpx

API_BASE = os.environ.get("API_BASE", "http://localhost:8000")

SAMPLE_GOALS = [
    {
        "name": "Emergency Fund",
        "target_amount": "5000.00",
        "currency": "USD",
        "contributions": [
            {"amount": "500.00", "date": "2026-01-05"},
            {"amount": "250.00", "date": "2026-02-05"},
        ],
    },
    {
        "name": "Goa Trip",
        "target_amount": "60000.00",
        "currency": "INR",
        "contributions": [
            {"amount": "12000.00", "date": "2026-01-15"},
        ],
    },
    {
        "name": "New Laptop",
        "target_amount": "1500.00",
        "currency": "USD",
        "contributions": [],
    },
]


def main():
    created = 0
    errors = 0

    with httpx.Client(base_url=API_BASE, timeout=10) as client:
        try:
            client.get("/health").raise_for_status()
        except httpx.HTTPError as exc:
            print(f"ERROR: API not reachable at {API_BASE}: {exc}")
            sys.exit(1)

        for sample in SAMPLE_GOALS:
            resp = client.post(
                "/goals",
                json={
                    "name": sample["name"],
                    "target_amount": sample["target_amount"],
                    "currency": sample["currency"],
                },
            )
            if resp.status_code != 201:
                errors += 1
                print(f"  FAIL ({resp.status_code}): {resp.text}")
                continue

            goal_id = resp.json()["id"]
            created += 1
            print(f"  OK: {sample['name']:16s} {sample['currency']} {sample['target_amount']:>10s}")

            for contribution in sample["contributions"]:
                resp = client.post(f"/goals/{goal_id}/contributions", json=contribution)
                if resp.status_code != 201:
                    errors += 1
                    print(f"    FAIL ({resp.status_code}): {resp.text}")
                    continue
                print(f"    + {contribution['amount']:>10s}  {contribution['date']}")

    print(f"\nDone! {created} goals created, {errors} errors.")


if __name__ == "__main__":
    main()
