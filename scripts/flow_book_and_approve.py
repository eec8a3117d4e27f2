#!/usr/bin/env python3
"""
Booking lifecycle flow test script.

DO NOT ADD BUSINESS LOGIC HERE.
This script only orchestrates API calls.
All rules live in the backend.

Usage:
    python scripts/flow_book_and_approve.py --renter-id <UUID> --companion-id <UUID> --date 2026-11-01 --time 19:00
    python scripts/flow_book_and_approve.py --renter-id <UUID> --companion-id <UUID> --date 2026-11-01 --time 19:00 --reject

Flow:
    1. Issue tokens for renter and companion
    2. Create booking (as renter)
    3. Approve booking (as companion), or reject with --reject
    4. Show status history
    5. Cancel booking (as renter), unless it was rejected
"""

import argparse
import json
import sys
from pathlib import Path

import httpx

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.security import create_access_token

BASE_URL = "http://localhost:8000"


def token_for(user_id: str) -> str:
    """Mint a local access token for a profile."""
    return create_access_token({"sub": user_id})


def api_request(token: str, method: str, endpoint: str, data: dict | None = None) -> dict:
    """Make authenticated API request."""
    headers = {"Authorization": f"Bearer {token}"}
    url = f"{BASE_URL}{endpoint}"

    if method == "GET":
        response = httpx.get(url, headers=headers, timeout=10.0, follow_redirects=True)
    elif method == "POST":
        response = httpx.post(url, headers=headers, json=data or {}, timeout=10.0, follow_redirects=True)
    else:
        raise ValueError(f"Unknown method: {method}")

    return {"status": response.status_code, "data": response.json() if response.text else {}}


def print_step(step: int, title: str):
    """Print step header."""
    print(f"\n{'='*60}")
    print(f"STEP {step}: {title}")
    print("="*60)


def print_result(result: dict, fields: list[str] | None = None):
    """Print result, optionally filtering fields."""
    if result["status"] >= 400:
        print(f"ERROR ({result['status']}): {json.dumps(result['data'], indent=2)}")
        return False

    print(f"Status: {result['status']}")
    if fields and isinstance(result["data"], dict):
        filtered = {k: result["data"].get(k) for k in fields if k in result["data"]}
        print(json.dumps(filtered, indent=2))
    else:
        print(json.dumps(result["data"], indent=2))
    return True


def main():
    parser = argparse.ArgumentParser(description="Booking lifecycle flow")
    parser.add_argument("--renter-id", required=True, help="Renter profile UUID")
    parser.add_argument("--companion-id", required=True, help="Companion profile UUID")
    parser.add_argument("--date", required=True, help="Booking date (YYYY-MM-DD)")
    parser.add_argument("--time", required=True, help="Start time (HH:MM)")
    parser.add_argument("--hours", type=int, default=2, help="Duration in hours")
    parser.add_argument("--reject", action="store_true", help="Reject instead of approving")
    args = parser.parse_args()

    # Step 1: Tokens
    print_step(1, "Issue tokens")
    renter_token = token_for(args.renter_id)
    companion_token = token_for(args.companion_id)
    print(f"Renter:    {args.renter_id}")
    print(f"Companion: {args.companion_id}")

    # Step 2: Create booking
    print_step(2, "Create booking (as renter)")
    booking_result = api_request(renter_token, "POST", "/api/v1/bookings/", {
        "companion_id": args.companion_id,
        "booking_date": args.date,
        "booking_time": args.time,
        "duration_hours": args.hours,
    })
    if not print_result(booking_result, ["id", "total_price", "status", "payment_status"]):
        sys.exit(1)

    booking_id = booking_result["data"]["id"]
    print(f"\nBooking created: {booking_id}")

    # Step 3: Companion decision
    if args.reject:
        print_step(3, "Reject booking (as companion)")
        decision = api_request(companion_token, "POST", f"/api/v1/bookings/{booking_id}/reject", {
            "reason": "Not available at that time",
        })
    else:
        print_step(3, "Approve booking (as companion)")
        decision = api_request(companion_token, "POST", f"/api/v1/bookings/{booking_id}/approve", {})
    if not print_result(decision, ["id", "status", "admin_notes"]):
        sys.exit(1)

    # Step 4: History
    print_step(4, "Status history")
    history = api_request(renter_token, "GET", f"/api/v1/bookings/{booking_id}/history")
    if not print_result(history):
        sys.exit(1)

    if args.reject:
        print("\n" + "="*60)
        print("FLOW COMPLETE (booking rejected)")
        print("="*60)
        return

    # Step 5: Renter cancels
    print_step(5, "Cancel booking (as renter)")
    cancel_result = api_request(renter_token, "POST", f"/api/v1/bookings/{booking_id}/cancel", {
        "reason": "Plans changed",
    })
    if not print_result(cancel_result, ["id", "status", "admin_notes"]):
        sys.exit(1)

    print("\n" + "="*60)
    print("FULL FLOW COMPLETE")
    print("="*60)
    print(f"Booking: {booking_id}")


if __name__ == "__main__":
    main()
