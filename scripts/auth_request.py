#!/usr/bin/env python3
"""
Call the API with the token written by issue_token.py.

Usage:
    python scripts/auth_request.py
    python scripts/auth_request.py GET /api/v1/bookings/stats
    python scripts/auth_request.py POST /api/v1/bookings/<UUID>/cancel --data '{"reason": "Plans changed"}'
    python scripts/auth_request.py GET /api/v1/notifications/ --base-url http://staging:8000
"""

import argparse
import json
import sys
from pathlib import Path

import httpx

TOKEN_FILE = Path(__file__).parent.parent / ".token"
METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")


def load_token() -> str:
    token = TOKEN_FILE.read_text().strip() if TOKEN_FILE.exists() else ""
    if not token:
        sys.exit(f"ERROR: no token in {TOKEN_FILE}. Run scripts/issue_token.py first.")
    return token


def main() -> None:
    parser = argparse.ArgumentParser(description="Authenticated API request")
    parser.add_argument("method", nargs="?", default="GET", type=str.upper, choices=METHODS)
    parser.add_argument("endpoint", nargs="?", default="/api/v1/bookings/")
    parser.add_argument("--data", "-d", help="JSON request body")
    parser.add_argument("--base-url", default="http://localhost:8000")
    args = parser.parse_args()

    body = json.loads(args.data) if args.data else None
    with httpx.Client(
        base_url=args.base_url,
        headers={"Authorization": f"Bearer {load_token()}"},
        timeout=10.0,
        follow_redirects=True,
    ) as client:
        response = client.request(args.method, args.endpoint, json=body)

    print(f"{args.method} {args.endpoint} -> {response.status_code}")
    if not response.content:
        return
    try:
        print(json.dumps(response.json(), indent=2))
    except json.JSONDecodeError:
        print(response.text)


if __name__ == "__main__":
    main()
