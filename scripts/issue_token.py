#!/usr/bin/env python3
"""
Issue a local access token for a profile and store it.

Sign-in is handled by the identity provider; this mints an equivalent
token with the configured JWT secret for local testing.

Usage:
    python scripts/issue_token.py <USER_UUID>
    python scripts/issue_token.py <USER_UUID> --minutes 240
"""

import argparse
import sys
from datetime import timedelta
from pathlib import Path
from uuid import UUID

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.security import create_access_token

TOKEN_FILE = Path(__file__).parent.parent / ".token"


def issue(user_id: UUID, minutes: int | None = None) -> str:
    """Create an access token for the user and write it to the token file."""
    expires = timedelta(minutes=minutes) if minutes else None
    token = create_access_token({"sub": str(user_id)}, expires_delta=expires)

    TOKEN_FILE.write_text(token)

    print("Token issued")
    print(f"Token: {token}")

    return token


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Issue a local access token")
    parser.add_argument("user_id", type=UUID)
    parser.add_argument("--minutes", type=int, default=None)
    args = parser.parse_args()

    issue(args.user_id, args.minutes)
