#!/usr/bin/env python3
"""
Print an access token for a user id.

Users are managed by the identity provider; this helper is for operators
and local testing only.

Usage:
    python scripts/issue_token.py <user-uuid> [user|admin]
"""

import sys
from pathlib import Path
from uuid import UUID

BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BASE_DIR))

from roombook.core.security import create_access_token


def main(argv):
    if len(argv) < 2:
        print(__doc__)
        return 1
    try:
        user_id = UUID(argv[1])
    except ValueError:
        print(f"Error: {argv[1]} is not a valid UUID")
        return 1
    role = argv[2] if len(argv) > 2 else "user"
    if role not in ("user", "admin"):
        print("Error: role must be 'user' or 'admin'")
        return 1
    print(create_access_token(user_id, role=role))
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
