"""Promote or demote an existing user.

Usage:
  python scripts/set_role.py --email alice@example.com --role admin

Tokens already issued keep their embedded role, but admin-only routes re-read the
stored role, so a demotion applies to the user's next request.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from tastetrail.auth.crud import set_user_role
from tastetrail.config import load_config
from tastetrail.db import connect, init_db


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--role", choices=["user", "admin"], required=True)
    args = ap.parse_args()

    cfg = load_config()
    init_db(cfg.DB_DSN)

    with connect(cfg.DB_DSN) as conn:
        try:
            u = set_user_role(conn, email=args.email, role=args.role)
        except ValueError as e:
            sys.exit(f"Could not update role: {e}")

    print(f"{u['email']} is now {u['role']}")


if __name__ == "__main__":
    main()
