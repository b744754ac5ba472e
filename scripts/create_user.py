"""Create a user in the configured DB.

Usage:
  python scripts/create_user.py --email alice@example.com --password '...' --role admin

This is the supported way to create additional admins; the HTTP API only ever
registers role=user accounts.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from tastetrail.auth.crud import create_user
from tastetrail.config import load_config
from tastetrail.db import connect, init_db


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--full-name", default="")
    ap.add_argument("--photo", default=None)
    ap.add_argument("--role", choices=["user", "admin"], default="user")
    args = ap.parse_args()

    cfg = load_config()
    init_db(cfg.DB_DSN)

    with connect(cfg.DB_DSN) as conn:
        try:
            u = create_user(
                conn,
                email=args.email,
                password=args.password,
                full_name=args.full_name,
                photo=args.photo or cfg.DEFAULT_PHOTO_URL,
                role=args.role,
            )
        except ValueError as e:
            sys.exit(f"Could not create user: {e}")

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
