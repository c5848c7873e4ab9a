"""Create a user with any role (the only way to get business/admin accounts).

Usage:
  python scripts/create_user.py --email owner@club.com --username club_owner --password '...' --role business
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from outly.auth.crud import ROLES, create_user_checked
from outly.config import load_config
from outly.db import Database, init_db
from outly.errors import AppError


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--username", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--role", choices=list(ROLES), default="user")
    args = ap.parse_args()

    cfg = load_config().validate()
    db = Database.from_config(cfg).open()
    try:
        init_db(db)
        with db.connect() as conn:
            u = create_user_checked(
                conn,
                cfg,
                email=args.email,
                username=args.username,
                password=args.password,
                role=args.role,
            )
    except AppError as e:
        print(f"Failed: {e.code}")
        sys.exit(1)
    finally:
        db.close()

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
