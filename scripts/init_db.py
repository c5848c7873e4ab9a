import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from outly.config import load_config
from outly.db import Database, init_db


def main() -> None:
    cfg = load_config().validate()
    db = Database.from_config(cfg).open()
    try:
        init_db(db)
    finally:
        db.close()

    print(f"DB initialized ({db.dialect})")


if __name__ == "__main__":
    main()
