"""Register a user in the configured document store.

Usage:
  python scripts/create_user.py --username alice --password '...'

NOTE: This is intended for local/dev. Usernames are not unique; running it
twice with the same name adds a second record.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from bookshelf.auth.crud import create_user
from bookshelf.config import load_config
from bookshelf.db import open_store


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--username", required=True)
    ap.add_argument("--password", required=True)
    args = ap.parse_args()

    cfg = load_config()
    store = open_store(cfg.DB_DSN, cfg.DB_NAME)
    try:
        u = create_user(store, username=args.username, password=args.password)
    finally:
        store.close()

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
