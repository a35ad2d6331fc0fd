"""Register or update a user account with FusionSolar API credentials."""

from __future__ import annotations

import argparse
import asyncio
import uuid
from pathlib import Path

from fusion_sync.config.manager import ConfigManager
from fusion_sync.db.engine import close_db, init_db
from fusion_sync.db.repository import Repository


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--user-id", default="", help="Existing id to update; new uuid if empty")
    parser.add_argument("--username", required=True, help="FusionSolar API account (userName)")
    parser.add_argument("--system-code", required=True, help="FusionSolar API password (systemCode)")
    parser.add_argument("--config", default="config.yaml")
    parser.add_argument("--defaults", default="config.defaults.yaml")
    parser.add_argument("--db-path", default="")
    return parser.parse_args()


async def main_async(args: argparse.Namespace) -> str:
    manager = ConfigManager(defaults_path=Path(args.defaults), user_path=Path(args.config))
    config = manager.load()
    db_path = args.db_path or config.db.path

    db = await init_db(db_path)
    try:
        repo = Repository(db)
        user_id = args.user_id or str(uuid.uuid4())
        # New credentials invalidate any cached session token.
        await repo.upsert_user(user_id, args.username, args.system_code, xsrf_token=None)
        return user_id
    finally:
        await close_db()


def main() -> None:
    args = parse_args()
    user_id = asyncio.run(main_async(args))
    print(user_id)


if __name__ == "__main__":
    main()
