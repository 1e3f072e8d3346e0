"""Run the rooms API with uvicorn, or apply the Postgres schema."""

from __future__ import annotations

import argparse
import logging
import sys

from tttroom.backend.config import load_settings
from tttroom.backend.store import PostgresKeyValueStore


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="TTT rooms backend")
    parser.add_argument("command", nargs="?", choices=["serve", "migrate"], default="serve")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "migrate":
        if not settings.database_url:
            print("TTTROOM_DATABASE_URL is required for migration", file=sys.stderr)
            return 1
        PostgresKeyValueStore(database_url=settings.database_url).ensure_schema()
        return 0

    import uvicorn

    uvicorn.run(
        "tttroom.backend.api:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
