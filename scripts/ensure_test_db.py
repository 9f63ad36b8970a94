from __future__ import annotations

import argparse
import asyncio
import re

import asyncpg
from alembic import command
from alembic.config import Config
from sqlalchemy.engine import make_url

from app.core.config import get_settings
from app.core.integration_db_safety import assert_safe_integration_db

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


async def _ensure_database_exists(database_url: str) -> None:
    assert_safe_integration_db(database_url)

    parsed = make_url(database_url)
    db_name = (parsed.database or "").strip()
    host = parsed.host or "localhost"
    port = int(parsed.port or 5432)
    if parsed.username is None:
        raise RuntimeError("DATABASE_URL username is required.")
    if IDENTIFIER_RE.fullmatch(db_name) is None:
        raise RuntimeError(
            f"Unsupported database name '{db_name}'. "
            "Only [A-Za-z0-9_] identifiers are supported."
        )

    conn = await asyncpg.connect(
        host=host,
        port=port,
        user=parsed.username,
        password=parsed.password,
        database="postgres",
    )
    try:
        exists = await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", db_name)
        if exists:
            print(f"ensure_test_db: exists db={db_name} host={host}:{port}")  # noqa: T201
            return

        await conn.execute(f'CREATE DATABASE "{db_name}"')
        print(f"ensure_test_db: created db={db_name} host={host}:{port}")  # noqa: T201
    finally:
        await conn.close()


def _upgrade_schema() -> None:
    command.upgrade(Config("alembic.ini"), "head")
    print("ensure_test_db: schema at head")  # noqa: T201


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the local streak test database.")
    parser.add_argument("--skip-migrations", action="store_true")
    args = parser.parse_args()

    asyncio.run(_ensure_database_exists(get_settings().database_url))
    if not args.skip_migrations:
        _upgrade_schema()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
