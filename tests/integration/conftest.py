from __future__ import annotations

import pytest
from sqlalchemy import text

from app.core.integration_db_safety import assert_safe_integration_db
from app.db.session import engine

STREAK_TABLES = (
    "streak_outbox_events",
    "streak_freeze_ledger",
    "streak_state",
)

# TRUNCATE bypasses the ledger's UPDATE/DELETE trigger.
TRUNCATE_SQL = f"TRUNCATE TABLE {', '.join(STREAK_TABLES)} RESTART IDENTITY"


@pytest.fixture(scope="session", autouse=True)
def guard_integration_db_target() -> None:
    assert_safe_integration_db(str(engine.url))


@pytest.fixture(autouse=True)
async def clean_streak_tables() -> None:
    # asyncpg connections are bound to the loop that opened them; every test runs on a new loop.
    await engine.dispose()

    try:
        async with engine.connect() as conn:
            missing = [
                table
                for table in STREAK_TABLES
                if (await conn.execute(text("SELECT to_regclass(:name)"), {"name": table})).scalar() is None
            ]
    except Exception as exc:  # pragma: no cover - environment-dependent
        pytest.skip(f"Postgres is required for integration tests: {exc}")
    if missing:
        pytest.skip(f"Streak schema is not migrated (missing {', '.join(missing)}); run python -m scripts.ensure_test_db")

    async with engine.begin() as conn:
        await conn.execute(text(TRUNCATE_SQL))

    yield

    await engine.dispose()
