from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.engine import URL, make_url

ALLOWED_LOCAL_HOSTS = frozenset(
    {
        "localhost",
        "127.0.0.1",
        "::1",
        "postgres",
        "mood_garden_postgres",
    }
)


@dataclass(frozen=True, slots=True)
class IntegrationDbSafetyResult:
    is_safe: bool
    reason: str
    database_name: str
    host: str


# Each rule returns a refusal reason, or None when the URL passes it.
_SafetyRule = Callable[[URL, str, str], str | None]


def _require_postgres(parsed: URL, db_name: str, host: str) -> str | None:
    if parsed.get_backend_name() != "postgresql":
        return "Streak integration tests need PostgreSQL (row versions, JSONB, triggers)."
    return None


def _require_test_name(parsed: URL, db_name: str, host: str) -> str | None:
    if not db_name:
        return "Database name is empty."
    if "test" not in db_name.lower():
        return "Database name must clearly indicate a test database (contain 'test')."
    return None


def _require_local_host(parsed: URL, db_name: str, host: str) -> str | None:
    if host not in ALLOWED_LOCAL_HOSTS:
        return f"Host '{host}' is not an allowed local integration-test host."
    return None


SAFETY_RULES: tuple[_SafetyRule, ...] = (_require_postgres, _require_test_name, _require_local_host)


def assess_integration_db_safety(database_url: str) -> IntegrationDbSafetyResult:
    parsed = make_url(database_url)
    db_name = (parsed.database or "").strip()
    host = (parsed.host or "").strip().lower()

    for rule in SAFETY_RULES:
        reason = rule(parsed, db_name, host)
        if reason is not None:
            return IntegrationDbSafetyResult(is_safe=False, reason=reason, database_name=db_name, host=host)
    return IntegrationDbSafetyResult(is_safe=True, reason="ok", database_name=db_name, host=host)


def assert_safe_integration_db(database_url: str) -> None:
    """Raises unless the URL points at a local database named as a test one."""
    result = assess_integration_db_safety(database_url)
    if result.is_safe:
        return
    raise RuntimeError(
        "Refusing to truncate streak tables outside a test database.\n"
        f"Reason: {result.reason}\n"
        f"Resolved DB: name='{result.database_name}' host='{result.host}'\n"
        "Use a dedicated local PostgreSQL database such as 'mood_garden_test' "
        "(python -m scripts.ensure_test_db creates and migrates it)."
    )
