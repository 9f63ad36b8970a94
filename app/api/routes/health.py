from __future__ import annotations

import asyncio
from typing import Any

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import text

from app.core.config import get_settings
from app.db.repo.outbox_events_repo import StreakOutboxRepo
from app.db.session import SessionLocal
from app.economy.streak.constants import STREAK_MILESTONE_EVENT_TYPE
from app.workers.celery_app import celery_app

router = APIRouter(tags=["health"])
logger = structlog.get_logger(__name__)


def _ok(**extra: Any) -> dict[str, Any]:
    return {"status": "ok", **extra}


def _failed(error_code: str) -> dict[str, str]:
    return {"status": "failed", "error": error_code}


async def _check_database() -> dict[str, Any]:
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("health_database_failed", error_type=type(exc).__name__)
        return _failed("database_unavailable")
    return _ok()


async def _check_broker() -> dict[str, Any]:
    client = Redis.from_url(get_settings().celery_broker_url)
    try:
        if await client.ping() is not True:
            return _failed("broker_unexpected_ping")
    except Exception as exc:
        logger.warning("health_broker_failed", error_type=type(exc).__name__)
        return _failed("broker_unavailable")
    finally:
        await client.aclose()
    return _ok()


def _check_celery_worker_sync() -> dict[str, Any]:
    try:
        inspector = celery_app.control.inspect(timeout=1.0)
        replies = inspector.ping() if inspector is not None else None
    except Exception as exc:
        logger.warning("health_celery_failed", error_type=type(exc).__name__)
        return _failed("celery_unavailable")
    if not replies:
        return _failed("celery_no_workers")
    return _ok(workers=len(replies))


async def _check_celery_worker() -> dict[str, Any]:
    return await asyncio.to_thread(_check_celery_worker_sync)


async def _check_reward_outbox() -> dict[str, Any]:
    try:
        async with SessionLocal() as session:
            counts = await StreakOutboxRepo.count_by_status(
                session,
                event_type=STREAK_MILESTONE_EVENT_TYPE,
            )
    except Exception as exc:
        logger.warning("health_reward_outbox_failed", error_type=type(exc).__name__)
        return _failed("reward_outbox_unavailable")
    return _ok(pending=counts.get("PENDING", 0), failed=counts.get("FAILED", 0))


def _overall_ok(checks: dict[str, dict[str, Any]]) -> bool:
    return all(check.get("status") == "ok" for check in checks.values())


@router.get("/live")
async def live() -> dict[str, str]:
    return {"status": "live"}


@router.get("/health")
async def health() -> JSONResponse:
    database, broker, celery, reward_outbox = await asyncio.gather(
        _check_database(),
        _check_broker(),
        _check_celery_worker(),
        _check_reward_outbox(),
    )
    checks = {
        "database": database,
        "broker": broker,
        "celery": celery,
        "reward_outbox": reward_outbox,
    }
    healthy = _overall_ok(checks)
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ok" if healthy else "degraded", "checks": checks},
    )


@router.get("/ready")
async def ready() -> JSONResponse:
    # Streak operations only need the database; the broker gates reward delivery.
    database, broker = await asyncio.gather(_check_database(), _check_broker())
    checks = {"database": database, "broker": broker}
    is_ready = _overall_ok(checks)
    return JSONResponse(
        status_code=status.HTTP_200_OK if is_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if is_ready else "not_ready", "checks": checks},
    )
