from __future__ import annotations

from datetime import datetime, timezone

import httpx
import structlog

from app.core.config import get_settings
from app.db.repo.outbox_events_repo import StreakOutboxRepo
from app.db.session import SessionLocal
from app.economy.streak.constants import REWARD_DELIVERY_MAX_ATTEMPTS, STREAK_MILESTONE_EVENT_TYPE
from app.services.reward_delivery import post_reward_event
from app.workers.asyncio_runner import run_async_job
from app.workers.celery_app import REWARDS_QUEUE, celery_app

logger = structlog.get_logger(__name__)


async def run_streak_reward_delivery_async(
    *,
    batch_size: int | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, int]:
    """Drains pending milestone events to the reward webhook.

    Rows stay locked (SKIP LOCKED) for the whole batch so parallel workers
    never post the same event. A failed post stays PENDING until it has
    used up its attempts, then it is parked as FAILED.
    """
    settings = get_settings()
    result = {"claimed": 0, "sent": 0, "retry_scheduled": 0, "failed": 0}
    if not settings.reward_webhook_url:
        logger.info("streak_reward_delivery_disabled")
        return result

    limit = batch_size or settings.reward_delivery_batch_size
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(settings.reward_webhook_timeout_seconds),
        transport=transport,
    ) as client:
        async with SessionLocal.begin() as session:
            events = await StreakOutboxRepo.list_pending_for_update(
                session,
                event_type=STREAK_MILESTONE_EVENT_TYPE,
                limit=limit,
            )
            result["claimed"] = len(events)
            for event in events:
                delivered = await post_reward_event(
                    client=client,
                    url=settings.reward_webhook_url,
                    token=settings.reward_webhook_token,
                    event_type=event.event_type,
                    dedupe_key=event.dedupe_key,
                    payload=event.payload,
                )
                event.attempts += 1
                if delivered:
                    event.status = "SENT"
                    event.processed_at = datetime.now(timezone.utc)
                    result["sent"] += 1
                elif event.attempts >= REWARD_DELIVERY_MAX_ATTEMPTS:
                    event.status = "FAILED"
                    event.processed_at = datetime.now(timezone.utc)
                    result["failed"] += 1
                else:
                    result["retry_scheduled"] += 1

    logger.info("streak_reward_delivery_finished", **result)
    return result


@celery_app.task(name="app.workers.tasks.streak_rewards.run_streak_reward_delivery")
def run_streak_reward_delivery(batch_size: int | None = None) -> dict[str, int]:
    return run_async_job(
        run_streak_reward_delivery_async(batch_size=batch_size),
        job_name="streak_reward_delivery",
    )


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "streak-reward-delivery-every-minute": {
            "task": "app.workers.tasks.streak_rewards.run_streak_reward_delivery",
            "schedule": 60.0,
            "options": {"queue": REWARDS_QUEUE},
        },
    }
)
