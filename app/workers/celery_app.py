from celery import Celery, signals

from app.core.config import get_settings
from app.core.logging import configure_logging

settings = get_settings()

REWARDS_QUEUE = "q_rewards"

celery_app = Celery(
    "mood_garden_streaks",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.workers.tasks.streak_rewards"],
)

celery_app.conf.update(
    task_default_queue=REWARDS_QUEUE,
    task_routes={"app.workers.tasks.streak_rewards.*": {"queue": REWARDS_QUEUE}},
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # A delivery batch holds outbox row locks; cap it well below the beat interval.
    task_soft_time_limit=45,
    task_time_limit=55,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    result_expires=3600,
    timezone="UTC",
    enable_utc=True,
    broker_connection_retry_on_startup=True,
)


@celery_app.task(name="app.workers.celery_app.ping")
def ping() -> str:
    return "pong"


@signals.setup_logging.connect
def _configure_worker_logging(**_kwargs: object) -> None:
    configure_logging(settings.log_level, app_env=settings.app_env)
