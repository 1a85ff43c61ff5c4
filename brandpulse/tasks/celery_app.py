from celery import Celery
from celery.signals import worker_process_init

from brandpulse.core.config import settings

celery_app = Celery(
    "brandpulse",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    broker_connection_retry_on_startup=True,
)

# Celery Beat schedule: score newly completed answers on a fixed interval
celery_app.conf.beat_schedule = {
    "score-pending-answers": {
        "task": "score_pending_answers",
        "schedule": float(settings.scoring_interval_seconds),
    },
}

celery_app.conf.include = [
    "brandpulse.tasks.scoring_tasks",
]


@worker_process_init.connect
def _init_worker(**_kwargs) -> None:
    from brandpulse.core.config import validate_settings_for_production
    from brandpulse.core.logging import setup_logging
    from brandpulse.core.sentry import init_sentry

    setup_logging()
    init_sentry()
    if settings.app_env != "test":
        validate_settings_for_production()
