import logging
from celery import Celery
from app.config import settings

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

celery_app = Celery(
    "cropscan_worker",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["app.workers.tasks"]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    worker_concurrency=settings.WORKER_CONCURRENCY,
    # One message per worker process keeps dispatch close to FIFO
    worker_prefetch_multiplier=1,
    # Redeliver if a worker dies mid-job; the job claim rejects duplicates
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    broker_transport_options={"visibility_timeout": settings.STALE_JOB_SECONDS * 2},
    beat_schedule={
        "recover-stale-jobs": {
            "task": "cropscan.recover_stale_jobs",
            "schedule": max(settings.STALE_JOB_SECONDS // 3, 60),
        },
    },
)
