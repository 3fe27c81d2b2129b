"""Celery application configuration."""

from celery import Celery

from alertcast.core.config import settings

celery_app = Celery(
    "alertcast",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "alertcast.workers.notification_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=900,
    worker_prefetch_multiplier=1,
    # A send is attempted at most once; never redeliver a started task.
    task_acks_late=False,
)
