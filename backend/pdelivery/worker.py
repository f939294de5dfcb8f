"""
Celery application for background jobs.

Run a worker with beat embedded:

    celery -A pdelivery.worker worker --beat --loglevel=info
"""

from celery import Celery

from pdelivery.core.config import get_settings
from pdelivery.core.logging import configure_logging

configure_logging()
settings = get_settings()

celery_app = Celery(
    "pdelivery",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["pdelivery.services.priority.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone=settings.business_timezone,
    enable_utc=True,
    result_expires=3600,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        "escalate-order-priorities": {
            "task": "priorities.escalate_order_priorities",
            "schedule": float(settings.priority_escalation_interval_seconds),
        },
    },
)
