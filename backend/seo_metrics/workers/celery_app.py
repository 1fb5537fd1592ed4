"""
Celery Application Configuration
Periodic maintenance of the SEO metrics store
"""

from celery import Celery
from kombu import Queue, Exchange

from seo_metrics.config import get_settings

settings = get_settings()

celery_app = Celery(
    settings.APP_NAME,
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "seo_metrics.workers.tasks.cache_tasks",
    ]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    result_expires=86400,  # 24 hours

    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=300,
    task_soft_time_limit=240,

    worker_prefetch_multiplier=1,

    task_queues=(
        Queue("default", Exchange("default"), routing_key="default"),
        Queue("maintenance", Exchange("maintenance"), routing_key="maintenance"),
    ),

    task_default_queue="default",
    task_default_exchange="default",
    task_default_routing_key="default",

    task_routes={
        "seo_metrics.workers.tasks.cache_tasks.*": {"queue": "maintenance"},
    },

    beat_schedule={
        "purge-expired-cache": {
            "task": "seo_metrics.workers.tasks.cache_tasks.purge_expired_cache",
            "schedule": 21600.0,  # Every 6 hours
        },
    },
)
