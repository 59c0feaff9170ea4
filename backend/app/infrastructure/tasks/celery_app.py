from celery import Celery
from celery.schedules import crontab

from app.config import settings

celery_app = Celery(
    "tuition_portal",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "app.infrastructure.tasks.maintenance_tasks",
        "app.infrastructure.tasks.scholarship_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
)

celery_app.conf.beat_schedule = {
    "expire-payment-requests": {
        "task": "maintenance.expire_payment_requests",
        "schedule": 60.0,
    },
    "deactivate-rate-limits": {
        "task": "maintenance.deactivate_rate_limits",
        "schedule": 300.0,
    },
    "deactivate-idempotency-records": {
        "task": "maintenance.deactivate_idempotency_records",
        "schedule": crontab(minute=0),
    },
    "sync-scholarships": {
        "task": "scholarships.sync",
        "schedule": crontab(minute=30, hour=2),
    },
    "purge-inactive-records": {
        "task": "maintenance.purge_inactive_records",
        "schedule": crontab(minute=0, hour=3, day_of_week="sunday"),
    },
}
