"""Celery application configuration"""

from celery import Celery
from catering.config import settings

# Create Celery app
celery_app = Celery(
    "catering",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "catering.jobs.tasks",
    ],
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.timezone,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Same reconcile steps the read paths run lazily
    beat_schedule={
        "apply-pending-pack-changes": {
            "task": "apply_pending_pack_changes",
            "schedule": settings.pending_pack_reconcile_interval,
        },
        "reconcile-order-locks": {
            "task": "reconcile_order_locks",
            "schedule": settings.order_lock_reconcile_interval,
        },
    },
)
