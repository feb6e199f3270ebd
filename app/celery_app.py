from celery import Celery

from app.config import settings

celery_app = Celery(
    "docvault",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "app.tasks.audit",
        "app.tasks.cases",
        "app.tasks.presence",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,
    beat_schedule={
        "deactivate-stale-presence": {
            "task": "app.tasks.presence.deactivate_stale_presence",
            "schedule": float(settings.presence_sweep_interval_seconds),
        },
        "reconcile-case-counters": {
            "task": "app.tasks.cases.reconcile_case_counters",
            "schedule": float(settings.case_reconcile_interval_seconds),
        },
    },
)
