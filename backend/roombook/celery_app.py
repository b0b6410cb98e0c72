"""Celery application configuration."""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import Celery

from roombook.core.config import settings

logger = logging.getLogger(__name__)

celery_app = Celery(
    "roombook",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["roombook.tasks.lifecycle"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    broker_connection_retry_on_startup=True,
    # Sweeps are idempotent, so redelivery after a worker crash is safe
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=500,
)

# Periodic tasks
celery_app.conf.beat_schedule = {
    "mark-no-shows": {
        "task": "roombook.tasks.lifecycle.mark_no_shows",
        "schedule": timedelta(seconds=settings.NO_SHOW_SWEEP_SECONDS),
    },
    "complete-finished-reservations": {
        "task": "roombook.tasks.lifecycle.complete_finished_reservations",
        "schedule": timedelta(seconds=settings.COMPLETION_SWEEP_SECONDS),
    },
}

logger.info(f"Celery app configured with broker: {settings.CELERY_BROKER_URL}")
