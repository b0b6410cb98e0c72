"""Celery tasks running the reservation lifecycle sweeps."""

from __future__ import annotations

import logging
from functools import lru_cache

import redis
from redis.exceptions import RedisError

from roombook.celery_app import celery_app
from roombook.core.config import settings
from roombook.core.locks import RedisSweepGuard
from roombook.services.notifications import get_notification_sink
from roombook.services.scheduler import LifecycleScheduler, SweepReport

logger = logging.getLogger(__name__)


@lru_cache
def _lock_client() -> redis.Redis:
    return redis.Redis.from_url(settings.REDIS_URL)


def build_scheduler() -> LifecycleScheduler:
    """Scheduler guarded by a Redis lock shared by every worker."""
    guard = RedisSweepGuard(_lock_client(), timeout=settings.SWEEP_LOCK_TIMEOUT_SECONDS)
    return LifecycleScheduler(notifier=get_notification_sink(), guard=guard)


def _run(name: str, sweep) -> dict:
    try:
        report: SweepReport = sweep()
    except RedisError as e:
        # Sweep lock unavailable; the next beat tick retries
        logger.error(f"Could not run {name} sweep: {e}", exc_info=True)
        return SweepReport(sweep=name, ran=False, error=str(e)).to_dict()
    return report.to_dict()


@celery_app.task(name="roombook.tasks.lifecycle.mark_no_shows")
def mark_no_shows() -> dict:
    """
    Mark confirmed reservations without a check-in as NO_SHOW.

    Runs every NO_SHOW_SWEEP_SECONDS through Celery Beat.

    Returns:
        dict: Sweep report
    """
    return _run("no_show", build_scheduler().run_no_show_sweep)


@celery_app.task(name="roombook.tasks.lifecycle.complete_finished_reservations")
def complete_finished_reservations() -> dict:
    """
    Mark confirmed reservations whose end time has passed as COMPLETED.

    Runs every COMPLETION_SWEEP_SECONDS through Celery Beat.

    Returns:
        dict: Sweep report
    """
    return _run("completion", build_scheduler().run_completion_sweep)
