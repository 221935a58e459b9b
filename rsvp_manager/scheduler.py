"""
Background scheduler for the daily conclusion-email sweep.

Uses APScheduler's BackgroundScheduler with a single CronTrigger job.
"""
from __future__ import annotations

import logging
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from .config import settings
from .database import session_scope
from .services.conclusion_sweep import run_conclusion_sweep

logger = logging.getLogger(__name__)

JOB_ID = "conclusion_email_sweep"

scheduler: Optional[BackgroundScheduler] = None


def _on_job_error(event):
    logger.error(
        "Scheduled job FAILED: job_id=%s error=%s",
        event.job_id, event.exception,
    )
    if event.traceback:
        logger.error("Traceback for job %s:\n%s", event.job_id, event.traceback)


def _on_job_missed(event):
    logger.warning(
        "Scheduled job MISSED: job_id=%s scheduled_run_time=%s",
        event.job_id,
        event.scheduled_run_time,
    )


def conclusion_sweep_job() -> None:
    with session_scope() as db:
        run_conclusion_sweep(db)


def build_scheduler() -> BackgroundScheduler:
    sched = BackgroundScheduler(
        timezone=settings.event_timezone,
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": 3600,
        },
    )
    sched.add_job(
        func=conclusion_sweep_job,
        trigger=CronTrigger(
            hour=settings.conclusion_sweep_hour,
            minute=settings.conclusion_sweep_minute,
            timezone=settings.event_timezone,
        ),
        id=JOB_ID,
        name="Send event conclusion emails",
        replace_existing=True,
    )
    sched.add_listener(_on_job_error, EVENT_JOB_ERROR)
    sched.add_listener(_on_job_missed, EVENT_JOB_MISSED)
    return sched


def start_scheduler() -> BackgroundScheduler:
    """
    Start once per process. Repeated calls return the running scheduler.
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already initialized")
        return scheduler

    scheduler = build_scheduler()
    scheduler.start()
    logger.info(
        "Scheduled job: %s (daily at %02d:%02d %s)",
        JOB_ID,
        settings.conclusion_sweep_hour,
        settings.conclusion_sweep_minute,
        settings.event_timezone,
    )
    return scheduler


def shutdown_scheduler() -> None:
    global scheduler

    if scheduler is None:
        return
    scheduler.shutdown(wait=False)
    scheduler = None
    logger.info("Scheduler stopped")
