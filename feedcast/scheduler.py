"""
APScheduler driver: periodic sweeps plus a daily ledger cleanup.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.blocking import BlockingScheduler

from feedcast.pipeline import SweepOrchestrator
from feedcast.schemas import ScheduleConfig

logger = logging.getLogger(__name__)


def build_scheduler(orchestrator: SweepOrchestrator, schedule: ScheduleConfig, dry_run: bool = False) -> BlockingScheduler:
    scheduler = BlockingScheduler(timezone=schedule.timezone or "UTC")

    def job_sweep():
        orchestrator.run_sweep(dry_run=dry_run)

    def job_cleanup():
        orchestrator.run_cleanup()

    # the first sweep fires immediately, then every interval
    scheduler.add_job(
        job_sweep,
        "interval",
        minutes=schedule.default_interval_minutes,
        id="feed_sweep",
        next_run_time=datetime.now(timezone.utc),
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        job_cleanup,
        "cron",
        hour=schedule.cleanup_hour,
        minute=0,
        id="ledger_cleanup",
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def run_scheduler(orchestrator: SweepOrchestrator, schedule: ScheduleConfig, dry_run: bool = False) -> None:
    scheduler = build_scheduler(orchestrator, schedule, dry_run=dry_run)
    logger.info(
        "Scheduler started: sweep every %d minutes, cleanup daily at %02d:00 %s",
        schedule.default_interval_minutes,
        schedule.cleanup_hour,
        schedule.timezone,
    )
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutdown signal received")
    finally:
        if scheduler.running:
            scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped")
