"""APScheduler-based periodic full rebuild."""

from __future__ import annotations

import logging
import time

from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.schedulers.blocking import BlockingScheduler

from scripts.namesearch.config import IndexerConfig
from scripts.namesearch.db import Database
from scripts.namesearch.runner import IndexerRun

logger = logging.getLogger("namesearch.scheduler")

BACKOFF_BASE_SECONDS = 30


def _rebuild(config: IndexerConfig, db: Database) -> None:
    """Run a full rebuild, retrying the whole run with exponential backoff."""
    max_retries = config.scheduler.max_retries

    for attempt in range(max_retries + 1):
        run = IndexerRun(config, db)
        try:
            run.run("rebuild")
            return
        except Exception as exc:
            if attempt < max_retries:
                delay = BACKOFF_BASE_SECONDS * (2 ** attempt)
                logger.warning(
                    "Rebuild failed (attempt %d/%d), retrying in %ds: %s",
                    attempt + 1, max_retries, delay, exc,
                )
                time.sleep(delay)
            else:
                logger.error("Rebuild failed after %d retries: %s", max_retries, exc)
        finally:
            run.client.close()


def _on_job_error(event) -> None:
    logger.error("Job %s raised an exception: %s", event.job_id, event.exception)


def start_scheduler(config: IndexerConfig, db: Database) -> None:
    """Start the blocking scheduler with one interval rebuild job."""
    scheduler = BlockingScheduler()
    scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
    sched = config.scheduler

    scheduler.add_job(
        _rebuild,
        "interval",
        hours=sched.rebuild_interval_hours,
        args=[config, db],
        id="rebuild",
        max_instances=1,
        misfire_grace_time=sched.misfire_grace_time,
    )

    logger.info("Starting scheduler with jobs: %s", [j.id for j in scheduler.get_jobs()])
    scheduler.start()
