"""
Scheduled jobs worker.

Runs the recurring maintenance jobs: alert delivery every 15 minutes and
the daily purge, template update check, onboarding reminders and trial
warnings. Each job gets its own database session; a failing job is logged
and does not stop the others.

Usage:
    python -m compliance.workers.scheduler          # loop forever
    python -m compliance.workers.scheduler --once   # run due jobs once and exit
    python -m compliance.workers.scheduler --job process-due-alerts

Configuration:
    - SCHEDULER_TICK_SECONDS: seconds between checks (default: 60)
    - SCHEDULER_CATCH_UP_HOURS: how far back missed slots are replayed (default: 24)
"""

import argparse
import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from compliance.db.database import SessionLocal
from compliance.db.models.base import now_utc
from compliance.services import (
    alert_service,
    billing_service,
    document_service,
    onboarding_service,
    template_service,
)
from compliance.utils.runtime import load_environment

logger = logging.getLogger(__name__)

TICK_SECONDS = int(os.getenv("SCHEDULER_TICK_SECONDS", 60))
CATCH_UP_HOURS = int(os.getenv("SCHEDULER_CATCH_UP_HOURS", 24))


def _minute(value: datetime) -> datetime:
    return value.replace(second=0, microsecond=0)


@dataclass(frozen=True)
class Job:
    name: str
    run: Callable[[Session, datetime], object]
    # every_minutes slots count from midnight UTC; daily jobs run at hour:00 UTC
    every_minutes: Optional[int] = None
    daily_hour: Optional[int] = None

    def last_slot(self, now: datetime) -> datetime:
        """The latest scheduled minute at or before ``now``."""
        now = _minute(now)
        midnight = now.replace(hour=0, minute=0)
        if self.every_minutes is not None:
            elapsed = now.hour * 60 + now.minute
            return midnight + timedelta(minutes=elapsed - elapsed % self.every_minutes)
        slot = midnight.replace(hour=self.daily_hour)
        return slot if slot <= now else slot - timedelta(days=1)

    def slots_between(self, since: datetime, now: datetime) -> List[datetime]:
        """Scheduled minutes in ``(since, now]``, oldest first."""
        slots = []
        slot = self.last_slot(now)
        while slot > since:
            slots.append(slot)
            slot = self.last_slot(slot - timedelta(minutes=1))
        slots.reverse()
        return slots

    def is_due(self, now: datetime) -> bool:
        return self.last_slot(now) == _minute(now)


JOBS: List[Job] = [
    Job("process-due-alerts", lambda db, now: alert_service.process_due_alerts(db, now=now), every_minutes=15),
    Job("purge-old-deleted-documents", lambda db, now: document_service.purge_old_deleted_documents(db, now=now), daily_hour=2),
    Job("check-template-updates", lambda db, now: template_service.check_for_updates(db), daily_hour=6),
    Job("trial-expiry-warnings", lambda db, now: billing_service.send_trial_warnings(db, now=now), daily_hour=10),
    Job("onboarding-reminders", lambda db, now: onboarding_service.send_onboarding_reminders(db, now=now), daily_hour=14),
]

JOBS_BY_NAME: Dict[str, Job] = {job.name: job for job in JOBS}


def run_job(job: Job, now: Optional[datetime] = None, session_factory=SessionLocal) -> bool:
    """Run one job in a fresh session; returns False when it raised."""
    now = now or now_utc()
    db = session_factory()
    started = time.monotonic()
    try:
        result = job.run(db, now)
        logger.info("Job %s finished in %.2fs: %s", job.name, time.monotonic() - started, result)
        return True
    except Exception:
        # Jobs are independent; log and keep the loop alive
        db.rollback()
        logger.exception("Job %s failed", job.name)
        return False
    finally:
        db.close()


def run_due_jobs(
    now: Optional[datetime] = None,
    session_factory=SessionLocal,
    since: Optional[datetime] = None,
) -> Dict[str, bool]:
    """Run every job slot in ``(since, now]``; without ``since`` only slots at ``now``.

    Missed slots are replayed oldest first with the slot time as ``now``, so
    windowed jobs like alert delivery cover the minutes a slow tick skipped.
    The result is False for a job when any of its runs failed.
    """
    now = _minute(now or now_utc())
    if since is None:
        since = now - timedelta(minutes=1)
    since = max(since, now - timedelta(hours=CATCH_UP_HOURS))
    results: Dict[str, bool] = {}
    for job in JOBS:
        slots = job.slots_between(since, now)
        if not slots:
            continue
        if len(slots) > 1:
            logger.warning("Job %s catching up %s missed slots since %s", job.name, len(slots) - 1, slots[0])
        outcomes = [run_job(job, slot, session_factory) for slot in slots]
        results[job.name] = all(outcomes)
    return results


def configure_logging() -> None:
    log_dir = "logs"
    os.makedirs(log_dir, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(os.path.join(log_dir, "compliance_scheduler.log")),
            logging.StreamHandler(),
        ],
    )


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Run scheduled compliance jobs")
    parser.add_argument("--once", action="store_true", help="run the jobs due now and exit")
    parser.add_argument("--job", choices=sorted(JOBS_BY_NAME), help="run a single job immediately and exit")
    args = parser.parse_args(argv)

    load_environment()
    configure_logging()

    if args.job:
        run_job(JOBS_BY_NAME[args.job])
        return
    if args.once:
        run_due_jobs()
        return

    logger.info("Scheduler started with %s jobs", len(JOBS))
    last_minute = None
    while True:
        now = now_utc().replace(second=0, microsecond=0)
        if now != last_minute:
            run_due_jobs(now, since=last_minute)
            last_minute = now
        time.sleep(max(1, min(TICK_SECONDS, 60 - now_utc().second)))


if __name__ == "__main__":
    main()
