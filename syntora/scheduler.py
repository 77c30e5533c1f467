"""
syntora.scheduler — Scheduled Daily Reset
==========================================

Runs :meth:`GamificationService.reset_all_users` once a day at the
configured local reset time.  Either standalone::

    python -m syntora.scheduler

or inside the API process when ``scheduler_enabled: true`` in config.yaml.
The reset is idempotent, so running both is harmless.
"""

from __future__ import annotations

import logging
import signal
import threading

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from dotenv import load_dotenv

from syntora.config import load_config_or_default
from syntora.database.engine import create_db_engine, init_db
from syntora.services.gamification_service import GamificationService

logger = logging.getLogger(__name__)

DAILY_RESET_JOB_ID = "daily_reset"


def _run_daily_reset(service: GamificationService) -> None:
    try:
        summary = service.reset_all_users()
    except Exception:
        logger.exception("Daily reset job failed")
        return
    logger.info(
        "Daily reset job: %d users checked, %d reset, %d failed",
        summary["checked"], summary["reset"], summary["failed"],
    )


def build_scheduler(service: GamificationService) -> BackgroundScheduler:
    """A not-yet-started scheduler with the daily reset job registered."""
    cfg = service.cfg
    scheduler = BackgroundScheduler(daemon=True, timezone=cfg.timezone)
    scheduler.add_job(
        _run_daily_reset,
        CronTrigger(hour=cfg.reset_hour, minute=cfg.reset_minute, timezone=cfg.timezone),
        args=[service],
        id=DAILY_RESET_JOB_ID,
        replace_existing=True,
        coalesce=True,
        misfire_grace_time=3600,
    )
    return scheduler


def start_scheduler(service: GamificationService) -> BackgroundScheduler:
    scheduler = build_scheduler(service)
    scheduler.start()
    logger.info(
        "Scheduler started: daily reset at %02d:%02d %s",
        service.cfg.reset_hour, service.cfg.reset_minute, service.cfg.timezone,
    )
    return scheduler


def stop_scheduler(scheduler: BackgroundScheduler) -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
        datefmt="%H:%M:%S",
    )

    engine = create_db_engine()
    init_db(engine)
    service = GamificationService(engine, load_config_or_default().gamification)

    # Catch up on a reset missed while the process was down
    _run_daily_reset(service)

    scheduler = start_scheduler(service)
    stopped = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stopped.set())
    signal.signal(signal.SIGTERM, lambda *_: stopped.set())
    stopped.wait()
    stop_scheduler(scheduler)


if __name__ == "__main__":
    main()
