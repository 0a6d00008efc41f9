"""
Scheduled trigger runs: one interval job per registered driver.

Each job opens its own session, runs the driver through the runner (which records the run in the
delivery log), and closes the session. A failing run is logged and never stops the scheduler;
the next tick simply tries again.
"""
import logging
from datetime import timedelta

from apscheduler.schedulers.base import BaseScheduler

from familynotify.core.constants import job_id
from familynotify.db.session import SessionLocal
from familynotify.services.triggers.registry import get_trigger, list_triggers
from familynotify.services.triggers.runner import run_trigger
from familynotify.services.window_matcher import check_polling_interval

logger = logging.getLogger(__name__)


def run_trigger_job(name: str) -> None:
    db = SessionLocal()
    try:
        report = run_trigger(name, db)
        if report.aborted:
            logger.warning("Trigger job %s aborted: %s", name, report.abort_reason)
    except Exception as e:
        logger.exception("Trigger job %s failed: %s", name, e)
        db.rollback()
    finally:
        db.close()


def register_jobs(scheduler: BaseScheduler) -> list[str]:
    """
    Add one interval job per trigger. Raises ConfigurationError when a time-window driver's
    cadence could step over one of its reminder windows.
    """
    ids = []
    for name in list_triggers():
        spec = get_trigger(name)
        if spec.windows:
            check_polling_interval(spec.windows, timedelta(seconds=spec.interval_seconds), name=name)
        scheduler.add_job(
            run_trigger_job,
            "interval",
            seconds=spec.interval_seconds,
            args=[name],
            id=job_id(name),
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        ids.append(job_id(name))
    logger.info("Registered %s trigger jobs", len(ids))
    return ids
