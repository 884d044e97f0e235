"""
APScheduler integration for the matching engine.
"""

from __future__ import annotations

import os
import socket
from datetime import datetime
from uuid import uuid4

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session, sessionmaker

from reliefdesk.core.config.models import SchedulerConfig
from reliefdesk.core.logging import get_logger
from reliefdesk.core.matching.engine import run_matching
from reliefdesk.core.scheduler.locks import MATCHING_LOCK, LockManager
from reliefdesk.persistence.db import get_session

logger = get_logger("scheduler")

MATCHING_JOB_ID = "matching"


def make_holder_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}-{uuid4().hex[:8]}"


def execute_matching_job(
    holder_id: str,
    ttl_minutes: int = 60,
    run_type: str = "scheduled",
    session_factory: sessionmaker[Session] | None = None,
) -> int | None:
    """Run the matching engine under the matching lock.

    Returns:
        Number of new matches, or None if another run held the lock
    """
    with get_session(session_factory) as session:
        lock_manager = LockManager(session)
        if not lock_manager.acquire(MATCHING_LOCK, holder_id, ttl_minutes=ttl_minutes):
            logger.info("Matching lock held, skipping this run")
            return None

    try:
        with get_session(session_factory) as session:
            new_matches = run_matching(session, run_type=run_type)
    except Exception:
        logger.exception("Scheduled matching run failed")
        raise
    finally:
        with get_session(session_factory) as session:
            LockManager(session).release(MATCHING_LOCK, holder_id)

    logger.info("Scheduled matching found %d new matches", new_matches)
    return new_matches


class SchedulerService:
    """Runs the matching engine on a fixed interval."""

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        session_factory: sessionmaker[Session] | None = None,
    ) -> None:
        self.config = config or SchedulerConfig()
        self.session_factory = session_factory
        self._scheduler: BaseScheduler | None = None
        self._holder_id = make_holder_id()

    @property
    def holder_id(self) -> str:
        return self._holder_id

    def _add_matching_job(self, scheduler: BaseScheduler) -> None:
        job_kwargs = {}
        if self.config.run_on_start:
            job_kwargs["next_run_time"] = datetime.now()

        scheduler.add_job(
            execute_matching_job,
            IntervalTrigger(minutes=self.config.matching_interval_minutes),
            id=MATCHING_JOB_ID,
            kwargs={
                "holder_id": self._holder_id,
                "ttl_minutes": self.config.lock_ttl_minutes,
                "run_type": "scheduled",
                "session_factory": self.session_factory,
            },
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            **job_kwargs,
        )
        logger.info(
            "Matching scheduled every %d minutes (run on start: %s)",
            self.config.matching_interval_minutes,
            self.config.run_on_start,
        )

    def start(self) -> None:
        """Start scheduler in foreground mode (blocking)."""
        scheduler = BlockingScheduler()
        self._scheduler = scheduler
        self._add_matching_job(scheduler)
        scheduler.start()

    def start_background(self) -> BackgroundScheduler:
        """Start scheduler in a background thread and return it."""
        scheduler = BackgroundScheduler()
        self._scheduler = scheduler
        self._add_matching_job(scheduler)
        scheduler.start()
        return scheduler

    def shutdown(self, wait: bool = False) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
        self._scheduler = None

    def trigger_now(self) -> int | None:
        """Run matching once in the current thread, honouring the lock."""
        return execute_matching_job(
            self._holder_id,
            ttl_minutes=self.config.lock_ttl_minutes,
            run_type="manual",
            session_factory=self.session_factory,
        )
