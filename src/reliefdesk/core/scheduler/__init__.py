"""Scheduler service - APScheduler integration."""

from .locks import MATCHING_LOCK, LockManager
from .service import SchedulerService, execute_matching_job

__all__ = [
    "MATCHING_LOCK",
    "LockManager",
    "SchedulerService",
    "execute_matching_job",
]
