"""Matching engine and grant lifecycle service."""

from .criteria import ClientProfile, EligibilityResult, evaluate_eligibility, extract_zip
from .engine import MatchingEngine, MatchingStats, run_matching
from .grants import GrantService, GrantValidationError, NotFoundError
from .notify import GrantNotice, GrantNoticeKind, GrantNotifier, LoggingNotifier

__all__ = [
    "ClientProfile",
    "EligibilityResult",
    "evaluate_eligibility",
    "extract_zip",
    "MatchingEngine",
    "MatchingStats",
    "run_matching",
    "GrantService",
    "GrantValidationError",
    "NotFoundError",
    "GrantNotice",
    "GrantNoticeKind",
    "GrantNotifier",
    "LoggingNotifier",
]
