"""Fetch utilities - retries for outbound HTTP calls."""

from .retries import RetryConfig, call_with_retry

__all__ = [
    "RetryConfig",
    "call_with_retry",
]
