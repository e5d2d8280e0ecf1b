"""Retry cadence, tick scheduling and failure classification."""

from vmclaim.execution.failure_classifier import Classification, FailureKind, classify
from vmclaim.execution.retry_policy import (
    MIN_FLOOR_SECONDS,
    RetryPolicy,
    compute_delay,
    compute_startup_delay,
)
from vmclaim.execution.scheduler import RetryScheduler

__all__ = [
    "Classification",
    "FailureKind",
    "classify",
    "MIN_FLOOR_SECONDS",
    "RetryPolicy",
    "compute_delay",
    "compute_startup_delay",
    "RetryScheduler",
]
