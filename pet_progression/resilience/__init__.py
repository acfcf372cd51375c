"""Resilience patterns for persistence

This module provides retry logic with exponential backoff and metrics
collection so a storage hiccup never crashes the progression pipeline.
"""

from pet_progression.resilience.retry import retry_with_backoff, is_retryable_error
from pet_progression.resilience.metrics import (
    record_store_operation,
    record_retry,
    record_state_recovery,
    record_unlock,
)

__all__ = [
    # Retry
    "retry_with_backoff",
    "is_retryable_error",
    # Metrics
    "record_store_operation",
    "record_retry",
    "record_state_recovery",
    "record_unlock",
]
