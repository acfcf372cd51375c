"""Prometheus metrics for the progression engine

Exposes counters for store operations, write retries, state recoveries and
unlocks. Recording a metric never raises into the caller.
"""

import logging
from prometheus_client import Counter

logger = logging.getLogger(__name__)

# Store operations counter
# Labels: operation (get/set/remove), status (success/failure)
store_operations_total = Counter(
    'progression_store_operations_total',
    'Total number of key-value store operations',
    ['operation', 'status']
)

# Write retry attempts counter
# Labels: operation (function name being retried)
store_retries_total = Counter(
    'progression_store_retries_total',
    'Total number of store write retry attempts',
    ['operation']
)

# Persisted-state recoveries counter
# Labels: subsystem (achievements/streaks/challenges/cosmetics), outcome (replayed/reset)
state_recoveries_total = Counter(
    'progression_state_recoveries_total',
    'Total number of corrupted state recoveries',
    ['subsystem', 'outcome']
)

# Unlocks counter
# Labels: kind (achievement/cosmetic/challenge)
unlocks_total = Counter(
    'progression_unlocks_total',
    'Total number of new unlocks and completions',
    ['kind']
)


def record_store_operation(operation: str, success: bool) -> None:
    """
    Record a store operation.

    Args:
        operation: get, set or remove
        success: Whether the operation succeeded
    """
    try:
        status = 'success' if success else 'failure'
        store_operations_total.labels(operation=operation, status=status).inc()
        logger.debug(f"[METRICS] Store {operation}: {status}")
    except Exception as e:
        logger.error(f"Failed to record store operation: {e}")


def record_retry(operation: str) -> None:
    """
    Record retry attempt.

    Args:
        operation: Name of the function being retried
    """
    try:
        store_retries_total.labels(operation=operation).inc()
        logger.debug(f"[METRICS] Retry attempt for {operation}")
    except Exception as e:
        logger.error(f"Failed to record retry: {e}")


def record_state_recovery(subsystem: str, outcome: str) -> None:
    """
    Record recovery from a corrupted blob.

    Args:
        subsystem: achievements, streaks, challenges or cosmetics
        outcome: replayed (rebuilt from history) or reset (default state)
    """
    try:
        state_recoveries_total.labels(subsystem=subsystem, outcome=outcome).inc()
        logger.debug(f"[METRICS] State recovery {subsystem}: {outcome}")
    except Exception as e:
        logger.error(f"Failed to record state recovery: {e}")


def record_unlock(kind: str) -> None:
    """
    Record a new unlock.

    Args:
        kind: achievement, cosmetic or challenge
    """
    try:
        unlocks_total.labels(kind=kind).inc()
        logger.debug(f"[METRICS] Unlock: {kind}")
    except Exception as e:
        logger.error(f"Failed to record unlock: {e}")
