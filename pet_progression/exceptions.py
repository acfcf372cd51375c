"""
Standardized exception hierarchy for the progression engine
Provides rich context, consistent logging, and caller-friendly error messages
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import asyncio
import logging

import httpx

logger = logging.getLogger(__name__)


class ProgressionError(Exception):
    """
    Base exception for all progression engine errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - Caller-friendly messages
    - Structured context
    - Automatic logging

    Example:
        raise ProgressionError(
            message="Failed to persist streak state",
            operation="record_daily_progress",
            context={"date": "2024-01-15"}
        )
    """

    def __init__(
        self,
        message: str,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "Progress could not be updated. Please try again."
        self.timestamp = datetime.now(timezone.utc)

        # Auto-log on creation
        self._log_error()

    def _log_error(self) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,  # Avoid conflict with logging's 'message' field
            "request_id": self.request_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.error(f"{self.__class__.__name__}: {self.message}", extra=log_data, exc_info=self.cause)
        else:
            logger.error(f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Validation Errors (Caller Input)
# ==========================================

class ValidationError(ProgressionError):
    """
    Raised when caller input fails validation

    Examples:
    - Negative progress value
    - Malformed YYYY-MM-DD date key

    Example:
        raise ValidationError(
            message="Progress must be non-negative",
            field="current",
            value=-5
        )
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            user_message=f"Invalid {field}: {message}" if field else message,
            context={"field": field, "value": value},
            **kwargs
        )


# ==========================================
# Not-Found Errors (Catalog / Caller Mismatch)
# ==========================================

class RecordNotFoundError(ProgressionError):
    """Referenced catalog or state record does not exist"""

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            message=message,
            user_message=f"{record_type or 'Record'} not found.",
            context={"record_type": record_type, "record_id": record_id},
            **kwargs
        )


class AchievementNotFoundError(RecordNotFoundError):
    """Achievement id is not in the catalog"""

    def __init__(self, achievement_id: str, **kwargs):
        super().__init__(
            message=f"Achievement not found: {achievement_id}",
            record_type="Achievement",
            record_id=achievement_id,
            **kwargs
        )


class ChallengeNotFoundError(RecordNotFoundError):
    """Challenge id is not among the active challenges"""

    def __init__(self, challenge_id: str, **kwargs):
        super().__init__(
            message=f"Challenge not found: {challenge_id}",
            record_type="Challenge",
            record_id=challenge_id,
            **kwargs
        )


class CosmeticNotFoundError(RecordNotFoundError):
    """Cosmetic id is not in the catalog"""

    def __init__(self, cosmetic_id: str, **kwargs):
        super().__init__(
            message=f"Cosmetic not found: {cosmetic_id}",
            record_type="Cosmetic",
            record_id=cosmetic_id,
            **kwargs
        )


# ==========================================
# Storage Errors
# ==========================================

class StorageError(ProgressionError):
    """
    Base class for key-value store failures
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        **kwargs
    ):
        self.key = key
        kwargs.setdefault("context", {"key": key})
        super().__init__(
            message=message,
            user_message="Your progress could not be saved right now. It will be retried.",
            **kwargs
        )


class StoreReadError(StorageError):
    """Reading a blob from the store failed"""
    pass


class StoreWriteError(StorageError):
    """Writing a blob to the store failed (transient, retryable)"""
    pass


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(ProgressionError):
    """System configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            user_message="The system is not properly configured. Please contact support.",
            context={"config_key": config_key},
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

def wrap_storage_exception(
    error: Exception,
    operation: str,
    key: Optional[str] = None,
) -> StorageError:
    """
    Wrap store-level exceptions (httpx, OS, timeouts) into our exception hierarchy

    Args:
        error: Original exception
        operation: What operation was being performed ('get', 'set', 'remove')
        key: Store key involved

    Returns:
        StoreReadError for reads, StoreWriteError for writes and removals

    Example:
        try:
            await client.put(url, json=payload)
        except httpx.HTTPError as e:
            raise wrap_storage_exception(e, operation="set", key=key)
    """
    if isinstance(error, StorageError):
        return error

    error_class = StoreReadError if operation == "get" else StoreWriteError

    if isinstance(error, httpx.HTTPStatusError):
        detail = f"store returned HTTP {error.response.status_code}"
    elif isinstance(error, httpx.TimeoutException) or isinstance(error, asyncio.TimeoutError):
        detail = "store request timed out"
    elif isinstance(error, httpx.HTTPError):
        detail = f"store transport error: {error}"
    elif isinstance(error, OSError):
        detail = f"store I/O error: {error}"
    else:
        detail = str(error)

    return error_class(
        message=f"Store {operation} failed for key {key!r}: {detail}",
        key=key,
        operation=operation,
        cause=error
    )
