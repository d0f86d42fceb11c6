"""Error taxonomy for the detection pipeline.

Every error carries a ``retryable`` flag. The job queue only looks at that
flag when deciding between a re-enqueue and an immediate failure, so clients
never retry on their own.
"""

from typing import Optional


class DetectionError(Exception):
    """Base class for all pipeline errors."""

    retryable: bool = False

    def __init__(self, message: str, *, retryable: Optional[bool] = None):
        super().__init__(message)
        self.message = message
        if retryable is not None:
            self.retryable = retryable


# Validation (rejected at submission, never enqueued)

class InvalidInput(DetectionError):
    pass


class OwnerNotFound(DetectionError):
    pass


# Configuration

class ConfigurationError(DetectionError):
    """A required credential or endpoint is missing. Operator-actionable."""


# Transient upstream failures

class InferenceTimeoutError(DetectionError):
    retryable = True


class UpstreamError(DetectionError):
    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = None, *, retryable: Optional[bool] = None):
        if retryable is None and status_code is not None:
            retryable = status_code >= 500 or status_code in (408, 429)
        super().__init__(message, retryable=retryable)
        self.status_code = status_code


class StoreUnavailable(DetectionError):
    retryable = True


# Persistence

class PersistenceError(DetectionError):
    pass


class RecordStoreUnavailable(PersistenceError):
    retryable = True


# Job queue

class JobNotFound(DetectionError):
    pass


class InvalidTransition(DetectionError):
    pass
