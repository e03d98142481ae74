"""Error taxonomy for the candle input pipeline.

Failures crossing the pipeline's public entry points are reported as data
(result objects carrying an ``ErrorKind``); the exception classes here are
only raised between internal components.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Category of a pipeline failure, as reported to the caller."""

    REJECTED_INPUT = "REJECTED_INPUT"
    SECURITY_REJECTED = "SECURITY_REJECTED"
    STRUCTURAL_INVALID = "STRUCTURAL_INVALID"
    BUSINESS_ADVISORY = "BUSINESS_ADVISORY"
    COMMIT_FAILED = "COMMIT_FAILED"
    NO_OPERATION = "NO_OPERATION"
    CRITICAL_ERROR = "CRITICAL_ERROR"


class ErrorCode(str, Enum):
    """Machine-readable code attached to a field error."""

    REQUIRED = "REQUIRED"
    NOT_A_NUMBER = "NOT_A_NUMBER"
    NOT_POSITIVE = "NOT_POSITIVE"
    TOO_LARGE = "TOO_LARGE"
    NOT_INTEGER = "NOT_INTEGER"
    HIGH_BELOW_BODY = "HIGH_BELOW_BODY"
    LOW_ABOVE_BODY = "LOW_ABOVE_BODY"
    HIGH_BELOW_LOW = "HIGH_BELOW_LOW"
    SPREAD_TOO_WIDE = "SPREAD_TOO_WIDE"
    INVALID_RECORD = "INVALID_RECORD"
    SECURITY_ERROR = "SECURITY_ERROR"
    CRITICAL_ERROR = "CRITICAL_ERROR"


class CandleGuardError(Exception):
    """Base class for internal pipeline errors."""

    kind: ErrorKind = ErrorKind.CRITICAL_ERROR


class NoOperation(CandleGuardError):
    """Raised when undo or redo is requested with an empty stack."""

    kind = ErrorKind.NO_OPERATION


class CommitFailed(CandleGuardError):
    """Raised when the persistence callback reports a failure."""

    kind = ErrorKind.COMMIT_FAILED
