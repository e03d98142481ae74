"""Data models for CandleGuard."""

from candleguard.models.candle import (
    PRICE_FIELDS,
    CandleField,
    CandleRecord,
    FormInput,
    PredictionDirection,
    Predictions,
    format_price,
)
from candleguard.models.history import HistoryEntry, HistoryOperation
from candleguard.models.results import HistoryResult, ImportResult, ImportStats, SubmitResult
from candleguard.models.session import TIMEFRAMES, TradingSession
from candleguard.models.validation import (
    BusinessViolation,
    FieldError,
    FieldWarning,
    Suggestion,
    ValidationOutcome,
    ViolationSeverity,
    WarningSeverity,
)

__all__ = [
    "PRICE_FIELDS",
    "TIMEFRAMES",
    "BusinessViolation",
    "CandleField",
    "CandleRecord",
    "FieldError",
    "FieldWarning",
    "FormInput",
    "HistoryEntry",
    "HistoryOperation",
    "HistoryResult",
    "ImportResult",
    "ImportStats",
    "PredictionDirection",
    "Predictions",
    "SubmitResult",
    "Suggestion",
    "TradingSession",
    "ValidationOutcome",
    "ViolationSeverity",
    "WarningSeverity",
    "format_price",
]
