"""Result objects returned by the pipeline's public entry points."""

from typing import Optional

from pydantic import BaseModel, Field

from candleguard.errors import ErrorKind
from candleguard.models.candle import CandleRecord
from candleguard.models.validation import BusinessViolation, ValidationOutcome


class SubmitResult(BaseModel):
    """Outcome of submitting one candle form for commit."""

    success: bool = Field(..., description="True when the record was committed")
    outcome: ValidationOutcome = Field(..., description="Structural validation outcome")
    violations: list[BusinessViolation] = Field(default_factory=list)
    record: Optional[CandleRecord] = Field(default=None, description="Committed record")
    error_kind: Optional[ErrorKind] = Field(default=None, description="Failure category")
    message: Optional[str] = Field(default=None, description="Failure message")

    model_config = {"frozen": True}


class HistoryResult(BaseModel):
    """Outcome of an undo or redo request."""

    success: bool = Field(..., description="True when the operation was applied")
    record: Optional[CandleRecord] = Field(default=None, description="Affected record")
    error_kind: Optional[ErrorKind] = Field(default=None, description="Failure category")
    message: Optional[str] = Field(default=None, description="Failure message")

    model_config = {"frozen": True}


class ImportStats(BaseModel):
    """Row counts of an import run."""

    total: int = Field(..., ge=0)
    valid: int = Field(..., ge=0)
    invalid: int = Field(..., ge=0)

    model_config = {"frozen": True}


class ImportResult(BaseModel):
    """Outcome of parsing an import file."""

    success: bool = Field(..., description="True when no row was rejected")
    records: list[CandleRecord] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    stats: Optional[ImportStats] = Field(default=None)

    model_config = {"frozen": True}
