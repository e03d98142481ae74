"""Validation result models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class WarningSeverity(str, Enum):
    """Severity of a non-blocking structural warning."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ViolationSeverity(str, Enum):
    """Severity of a business-rule advisory."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class FieldError(BaseModel):
    """A blocking validation failure attached to one field."""

    field: str = Field(..., description="Field the error is reported against")
    message: str = Field(..., description="Human-readable message")
    code: str = Field(..., description="Machine-readable error code")

    model_config = {"frozen": True}


class FieldWarning(BaseModel):
    """A non-blocking observation attached to one field."""

    field: str = Field(..., description="Field the warning is reported against")
    message: str = Field(..., description="Human-readable message")
    severity: WarningSeverity = Field(..., description="Warning severity")

    model_config = {"frozen": True}


class ValidationOutcome(BaseModel):
    """Result of validating one candle form."""

    is_valid: bool = Field(..., description="True when there are no errors")
    errors: list[FieldError] = Field(default_factory=list)
    warnings: list[FieldWarning] = Field(default_factory=list)

    model_config = {"frozen": True}

    @classmethod
    def from_issues(
        cls, errors: list[FieldError], warnings: Optional[list[FieldWarning]] = None
    ) -> "ValidationOutcome":
        return cls(is_valid=not errors, errors=errors, warnings=warnings or [])

    def errors_for(self, field: str) -> list[FieldError]:
        """All errors reported against a field."""
        return [e for e in self.errors if e.field == field]

    def error_map(self) -> dict[str, str]:
        """Map of field name to its first error message."""
        result: dict[str, str] = {}
        for error in self.errors:
            result.setdefault(error.field, error.message)
        return result


class BusinessViolation(BaseModel):
    """An advisory produced by a contextual business rule."""

    rule: str = Field(..., description="Rule identifier, e.g. 'PRICE_GAP'")
    severity: ViolationSeverity = Field(..., description="Advisory severity")
    message: str = Field(..., description="Human-readable message")
    suggestion: Optional[str] = Field(default=None, description="Remediation hint")

    model_config = {"frozen": True}


class Suggestion(BaseModel):
    """An autocomplete candidate for one form field."""

    value: str = Field(..., description="Text ready to put in the field")
    label: str = Field(..., description="Display label")
    confidence: int = Field(..., ge=0, le=100, description="Confidence score")
    reason: str = Field(..., description="Why this value is suggested")

    model_config = {"frozen": True}
