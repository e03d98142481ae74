"""Structural validation of a single candle form.

Checks each field on its own (required, numeric, positive, bounded,
integral volume) and then, when every field passes, the OHLC relations
between them. Structural validation never looks at prior candles.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from candleguard.config import PipelineConfig
from candleguard.errors import ErrorCode
from candleguard.models import (
    CandleField,
    FieldError,
    FieldWarning,
    FormInput,
    ValidationOutcome,
    WarningSeverity,
)
from candleguard.security.sanitizer import parse_number

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldRule:
    """Per-field rule set."""

    label: str
    integral: bool = False


FIELD_RULES: dict[CandleField, FieldRule] = {
    CandleField.OPEN: FieldRule(label="Open price"),
    CandleField.HIGH: FieldRule(label="High price"),
    CandleField.LOW: FieldRule(label="Low price"),
    CandleField.CLOSE: FieldRule(label="Close price"),
    CandleField.VOLUME: FieldRule(label="Volume", integral=True),
}


def spread_percent(high: float, low: float) -> float:
    """Spread as a percentage of the mid price."""
    mid = (high + low) / 2
    if mid <= 0:
        return 0.0
    return (high - low) / mid * 100


class StructuralValidator:
    """Validates type, range and OHLC invariants of one candle form."""

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()

    def upper_bound(self, field: CandleField) -> float:
        """Exclusive upper bound of a field."""
        if field is CandleField.VOLUME:
            return self.config.max_volume
        return self.config.max_price

    def validate_field(self, field: CandleField, value: str) -> Optional[FieldError]:
        """Validate one named field in isolation.

        Args:
            field: Field to validate.
            value: Field text.

        Returns:
            The first rule failure for the field, or None if it passes.
        """
        field = CandleField(field)
        rule = FIELD_RULES[field]
        name = field.value

        if not value:
            return FieldError(field=name, message=f"{rule.label} is required", code=ErrorCode.REQUIRED.value)

        number = parse_number(value)
        if not math.isfinite(number):
            return FieldError(
                field=name, message=f"{rule.label} must be a number", code=ErrorCode.NOT_A_NUMBER.value
            )
        if number <= 0:
            return FieldError(
                field=name, message=f"{rule.label} must be positive", code=ErrorCode.NOT_POSITIVE.value
            )

        bound = self.upper_bound(field)
        if number >= bound:
            return FieldError(
                field=name,
                message=f"{rule.label} is too large (must be below {bound:,.0f})",
                code=ErrorCode.TOO_LARGE.value,
            )
        if rule.integral and not number.is_integer():
            return FieldError(
                field=name, message=f"{rule.label} must be a whole number", code=ErrorCode.NOT_INTEGER.value
            )
        return None

    def validate(self, fields: FormInput) -> ValidationOutcome:
        """Validate a complete form.

        Per-field rules run first. Cross-field rules run only when every
        field passes, and all of them are evaluated so that every violated
        field is reported. A field carries at most one error, from the first
        rule in order that it violates; later rules on the same field are still
        evaluated but their errors are dropped.

        Args:
            fields: Trusted (sanitized and screened) form fields.

        Returns:
            The validation outcome. Warnings are only computed for a valid form.
        """
        try:
            errors = [
                error
                for error in (self.validate_field(field, fields.get(field)) for field in CandleField)
                if error is not None
            ]
            if errors:
                return ValidationOutcome.from_issues(errors)

            open_ = parse_number(fields.open)
            high = parse_number(fields.high)
            low = parse_number(fields.low)
            close = parse_number(fields.close)
            volume = parse_number(fields.volume)

            errors = _first_per_field(self._cross_field_errors(open_, high, low, close))
            if errors:
                return ValidationOutcome.from_issues(errors)

            return ValidationOutcome.from_issues([], self._warnings(high, low, volume))
        except Exception:
            logger.exception("Critical error during structural validation")
            return ValidationOutcome.from_issues([
                FieldError(
                    field="unknown",
                    message="Critical validation error",
                    code=ErrorCode.CRITICAL_ERROR.value,
                )
            ])

    def _cross_field_errors(
        self, open_: float, high: float, low: float, close: float
    ) -> list[FieldError]:
        errors = []

        if high < max(open_, close):
            errors.append(FieldError(
                field=CandleField.HIGH.value,
                message="High must be >= max(Open, Close)",
                code=ErrorCode.HIGH_BELOW_BODY.value,
            ))

        if low > min(open_, close):
            errors.append(FieldError(
                field=CandleField.LOW.value,
                message="Low must be <= min(Open, Close)",
                code=ErrorCode.LOW_ABOVE_BODY.value,
            ))

        if high < low:
            errors.append(FieldError(
                field=CandleField.HIGH.value,
                message="High must be >= Low",
                code=ErrorCode.HIGH_BELOW_LOW.value,
            ))

        # Catches fat-fingered magnitude errors
        spread = spread_percent(high, low)
        if spread > self.config.spread_error_percent:
            errors.append(FieldError(
                field=CandleField.HIGH.value,
                message=(
                    f"Candle spread ({spread:.2f}%) exceeds "
                    f"{self.config.spread_error_percent:g}% - check the data"
                ),
                code=ErrorCode.SPREAD_TOO_WIDE.value,
            ))

        return errors

    def _warnings(self, high: float, low: float, volume: float) -> list[FieldWarning]:
        warnings = []
        spread = spread_percent(high, low)

        if spread < self.config.min_spread_percent:
            warnings.append(FieldWarning(
                field="spread",
                message="Very small spread - possible duplicate or no-movement candle",
                severity=WarningSeverity.MEDIUM,
            ))

        if volume < self.config.low_volume_threshold:
            warnings.append(FieldWarning(
                field=CandleField.VOLUME.value,
                message="Low trading volume - check the value",
                severity=WarningSeverity.LOW,
            ))

        if spread > self.config.spread_warning_percent:
            warnings.append(FieldWarning(
                field="spread",
                message=f"Large spread ({spread:.2f}%)",
                severity=WarningSeverity.HIGH,
            ))

        return warnings


def _first_per_field(errors: list[FieldError]) -> list[FieldError]:
    seen: set[str] = set()
    result = []
    for error in errors:
        if error.field not in seen:
            seen.add(error.field)
            result.append(error)
    return result
