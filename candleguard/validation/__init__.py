"""Structural validation and contextual business rules."""

from candleguard.validation.business_rules import (
    BusinessRuleAnalyzer,
    check_price_gap,
    check_round_number,
    check_suspicious_pattern,
    check_trend_continuation,
    check_volatility,
    check_volume,
)
from candleguard.validation.structural import FIELD_RULES, FieldRule, StructuralValidator, spread_percent

__all__ = [
    "FIELD_RULES",
    "BusinessRuleAnalyzer",
    "FieldRule",
    "StructuralValidator",
    "check_price_gap",
    "check_round_number",
    "check_suspicious_pattern",
    "check_trend_continuation",
    "check_volatility",
    "check_volume",
    "spread_percent",
]
