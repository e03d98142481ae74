"""Contextual business rules for candle input.

Each check compares a candidate candle with the trailing history window and
returns an advisory or None. Advisories never block a commit.
"""

import logging
import math
from typing import Optional, Sequence

from candleguard.config import PipelineConfig
from candleguard.models import BusinessViolation, CandleRecord, ViolationSeverity

logger = logging.getLogger(__name__)

TREND_WINDOW = 5


def check_price_gap(
    candle: CandleRecord,
    previous: Optional[CandleRecord],
    warning_percent: float = 1.0,
    error_percent: float = 3.0,
) -> Optional[BusinessViolation]:
    """Flag a large gap between the previous close and this open."""
    if previous is None or previous.close <= 0:
        return None

    gap_percent = abs(candle.open - previous.close) / previous.close * 100
    if gap_percent <= warning_percent:
        return None

    return BusinessViolation(
        rule="PRICE_GAP",
        severity=ViolationSeverity.ERROR if gap_percent > error_percent else ViolationSeverity.WARNING,
        message=f"Large price gap: {gap_percent:.2f}%",
        suggestion="Check the data or whether the market really gapped",
    )


def check_volatility(
    candle: CandleRecord,
    history: Sequence[CandleRecord],
    multiplier: float = 3.0,
    window: int = 20,
) -> Optional[BusinessViolation]:
    """Flag a range far wider than the recent average range."""
    if len(history) < window or candle.open <= 0:
        return None

    range_percent = (candle.high - candle.low) / candle.open * 100
    average_range = sum(c.high - c.low for c in history[-window:]) / window
    average_percent = average_range / candle.open * 100

    if range_percent > average_percent * multiplier:
        return BusinessViolation(
            rule="ABNORMAL_VOLATILITY",
            severity=ViolationSeverity.WARNING,
            message=(
                f"Abnormal volatility: {range_percent:.2f}% "
                f"(typical: {average_percent:.2f}%)"
            ),
            suggestion="Possibly news or a major market event",
        )
    return None


def check_volume(
    candle: CandleRecord,
    history: Sequence[CandleRecord],
    high_multiplier: float = 5.0,
    low_multiplier: float = 0.1,
    window: int = 20,
) -> Optional[BusinessViolation]:
    """Flag volume far above or below the recent average."""
    if len(history) < window or candle.volume <= 0:
        return None

    average_volume = sum(c.volume for c in history[-window:]) / window
    if average_volume <= 0:
        return None

    ratio = candle.volume / average_volume
    if ratio > high_multiplier:
        return BusinessViolation(
            rule="ABNORMAL_VOLUME",
            severity=ViolationSeverity.WARNING,
            message=f"Abnormal volume: {ratio:.1f}x the average",
            suggestion="Check the data or whether a major event occurred",
        )
    if ratio < low_multiplier:
        return BusinessViolation(
            rule="LOW_VOLUME",
            severity=ViolationSeverity.INFO,
            message=f"Low volume: {ratio * 100:.0f}% of the average",
            suggestion="Liquidity may be thin at this time",
        )
    return None


def check_suspicious_pattern(candle: CandleRecord) -> Optional[BusinessViolation]:
    """Flag flat candles and candles that are nearly all wick."""
    if candle.open == candle.high == candle.low == candle.close:
        return BusinessViolation(
            rule="FLAT_CANDLE",
            severity=ViolationSeverity.WARNING,
            message="All prices are identical",
            suggestion="Check the data",
        )

    total_range = candle.high - candle.low
    if total_range > 0 and candle.body / total_range < 0.01:
        upper_wick = candle.high - max(candle.open, candle.close)
        lower_wick = min(candle.open, candle.close) - candle.low
        if (upper_wick + lower_wick) / total_range > 0.95:
            return BusinessViolation(
                rule="EXTREME_WICK",
                severity=ViolationSeverity.INFO,
                message="Extremely long candle wicks",
                suggestion="Possible reversal pattern or a data anomaly",
            )
    return None


def check_round_number(candle: CandleRecord) -> Optional[BusinessViolation]:
    """Note a close sitting on a two-decimal round level."""
    # Half-up rounding to 2 decimals
    rounded = math.floor(candle.close * 100 + 0.5) / 100
    if abs(candle.close - rounded) < 0.0001:
        return BusinessViolation(
            rule="ROUND_NUMBER",
            severity=ViolationSeverity.INFO,
            message=f"Close is at a round level: {candle.close:.4f}",
            suggestion="This level may act as support or resistance",
        )
    return None


def check_trend_continuation(
    candle: CandleRecord, history: Sequence[CandleRecord]
) -> Optional[BusinessViolation]:
    """Note when the last five candles all moved in the same direction."""
    if len(history) < TREND_WINDOW:
        return None

    recent = history[-TREND_WINDOW:]
    if all(c.is_bullish for c in recent):
        direction = "bullish"
    elif all(c.is_bearish for c in recent):
        direction = "bearish"
    else:
        return None

    return BusinessViolation(
        rule="STRONG_TREND",
        severity=ViolationSeverity.INFO,
        message=f"Strong {direction} trend",
        suggestion="The trend may continue or a correction may follow",
    )


class BusinessRuleAnalyzer:
    """Runs every business rule against a candidate and its history."""

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()

    def analyze(
        self, candle: CandleRecord, history: Sequence[CandleRecord]
    ) -> list[BusinessViolation]:
        """Evaluate all rules.

        Args:
            candle: Structurally valid candidate.
            history: Prior candles of the session, oldest first.

        Returns:
            Advisories in rule order. Empty if a rule faults unexpectedly.
        """
        cfg = self.config
        try:
            history = list(history)
            previous = history[-1] if history else None
            checks = [
                check_price_gap(candle, previous, cfg.gap_warning_percent, cfg.gap_error_percent),
                check_volatility(candle, history, cfg.volatility_multiplier, cfg.analysis_window),
                check_volume(
                    candle, history,
                    cfg.volume_high_multiplier, cfg.volume_low_multiplier, cfg.analysis_window,
                ),
                check_suspicious_pattern(candle),
                check_round_number(candle),
                check_trend_continuation(candle, history),
            ]
        except Exception:
            logger.exception("Error in business rules analysis")
            return []

        violations = [check for check in checks if check is not None]
        logger.debug(
            "Business rules: %d advisories (errors=%s, warnings=%s)",
            len(violations),
            any(v.severity is ViolationSeverity.ERROR for v in violations),
            any(v.severity is ViolationSeverity.WARNING for v in violations),
        )
        return violations
