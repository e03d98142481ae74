"""Autocomplete suggestions for candle form fields.

Suggestions are derived from the fields already entered and the trailing
history window. This module is read-only and never raises: missing history
or malformed partial input simply yields fewer (or no) suggestions.
"""

import logging
import math
from typing import Mapping, Optional, Sequence, Union

from candleguard.models import CandleField, CandleRecord, FormInput, Suggestion
from candleguard.security.sanitizer import parse_number

logger = logging.getLogger(__name__)

RANGE_WINDOW = 20
MEDIAN_WINDOW = 10
GAP_WINDOW = 10
TREND_WINDOW = 5
MIN_GAP = 0.00001

PartialForm = Union[FormInput, Mapping[str, str]]


def _fmt(value: float) -> str:
    return f"{value:.5f}"


def _entered(form: PartialForm, field: CandleField) -> Optional[float]:
    """Positive numeric value of an entered field, or None."""
    if isinstance(form, FormInput):
        text = form.get(field)
    else:
        text = form.get(field.value) or ""
    value = parse_number(text)
    if math.isfinite(value) and value > 0:
        return value
    return None


def _average_range(history: Sequence[CandleRecord], window: int = RANGE_WINDOW) -> float:
    recent = history[-window:]
    return sum(c.high - c.low for c in recent) / len(recent)


def _average_volume(history: Sequence[CandleRecord], window: int = RANGE_WINDOW) -> int:
    recent = history[-window:]
    return math.floor(sum(c.volume for c in recent) / len(recent) + 0.5)


def suggest_open(history: Sequence[CandleRecord]) -> list[Suggestion]:
    """Previous close, and previous close plus the average recent gap."""
    if not history:
        return []

    last = history[-1]
    suggestions = [Suggestion(
        value=_fmt(last.close),
        label=f"{_fmt(last.close)} (previous close)",
        confidence=90,
        reason="Open usually equals the previous candle's close",
    )]

    if len(history) >= 3:
        recent = history[-GAP_WINDOW:]
        gaps = [recent[i].open - recent[i - 1].close for i in range(1, len(recent))]
        average_gap = sum(gaps) / len(gaps)
        if abs(average_gap) > MIN_GAP:
            value = last.close + average_gap
            suggestions.append(Suggestion(
                value=_fmt(value),
                label=f"{_fmt(value)} (with average gap)",
                confidence=60,
                reason=f"Average gap: {average_gap:+.5f}",
            ))

    return suggestions


def suggest_high(form: PartialForm, history: Sequence[CandleRecord]) -> list[Suggestion]:
    """Tightest high consistent with the entered fields, and a range estimate."""
    if not history:
        return []

    suggestions = []
    entered = [
        v for v in (
            _entered(form, CandleField.OPEN),
            _entered(form, CandleField.LOW),
            _entered(form, CandleField.CLOSE),
        ) if v is not None
    ]
    min_high = max(entered) if entered else None

    if min_high is not None:
        suggestions.append(Suggestion(
            value=_fmt(min_high),
            label=f"{_fmt(min_high)} (minimum allowed)",
            confidence=80,
            reason="High must be >= Open, Low and Close",
        ))

    low = _entered(form, CandleField.LOW)
    if len(history) >= RANGE_WINDOW and low is not None:
        average_range = _average_range(history)
        value = low + average_range
        if min_high is not None:
            value = max(value, min_high)
        suggestions.append(Suggestion(
            value=_fmt(value),
            label=f"{_fmt(value)} (average range)",
            confidence=70,
            reason=f"Average range: {average_range:.5f}",
        ))

    return suggestions


def suggest_low(form: PartialForm, history: Sequence[CandleRecord]) -> list[Suggestion]:
    """Loosest low consistent with the entered fields, and a range estimate."""
    if not history:
        return []

    suggestions = []
    entered = [
        v for v in (
            _entered(form, CandleField.OPEN),
            _entered(form, CandleField.HIGH),
            _entered(form, CandleField.CLOSE),
        ) if v is not None
    ]
    max_low = min(entered) if entered else None

    if max_low is not None:
        suggestions.append(Suggestion(
            value=_fmt(max_low),
            label=f"{_fmt(max_low)} (maximum allowed)",
            confidence=80,
            reason="Low must be <= Open, High and Close",
        ))

    high = _entered(form, CandleField.HIGH)
    if len(history) >= RANGE_WINDOW and high is not None:
        average_range = _average_range(history)
        value = high - average_range
        if max_low is not None:
            value = min(value, max_low)
        if value > 0:
            suggestions.append(Suggestion(
                value=_fmt(value),
                label=f"{_fmt(value)} (average range)",
                confidence=70,
                reason=f"Average range: {average_range:.5f}",
            ))

    return suggestions


def suggest_close(form: PartialForm, history: Sequence[CandleRecord]) -> list[Suggestion]:
    """Doji, bullish, bearish and trend-continuation closes."""
    if not history:
        return []

    open_ = _entered(form, CandleField.OPEN)
    high = _entered(form, CandleField.HIGH)
    low = _entered(form, CandleField.LOW)
    if open_ is None or high is None or low is None:
        return []

    bullish = open_ + (high - open_) * 0.7
    bearish = open_ - (open_ - low) * 0.7
    suggestions = [
        Suggestion(
            value=_fmt(open_),
            label=f"{_fmt(open_)} (doji)",
            confidence=50,
            reason="Close = Open (neutral candle)",
        ),
        Suggestion(
            value=_fmt(bullish),
            label=f"{_fmt(bullish)} (bullish)",
            confidence=60,
            reason="Close near the high",
        ),
        Suggestion(
            value=_fmt(bearish),
            label=f"{_fmt(bearish)} (bearish)",
            confidence=60,
            reason="Close near the low",
        ),
    ]

    if len(history) >= TREND_WINDOW:
        bullish_count = sum(1 for c in history[-TREND_WINDOW:] if c.is_bullish)
        if bullish_count >= 4:
            value = open_ + (high - open_) * 0.8
            suggestions.append(Suggestion(
                value=_fmt(value),
                label=f"{_fmt(value)} (trend continuation)",
                confidence=75,
                reason="Strong bullish trend",
            ))
        elif bullish_count <= 1:
            value = open_ - (open_ - low) * 0.8
            suggestions.append(Suggestion(
                value=_fmt(value),
                label=f"{_fmt(value)} (trend continuation)",
                confidence=75,
                reason="Strong bearish trend",
            ))

    return suggestions


def suggest_volume(history: Sequence[CandleRecord]) -> list[Suggestion]:
    """Previous, average and median volume."""
    if not history:
        return []

    last = history[-1]
    suggestions = [Suggestion(
        value=str(last.volume),
        label=f"{last.volume:,} (previous volume)",
        confidence=70,
        reason="Volume of the previous candle",
    )]

    if len(history) >= RANGE_WINDOW:
        average = _average_volume(history)
        suggestions.append(Suggestion(
            value=str(average),
            label=f"{average:,} (average volume)",
            confidence=85,
            reason=f"Average volume over {RANGE_WINDOW} candles",
        ))

    if len(history) >= MEDIAN_WINDOW:
        volumes = sorted(c.volume for c in history[-MEDIAN_WINDOW:])
        median = volumes[len(volumes) // 2]
        suggestions.append(Suggestion(
            value=str(median),
            label=f"{median:,} (median volume)",
            confidence=80,
            reason=f"Median volume over {MEDIAN_WINDOW} candles",
        ))

    return suggestions


def suggest(
    field: CandleField,
    form: PartialForm,
    history: Sequence[CandleRecord],
) -> list[Suggestion]:
    """Ranked suggestions for one field.

    Args:
        field: Field being edited.
        form: Fields entered so far (raw text).
        history: Prior candles of the session, oldest first.

    Returns:
        Suggestions by descending confidence; equal confidences keep
        their generation order.
    """
    try:
        field = CandleField(field)
        history = list(history)
        if field is CandleField.OPEN:
            suggestions = suggest_open(history)
        elif field is CandleField.HIGH:
            suggestions = suggest_high(form, history)
        elif field is CandleField.LOW:
            suggestions = suggest_low(form, history)
        elif field is CandleField.CLOSE:
            suggestions = suggest_close(form, history)
        else:
            suggestions = suggest_volume(history)
    except Exception:
        logger.exception("Error getting suggestions for %s", field)
        return []

    return sorted(suggestions, key=lambda s: -s.confidence)


def autofill(history: Sequence[CandleRecord]) -> Optional[FormInput]:
    """Propose a complete, OHLC-consistent form from recent history.

    Returns:
        The proposed form, or None when there is no history.
    """
    history = list(history)
    if not history:
        return None

    try:
        last = history[-1]
        if len(history) >= RANGE_WINDOW:
            average_range = _average_range(history)
            average_volume = _average_volume(history)
        else:
            average_range = last.high - last.low
            average_volume = last.volume

        bullish_count = sum(1 for c in history[-TREND_WINDOW:] if c.is_bullish)
        is_bullish = bullish_count >= 3

        open_ = last.close
        close = open_ + average_range * 0.5 if is_bullish else open_ - average_range * 0.5
        high = max(open_, open_ + average_range * 0.7, close)
        low = min(open_, open_ - average_range * 0.3, close)
        if close <= 0 or low <= 0:
            close = open_
            low = open_

        return FormInput(
            open=_fmt(open_),
            high=_fmt(high),
            low=_fmt(low),
            close=_fmt(close),
            volume=str(average_volume),
        )
    except Exception:
        logger.exception("Error in autofill")
        return None
