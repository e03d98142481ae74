"""Property-based tests for the contextual business rules.

**Feature: candle-input-pipeline**
"""

from datetime import datetime, timedelta

from hypothesis import given, settings
from hypothesis import strategies as st

from candleguard.config import PipelineConfig
from candleguard.models import CandleRecord, ViolationSeverity
from candleguard.validation import (
    BusinessRuleAnalyzer,
    check_price_gap,
    check_round_number,
    check_suspicious_pattern,
    check_trend_continuation,
    check_volatility,
    check_volume,
)

START = datetime(2024, 1, 1, 9, 0)


def make_candle(
    index: int = 0,
    open_: float = 1.0850,
    high: float = 1.0873,
    low: float = 1.0841,
    close: float = 1.0863,
    volume: int = 1_000_000,
) -> CandleRecord:
    return CandleRecord(
        session_id="session-1",
        candle_index=index,
        timestamp=START + timedelta(minutes=5 * index),
        open=open_,
        high=high,
        low=low,
        close=close,
        volume=volume,
    )


def flat_history(count: int, volume: int = 1_000_000) -> list[CandleRecord]:
    """Alternating bullish/bearish candles with a steady range."""
    history = []
    for i in range(count):
        if i % 2 == 0:
            history.append(make_candle(i, 1.0850, 1.0873, 1.0841, 1.0863, volume))
        else:
            history.append(make_candle(i, 1.0863, 1.0871, 1.0843, 1.0851, volume))
    return history


class TestAbnormalVolumeScenario:
    """
    **Feature: candle-input-pipeline, Property 6: Abnormal Volume Detection**

    *For* 20 prior candles averaging 1,000,000 and a candidate of
    6,000,000, exactly one ABNORMAL_VOLUME warning citing about 6x is emitted.
    """

    def test_six_times_average(self):
        history = flat_history(20)
        candidate = make_candle(20, 1.0851, 1.0873, 1.0841, 1.0863, volume=6_000_000)

        violations = BusinessRuleAnalyzer().analyze(candidate, history)

        volume_flags = [v for v in violations if v.rule == "ABNORMAL_VOLUME"]
        assert len(volume_flags) == 1
        assert volume_flags[0].severity == ViolationSeverity.WARNING
        assert "6.0x" in volume_flags[0].message

    def test_low_volume_is_info(self):
        violation = check_volume(make_candle(volume=50_000), flat_history(20))

        assert violation.rule == "LOW_VOLUME"
        assert violation.severity == ViolationSeverity.INFO

    def test_needs_full_window(self):
        assert check_volume(make_candle(volume=6_000_000), flat_history(19)) is None

    @given(volume=st.integers(min_value=100_001, max_value=5_000_000))
    @settings(max_examples=50)
    def test_normal_volume_not_flagged(self, volume: int):
        """*For any* volume between 0.1x and 5x the average, no volume flag is raised."""
        assert check_volume(make_candle(volume=volume), flat_history(20)) is None


class TestPriceGap:
    """Tests for the gap between the previous close and the new open."""

    def test_no_previous(self):
        assert check_price_gap(make_candle(), None) is None

    def test_small_gap_ignored(self):
        previous = make_candle(close=1.0850)
        assert check_price_gap(make_candle(open_=1.0851, close=1.0863), previous) is None

    def test_warning_above_one_percent(self):
        previous = make_candle(open_=1.0, high=1.0, low=1.0, close=1.0)
        candidate = make_candle(open_=1.02, high=1.03, low=1.01, close=1.02)

        violation = check_price_gap(candidate, previous)

        assert violation.rule == "PRICE_GAP"
        assert violation.severity == ViolationSeverity.WARNING

    def test_error_above_three_percent(self):
        previous = make_candle(open_=1.0, high=1.0, low=1.0, close=1.0)
        candidate = make_candle(open_=1.05, high=1.06, low=1.04, close=1.05)

        assert check_price_gap(candidate, previous).severity == ViolationSeverity.ERROR


class TestVolatility:
    """Tests for abnormal candle ranges."""

    def test_wide_range_flagged(self):
        history = flat_history(20)  # ranges of 0.0032 and 0.0028
        candidate = make_candle(20, 1.0850, 1.1000, 1.0800, 1.0900)

        violation = check_volatility(candidate, history)

        assert violation.rule == "ABNORMAL_VOLATILITY"

    def test_typical_range_not_flagged(self):
        assert check_volatility(make_candle(20), flat_history(20)) is None

    def test_needs_full_window(self):
        candidate = make_candle(20, 1.0850, 1.1000, 1.0800, 1.0900)
        assert check_volatility(candidate, flat_history(10)) is None


class TestPatterns:
    """Tests for flat, wick, round-number and trend rules."""

    def test_flat_candle(self):
        candle = make_candle(open_=1.5, high=1.5, low=1.5, close=1.5)
        assert check_suspicious_pattern(candle).rule == "FLAT_CANDLE"

    def test_extreme_wick(self):
        candle = make_candle(open_=1.0850, high=1.0950, low=1.0750, close=1.0851)
        assert check_suspicious_pattern(candle).rule == "EXTREME_WICK"

    def test_normal_candle_has_no_pattern(self):
        assert check_suspicious_pattern(make_candle()) is None

    def test_round_number(self):
        candle = make_candle(open_=1.0850, high=1.0920, low=1.0840, close=1.0900)
        assert check_round_number(candle).rule == "ROUND_NUMBER"

    def test_not_round_number(self):
        assert check_round_number(make_candle(close=1.0863)) is None

    def test_bullish_trend(self):
        history = [make_candle(i, 1.0850, 1.0873, 1.0841, 1.0863) for i in range(5)]

        violation = check_trend_continuation(make_candle(5), history)

        assert violation.rule == "STRONG_TREND"
        assert "bullish" in violation.message

    def test_bearish_trend(self):
        history = [make_candle(i, 1.0863, 1.0871, 1.0843, 1.0851) for i in range(5)]
        assert "bearish" in check_trend_continuation(make_candle(5), history).message

    def test_mixed_history_has_no_trend(self):
        assert check_trend_continuation(make_candle(5), flat_history(5)) is None

    def test_needs_five_candles(self):
        history = [make_candle(i) for i in range(4)]
        assert check_trend_continuation(make_candle(4), history) is None


class TestAnalyzer:
    """Tests for running every rule together."""

    def test_no_history_no_contextual_flags(self):
        violations = BusinessRuleAnalyzer().analyze(make_candle(), [])
        assert violations == []

    def test_thresholds_come_from_config(self):
        config = PipelineConfig(volume_high_multiplier=2.0)
        candidate = make_candle(20, 1.0851, 1.0873, 1.0841, 1.0863, volume=3_000_000)

        violations = BusinessRuleAnalyzer(config).analyze(candidate, flat_history(20))

        assert "ABNORMAL_VOLUME" in [v.rule for v in violations]

    @given(
        volume=st.integers(min_value=1, max_value=50_000_000),
        count=st.integers(min_value=0, max_value=30),
    )
    @settings(max_examples=50)
    def test_never_raises(self, volume: int, count: int):
        """*For any* candidate and history length, analysis returns a list."""
        violations = BusinessRuleAnalyzer().analyze(make_candle(volume=volume), flat_history(count))
        assert isinstance(violations, list)

    def test_unusable_history_returns_no_advisories(self):
        assert BusinessRuleAnalyzer().analyze(make_candle(), None) == []
