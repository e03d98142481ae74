"""Property-based tests for threat screening.

**Feature: candle-input-pipeline**
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from candleguard.models import FormInput
from candleguard.security import RateLimiter, ThreatScreener, make_identifier, sanitize_form
from candleguard.security.screener import MAX_SAFE_INTEGER


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


VALID_FORM = FormInput(open="1.0850", high="1.0870", low="1.0840", close="1.0860", volume="1000000")


@pytest.fixture
def clock():
    return FakeClock()


class TestRateLimitBoundary:
    """
    **Feature: candle-input-pipeline, Property 3: Rate-Limit Boundary**

    *For any* identifier, the 100th call within a window passes, the 101st
    fails, and the first call after the window expires starts a new count.
    """

    def test_hundredth_passes_hundred_first_fails(self, clock: FakeClock):
        limiter = RateLimiter(window_seconds=60, max_requests=100, clock=clock)

        for _ in range(99):
            assert limiter.check("user").passed
        assert limiter.check("user").passed  # 100th
        assert limiter.count("user") == 100

        rejected = limiter.check("user")  # 101st
        assert not rejected.passed
        assert rejected.threat == "RATE_LIMIT"
        assert "Rate limit exceeded" in rejected.reason

    def test_reset_after_window_expiry(self, clock: FakeClock):
        limiter = RateLimiter(window_seconds=60, max_requests=100, clock=clock)
        for _ in range(101):
            limiter.check("user")

        clock.advance(61)
        assert limiter.check("user").passed
        assert limiter.count("user") == 1

    def test_window_still_open_at_exact_boundary(self, clock: FakeClock):
        limiter = RateLimiter(window_seconds=60, max_requests=1, clock=clock)
        assert limiter.check("user").passed

        clock.advance(60)
        assert not limiter.check("user").passed

    @given(
        max_requests=st.integers(min_value=1, max_value=50),
        identifiers=st.lists(
            st.text(alphabet="abcdef", min_size=1, max_size=5), min_size=1, max_size=5, unique=True
        ),
    )
    @settings(max_examples=50)
    def test_identifiers_are_independent(self, max_requests: int, identifiers: list[str]):
        """
        *For any* set of identifiers, exhausting the quota of one does not
        affect the others.
        """
        limiter = RateLimiter(max_requests=max_requests, clock=FakeClock())
        first, *others = identifiers

        for _ in range(max_requests):
            assert limiter.check(first).passed
        assert not limiter.check(first).passed

        for identifier in others:
            assert limiter.check(identifier).passed


class TestRateLimitCleanup:
    """Tests for sweeping expired windows."""

    def test_cleanup_removes_only_expired(self, clock: FakeClock):
        limiter = RateLimiter(window_seconds=60, clock=clock)
        limiter.check("old")
        clock.advance(30)
        limiter.check("new")
        clock.advance(31)

        assert limiter.cleanup() == 1
        assert len(limiter) == 1
        assert limiter.count("new") == 1

    def test_lazy_sweep_on_access(self, clock: FakeClock):
        limiter = RateLimiter(window_seconds=60, cleanup_seconds=300, clock=clock)
        limiter.check("a")
        clock.advance(301)
        limiter.check("b")

        assert len(limiter) == 1

    def test_timer_start_stop(self):
        limiter = RateLimiter(cleanup_seconds=300)
        limiter.start_cleanup_timer()
        try:
            assert limiter._timer is not None
            assert limiter._timer.daemon
        finally:
            limiter.stop_cleanup_timer()
        assert limiter._timer is None


class TestSignatureScreening:
    """
    **Feature: candle-input-pipeline, Property 4: Signature Rejection**

    *For any* field holding a script tag, screening rejects the input with
    the script signature as the threat.
    """

    @pytest.mark.parametrize("field", ["open", "high", "low", "close", "volume"])
    def test_script_tag_rejected_in_any_field(self, field: str):
        screener = ThreatScreener(RateLimiter(clock=FakeClock()))
        raw = VALID_FORM.replace(**{field: "<script>alert(1)</script>"})

        result = screener.screen(sanitize_form(raw), "candle_input_test", raw=raw)

        assert not result.passed
        assert result.threat == "<script"
        assert "<script" in result.reason

    @pytest.mark.parametrize("payload", [
        "javascript:void(0)",
        "onclick=steal()",
        "1 UNION SELECT password",
        "DROP TABLE candles",
        "<iframe src=x>",
        "data:text/html,hi",
    ])
    def test_other_signatures_rejected(self, payload: str):
        screener = ThreatScreener(RateLimiter(clock=FakeClock()))
        raw = VALID_FORM.replace(open=payload)

        result = screener.screen(sanitize_form(raw), "id", raw=raw)

        assert not result.passed

    def test_clean_input_passes(self):
        screener = ThreatScreener(RateLimiter(clock=FakeClock()))

        result = screener.screen(VALID_FORM, "id", raw=VALID_FORM)

        assert result.passed
        assert result.fields == VALID_FORM

    def test_rate_limit_checked_first(self):
        screener = ThreatScreener(RateLimiter(max_requests=1, clock=FakeClock()))
        screener.screen(VALID_FORM, "id")
        raw = VALID_FORM.replace(open="<script>")

        result = screener.screen(sanitize_form(raw), "id", raw=raw)

        assert result.threat == "RATE_LIMIT"

    def test_empty_limiter_is_kept(self):
        limiter = RateLimiter(max_requests=1, clock=FakeClock())
        assert len(limiter) == 0

        screener = ThreatScreener(limiter)

        assert screener.rate_limiter is limiter


class TestNumericSanity:
    """Tests for the numeric sub-check."""

    def test_empty_field_rejected(self):
        screener = ThreatScreener(RateLimiter(clock=FakeClock()))
        result = screener.screen(VALID_FORM.replace(volume=""), "id")

        assert not result.passed
        assert result.threat == "INVALID_NUMBER"

    def test_negative_rejected(self):
        screener = ThreatScreener(RateLimiter(clock=FakeClock()))
        result = screener.screen(VALID_FORM.replace(low="-1.0840"), "id")

        assert result.threat == "NEGATIVE_VALUE"

    def test_overflow_rejected(self):
        screener = ThreatScreener(RateLimiter(clock=FakeClock()))
        result = screener.screen(VALID_FORM.replace(volume=str(MAX_SAFE_INTEGER * 10)), "id")

        assert result.threat == "NUMBER_OVERFLOW"


def test_make_identifier_prefers_user():
    assert make_identifier("session-1", "user-1") == "candle_input_user-1"
    assert make_identifier("session-1") == "candle_input_session-1"
    assert make_identifier(None) == "candle_input_anonymous"
