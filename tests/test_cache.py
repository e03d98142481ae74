"""Property-based tests for the validation cache.

**Feature: candle-input-pipeline**
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from candleguard.engine import ValidationCache, cache_key
from candleguard.models import FieldError, FormInput, ValidationOutcome


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


VALID = ValidationOutcome.from_issues([])
INVALID = ValidationOutcome.from_issues([
    FieldError(field="high", message="High must be >= max(Open, Close)", code="HIGH_BELOW_BODY")
])

field_text = st.text(alphabet="0123456789.", max_size=8)
forms = st.builds(FormInput, open=field_text, high=field_text, low=field_text, close=field_text, volume=field_text)


def form(n: int) -> FormInput:
    return FormInput(open=str(n), high="2", low="1", close="1.5", volume="100")


class TestCacheCorrectness:
    """
    **Feature: candle-input-pipeline, Property 10: Cache Correctness**

    *For any* form and outcome, a set followed immediately by a get returns
    an equal outcome, and after the TTL the get returns None.
    """

    @given(fields=forms, valid=st.booleans())
    @settings(max_examples=100)
    def test_set_then_get(self, fields: FormInput, valid: bool):
        cache = ValidationCache(clock=FakeClock())
        outcome = VALID if valid else INVALID

        cache.set(fields, outcome)

        assert cache.get(fields) == outcome

    @given(fields=forms)
    @settings(max_examples=50)
    def test_expired_after_ttl(self, fields: FormInput):
        clock = FakeClock()
        cache = ValidationCache(ttl_seconds=300, clock=clock)
        cache.set(fields, VALID)

        clock.advance(301)

        assert cache.get(fields) is None
        assert len(cache) == 0

    def test_alive_within_ttl(self):
        clock = FakeClock()
        cache = ValidationCache(ttl_seconds=300, clock=clock)
        cache.set(form(1), VALID)

        clock.advance(300)

        assert cache.get(form(1)) == VALID

    def test_key_is_exact_field_tuple(self):
        assert cache_key(FormInput(open="1", high="2", low="3", close="4", volume="5")) == "1|2|3|4|5"
        cache = ValidationCache(clock=FakeClock())
        cache.set(form(1), VALID)

        assert cache.get(form(1).replace(volume="101")) is None


class TestCacheEviction:
    """Tests for the capacity bound and composite-score eviction."""

    def test_never_exceeds_capacity(self):
        cache = ValidationCache(max_size=3, clock=FakeClock())
        for n in range(10):
            cache.set(form(n), VALID)

        assert len(cache) == 3

    def test_frequently_used_entry_survives(self):
        clock = FakeClock()
        cache = ValidationCache(max_size=3, clock=clock)
        for n in range(3):
            cache.set(form(n), VALID)
            clock.advance(1)

        # form(0) is the oldest but the most used
        cache.get(form(0))
        cache.get(form(0))
        clock.advance(1)
        cache.set(form(3), VALID)

        assert form(0) in cache
        assert form(1) not in cache
        assert form(2) in cache
        assert form(3) in cache

    def test_stale_entry_evicted_on_tie(self):
        clock = FakeClock()
        cache = ValidationCache(max_size=2, clock=clock)
        cache.set(form(0), VALID)
        clock.advance(1)
        cache.set(form(1), VALID)
        clock.advance(1)

        cache.set(form(2), VALID)

        assert form(0) not in cache
        assert form(1) in cache

    def test_overwrite_does_not_evict(self):
        cache = ValidationCache(max_size=2, clock=FakeClock())
        cache.set(form(0), VALID)
        cache.set(form(1), VALID)

        cache.set(form(1), INVALID)

        assert len(cache) == 2
        assert cache.get(form(1)) == INVALID


class TestCacheStats:
    """Tests for hit and miss accounting."""

    def test_stats(self):
        cache = ValidationCache(max_size=10, clock=FakeClock())
        cache.set(form(0), VALID)
        cache.get(form(0))
        cache.get(form(1))

        stats = cache.stats()

        assert stats == {"size": 1, "max_size": 10, "hits": 1, "misses": 1, "hit_rate": 50.0}

    def test_clear(self):
        cache = ValidationCache(clock=FakeClock())
        cache.set(form(0), VALID)
        cache.get(form(0))

        cache.clear()

        assert cache.stats()["size"] == 0
        assert cache.stats()["hits"] == 0
