"""Threat screening: rate limiting, injection signatures and numeric sanity.

The rate-limit state is owned by an explicitly constructed ``RateLimiter``
rather than a module-level map, so each pipeline (or test) gets its own.
"""

import json
import logging
import math
import re
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from pydantic import BaseModel, Field

from candleguard.models import CandleField, FormInput
from candleguard.security.sanitizer import parse_number

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 60.0
DEFAULT_MAX_REQUESTS = 100
DEFAULT_CLEANUP_SECONDS = 300.0

# Largest integer a double represents exactly (2**53 - 1)
MAX_SAFE_INTEGER = 9_007_199_254_740_991

SIGNATURES = [
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+=", re.IGNORECASE),
    re.compile(r"data:text/html", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
    re.compile(r"<iframe", re.IGNORECASE),
    re.compile(r"<object", re.IGNORECASE),
    re.compile(r"<embed", re.IGNORECASE),
    re.compile(r"SELECT.*FROM", re.IGNORECASE),
    re.compile(r"UNION.*SELECT", re.IGNORECASE),
    re.compile(r"DROP.*TABLE", re.IGNORECASE),
    re.compile(r"INSERT.*INTO", re.IGNORECASE),
    re.compile(r"DELETE.*FROM", re.IGNORECASE),
    re.compile(r"UPDATE.*SET", re.IGNORECASE),
]


class ScreenResult(BaseModel):
    """Outcome of a screening step."""

    passed: bool = Field(..., description="True when the input may proceed")
    reason: Optional[str] = Field(default=None, description="User-facing rejection reason")
    threat: Optional[str] = Field(default=None, description="Matched signature or threat code")
    fields: Optional[FormInput] = Field(default=None, description="Trusted fields on success")

    model_config = {"frozen": True}

    @classmethod
    def reject(cls, reason: str, threat: str) -> "ScreenResult":
        return cls(passed=False, reason=reason, threat=threat)


def make_identifier(session_id: Optional[str], user_id: Optional[str] = None) -> str:
    """Build the rate-limit identifier for a caller."""
    return f"candle_input_{user_id or session_id or 'anonymous'}"


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Fixed-window request quota per identifier.

    The first call for an identifier (or the first after its window has
    expired) opens a new window with a count of 1. Later calls in the same
    window increment the count; a call is rejected once ``max_requests``
    calls have already been counted. Expired windows are swept lazily every
    ``cleanup_seconds`` and by the optional background timer.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        cleanup_seconds: float = DEFAULT_CLEANUP_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the rate limiter.

        Args:
            window_seconds: Length of a counting window.
            max_requests: Calls allowed per window.
            cleanup_seconds: Interval between sweeps of expired windows.
            clock: Monotonic time source in seconds.
        """
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.cleanup_seconds = cleanup_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()
        self._timer: Optional[threading.Timer] = None

    def check(self, identifier: str) -> ScreenResult:
        """Count a call for an identifier and decide whether it may proceed."""
        now = self._clock()
        if now - self._last_sweep >= self.cleanup_seconds:
            self.cleanup()

        with self._lock:
            window = self._windows.get(identifier)
            if window is None or now > window.reset_at:
                self._windows[identifier] = _Window(count=1, reset_at=now + self.window_seconds)
                return ScreenResult(passed=True)

            if window.count >= self.max_requests:
                logger.warning(
                    "Rate limit exceeded for %s (%d/%d)",
                    identifier, window.count, self.max_requests,
                )
                return ScreenResult.reject(
                    "Rate limit exceeded. Please wait before submitting again.",
                    "RATE_LIMIT",
                )

            window.count += 1
            return ScreenResult(passed=True)

    def count(self, identifier: str) -> int:
        """Calls counted in the identifier's current window (0 if none)."""
        with self._lock:
            window = self._windows.get(identifier)
            if window is None or self._clock() > window.reset_at:
                return 0
            return window.count

    def cleanup(self) -> int:
        """Remove expired windows.

        Returns:
            Number of windows removed.
        """
        now = self._clock()
        with self._lock:
            expired = [key for key, window in self._windows.items() if now > window.reset_at]
            for key in expired:
                del self._windows[key]
            self._last_sweep = now
        if expired:
            logger.debug("Swept %d expired rate-limit windows", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def start_cleanup_timer(self) -> None:
        """Sweep expired windows every ``cleanup_seconds`` in the background."""
        self.stop_cleanup_timer()
        self._timer = threading.Timer(self.cleanup_seconds, self._run_timer)
        self._timer.daemon = True
        self._timer.start()

    def stop_cleanup_timer(self) -> None:
        """Stop the background sweep if it is running."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _run_timer(self) -> None:
        self.cleanup()
        if self._timer is not None:
            self.start_cleanup_timer()


class ThreatScreener:
    """Rejects over-quota callers, injection payloads and unsafe numbers."""

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        max_magnitude: float = MAX_SAFE_INTEGER,
    ):
        """Initialize the screener.

        Args:
            rate_limiter: Quota tracker. A default one is created if not provided.
            max_magnitude: Largest accepted field value.
        """
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self.max_magnitude = max_magnitude

    def screen(
        self,
        fields: FormInput,
        identifier: str,
        raw: Optional[FormInput] = None,
    ) -> ScreenResult:
        """Run the three sub-checks, stopping at the first failure.

        Args:
            fields: Sanitized fields.
            identifier: Rate-limit identifier of the caller.
            raw: The unsanitized form. Signatures are matched against it
                as well, since sanitization strips markup characters.

        Returns:
            A passing result carrying ``fields``, or a rejection.
        """
        rate = self.rate_limiter.check(identifier)
        if not rate.passed:
            return rate

        payloads = [fields] if raw is None else [raw, fields]
        for payload in payloads:
            signature = self.check_signatures(payload)
            if not signature.passed:
                return signature

        numeric = self.check_numeric(fields)
        if not numeric.passed:
            return numeric

        return ScreenResult(passed=True, fields=fields)

    def check_signatures(self, fields: FormInput) -> ScreenResult:
        """Match the serialized fields against the injection signatures."""
        payload = json.dumps(fields.model_dump()).lower()
        for pattern in SIGNATURES:
            if pattern.search(payload):
                logger.warning(
                    "Suspicious pattern %r detected in candle input: %s",
                    pattern.pattern, payload[:100],
                )
                return ScreenResult.reject(
                    f"Suspicious pattern detected ({pattern.pattern}). Input rejected.",
                    pattern.pattern,
                )
        return ScreenResult(passed=True)

    def check_numeric(self, fields: FormInput) -> ScreenResult:
        """Require every field to be a finite, non-negative, bounded number."""
        for field in CandleField:
            value = parse_number(fields.get(field))
            if not math.isfinite(value):
                return ScreenResult.reject(
                    f"Invalid {field.value} value: not a finite number", "INVALID_NUMBER"
                )
            if value < 0:
                return ScreenResult.reject(
                    f"Invalid {field.value} value: negative", "NEGATIVE_VALUE"
                )
            if value > self.max_magnitude:
                return ScreenResult.reject(
                    f"Invalid {field.value} value: overflow", "NUMBER_OVERFLOW"
                )
        return ScreenResult(passed=True)
