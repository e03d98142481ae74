"""Input sanitization and threat screening."""

from candleguard.security.sanitizer import escape_html, parse_number, sanitize, sanitize_form
from candleguard.security.screener import (
    SIGNATURES,
    RateLimiter,
    ScreenResult,
    ThreatScreener,
    make_identifier,
)

__all__ = [
    "SIGNATURES",
    "RateLimiter",
    "ScreenResult",
    "ThreatScreener",
    "escape_html",
    "make_identifier",
    "parse_number",
    "sanitize",
    "sanitize_form",
]
