"""Autocomplete and autofill for candle forms."""

from candleguard.suggestions.autocomplete import (
    autofill,
    suggest,
    suggest_close,
    suggest_high,
    suggest_low,
    suggest_open,
    suggest_volume,
)

__all__ = [
    "autofill",
    "suggest",
    "suggest_close",
    "suggest_high",
    "suggest_low",
    "suggest_open",
    "suggest_volume",
]
