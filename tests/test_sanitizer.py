"""Property-based tests for input sanitization.

**Feature: candle-input-pipeline**
"""

import math

from hypothesis import given, settings
from hypothesis import strategies as st

from candleguard.models import FormInput
from candleguard.security.sanitizer import (
    MAX_DECIMAL_PLACES,
    MAX_LENGTH,
    escape_html,
    parse_number,
    sanitize,
    sanitize_form,
)


class TestSanitizerIdempotence:
    """
    **Feature: candle-input-pipeline, Property 1: Sanitizer Idempotence**

    *For any* input string, sanitizing twice gives the same result as
    sanitizing once.
    """

    @given(value=st.text(max_size=60))
    @settings(max_examples=300)
    def test_idempotent_on_any_text(self, value: str):
        once = sanitize(value)
        assert sanitize(once) == once

    @given(value=st.text(alphabet="0123456789.-", max_size=40))
    @settings(max_examples=300)
    def test_idempotent_on_numeric_alphabet(self, value: str):
        """Inputs made only of allowed characters exercise every rule."""
        once = sanitize(value)
        assert sanitize(once) == once


class TestSanitizerOutputShape:
    """
    **Feature: candle-input-pipeline, Property 2: Sanitizer Output Shape**

    *For any* input, the output holds only digits, at most one decimal
    point, at most one minus sign (leading), at most 8 decimals and at most
    20 characters.
    """

    @given(value=st.text(max_size=60))
    @settings(max_examples=300)
    def test_output_shape(self, value: str):
        result = sanitize(value)

        assert set(result) <= set("0123456789.-")
        assert result.count(".") <= 1
        assert result.count("-") <= 1
        if "-" in result:
            assert result.startswith("-")
        if "." in result:
            assert len(result.split(".", 1)[1]) <= MAX_DECIMAL_PLACES
        assert len(result) <= MAX_LENGTH


class TestSanitizerRuleOrder:
    """Fixed examples pinning the order of the stripping rules."""

    def test_adversarial_mixed_separators(self):
        assert sanitize("1-2.3.4-5") == "12.345"

    def test_leading_minus_kept(self):
        assert sanitize("-1.5") == "-1.5"

    def test_several_minus_signs_collapse_to_leading(self):
        assert sanitize("--1-2") == "-12"

    def test_non_leading_minus_removed(self):
        assert sanitize("12-3") == "123"

    def test_extra_dots_collapse(self):
        assert sanitize("1.2.3") == "1.23"

    def test_decimals_truncated(self):
        assert sanitize("1.123456789012") == "1.12345678"

    def test_length_truncated(self):
        assert sanitize("1" * 30) == "1" * MAX_LENGTH

    def test_disallowed_characters_stripped(self):
        assert sanitize(" 1,085.5 USD") == "1085.5"
        assert sanitize("<script>alert(1)</script>") == "1"

    def test_non_string_sanitizes_to_empty(self):
        assert sanitize(None) == ""
        assert sanitize(1.5) == ""


class TestSanitizeForm:
    """Tests for whole-form sanitization."""

    def test_each_field_sanitized(self):
        form = FormInput(open="1.08a50", high="1.0870", low="x1.0840", close="1.0860", volume="1,000,000")
        result = sanitize_form(form)

        assert result == FormInput(
            open="1.0850", high="1.0870", low="1.0840", close="1.0860", volume="1000000"
        )

    def test_original_form_unchanged(self):
        form = FormInput(open="1.08a50")
        sanitize_form(form)
        assert form.open == "1.08a50"

    def test_mapping_with_missing_and_numeric_values(self):
        result = sanitize_form({"open": 1.085, "high": None, "volume": 1000})

        assert result.open == "1.085"
        assert result.high == ""
        assert result.low == ""
        assert result.volume == "1000"


class TestParseNumber:
    """Tests for parsing sanitized text."""

    def test_valid_number(self):
        assert parse_number("1.0850") == 1.085

    def test_invalid_text_is_nan(self):
        for text in ("", "-", ".", "-."):
            assert math.isnan(parse_number(text))


def test_escape_html():
    assert escape_html("<b>\"x\" & 'y'</b>") == (
        "&lt;b&gt;&quot;x&quot; &amp; &#x27;y&#x27;&lt;&#x2F;b&gt;"
    )
