"""Numeric input sanitization.

Every function here is total: it never raises, whatever it is given.
"""

import logging
import math
import re
from typing import Any, Mapping, Union

from candleguard.models import CandleField, FormInput

logger = logging.getLogger(__name__)

MAX_DECIMAL_PLACES = 8
MAX_LENGTH = 20

_DISALLOWED = re.compile(r"[^0-9.\-]")

_HTML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
}


def sanitize(value: Any) -> str:
    """Normalize raw numeric text.

    Keeps digits, one decimal point and one leading minus sign, then bounds
    precision and length. The steps run in a fixed order (dots, minus
    signs, non-leading minus, decimals, length); reordering them changes
    the result on inputs such as ``"1-2.3.4-5"``.

    Args:
        value: Raw field text. Non-string values sanitize to ``""``.

    Returns:
        The sanitized text, possibly empty.
    """
    if not isinstance(value, str):
        logger.warning("Non-string value provided to sanitize: %r", type(value).__name__)
        return ""

    sanitized = _DISALLOWED.sub("", value)

    # Keep only the first decimal point
    parts = sanitized.split(".")
    if len(parts) > 2:
        sanitized = parts[0] + "." + "".join(parts[1:])

    # Collapse several minus signs into at most one leading sign
    if sanitized.count("-") > 1:
        leading = sanitized.startswith("-")
        sanitized = sanitized.replace("-", "")
        if leading:
            sanitized = "-" + sanitized

    if "-" in sanitized and not sanitized.startswith("-"):
        sanitized = sanitized.replace("-", "")

    if "." in sanitized:
        integer, decimal = sanitized.split(".", 1)
        sanitized = integer + "." + decimal[:MAX_DECIMAL_PLACES]

    if len(sanitized) > MAX_LENGTH:
        sanitized = sanitized[:MAX_LENGTH]

    return sanitized


def sanitize_form(data: Union[FormInput, Mapping[str, Any]]) -> FormInput:
    """Sanitize each of the five fields independently.

    Args:
        data: A FormInput or a mapping with any subset of the field names.

    Returns:
        A new FormInput holding the sanitized texts.
    """
    if isinstance(data, FormInput):
        raw = data.model_dump()
    else:
        raw = dict(data)
    return FormInput(**{
        field.value: sanitize(_as_text(raw.get(field.value)))
        for field in CandleField
    })


def _as_text(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def parse_number(text: str) -> float:
    """Parse sanitized numeric text.

    Returns:
        The parsed value, or NaN when the text is not a number
        (e.g. ``""``, ``"-"`` or ``"."``).
    """
    try:
        return float(text)
    except (TypeError, ValueError):
        return math.nan


def escape_html(unsafe: str) -> str:
    """Escape HTML metacharacters for safe display of user text."""
    return "".join(_HTML_ESCAPES.get(ch, ch) for ch in str(unsafe))
