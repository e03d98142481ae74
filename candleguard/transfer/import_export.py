"""CSV and JSON import/export of candle records.

Imported rows go through the same structural validation as typed input.
Invalid rows are reported and skipped; the rest are returned as records.
"""

import csv
import json
import logging
import math
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from pydantic import ValidationError

from candleguard.models import (
    CandleRecord,
    FormInput,
    ImportResult,
    ImportStats,
    format_price,
)
from candleguard.security.sanitizer import parse_number
from candleguard.validation import StructuralValidator

logger = logging.getLogger(__name__)

COLUMNS = [
    "candle_index",
    "candle_datetime",
    "open",
    "high",
    "low",
    "close",
    "volume",
    "spread",
]
MIN_COLUMNS = 7

# Supplied spreads may differ from high - low by rounding only
SPREAD_TOLERANCE = 1e-6

TEMPLATE_ROWS = [
    "0,2024-01-01T00:00:00Z,1.0850,1.0870,1.0840,1.0860,1000000,0.0030",
    "1,2024-01-01T00:05:00Z,1.0860,1.0880,1.0850,1.0875,1100000,0.0030",
    "2,2024-01-01T00:10:00Z,1.0875,1.0890,1.0865,1.0880,950000,0.0025",
]


class RowError(ValueError):
    """A row that cannot be turned into a record."""


def parse_datetime(value: str) -> datetime:
    """Parse an ISO 8601 timestamp, accepting a trailing ``Z``."""
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def export_csv(
    records: Sequence[CandleRecord],
    delimiter: str = ",",
    include_header: bool = True,
) -> str:
    """Render records as CSV text, one candle per line."""
    lines = []
    if include_header:
        lines.append(delimiter.join(COLUMNS))
    for record in records:
        lines.append(delimiter.join([
            str(record.candle_index),
            record.timestamp.isoformat(),
            format_price(record.open),
            format_price(record.high),
            format_price(record.low),
            format_price(record.close),
            str(record.volume),
            format_price(record.spread),
        ]))
    return "\n".join(lines)


def export_json(records: Sequence[CandleRecord]) -> str:
    """Render records as a pretty-printed JSON array."""
    return json.dumps([record.model_dump(mode="json") for record in records], indent=2)


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _checked_spread(spread_text: str, high: float, low: float) -> Optional[float]:
    """The supplied spread, or None when it should be derived.

    Raises:
        RowError: If the supplied spread is not a finite, non-negative
            number equal to ``high - low``.
    """
    if not spread_text:
        return None
    spread = parse_number(spread_text)
    if not math.isfinite(spread) or spread < 0:
        raise RowError(f"invalid spread '{spread_text}'")
    derived = high - low
    if not math.isclose(spread, derived, rel_tol=SPREAD_TOLERANCE, abs_tol=SPREAD_TOLERANCE):
        raise RowError(f"spread {spread_text} does not match high - low ({format_price(derived)})")
    return spread


def _build_record(
    validator: StructuralValidator,
    session_id: str,
    index_text: str,
    datetime_text: str,
    form: FormInput,
    spread_text: str,
) -> tuple[CandleRecord, list[str]]:
    """Validate one row and build its record.

    Returns:
        The record and the row's warning messages.

    Raises:
        RowError: If the row is not a valid candle.
    """
    try:
        candle_index = int(index_text)
    except ValueError:
        raise RowError(f"invalid candle index '{index_text}'")
    try:
        timestamp = parse_datetime(datetime_text)
    except ValueError:
        raise RowError(f"invalid datetime '{datetime_text}'")

    outcome = validator.validate(form)
    if not outcome.is_valid:
        raise RowError(", ".join(error.message for error in outcome.errors))

    spread = _checked_spread(spread_text, parse_number(form.high), parse_number(form.low))
    try:
        record = CandleRecord(
            session_id=session_id,
            candle_index=candle_index,
            timestamp=timestamp,
            open=parse_number(form.open),
            high=parse_number(form.high),
            low=parse_number(form.low),
            close=parse_number(form.close),
            volume=int(parse_number(form.volume)),
            spread=spread,
        )
    except ValidationError as e:
        raise RowError("; ".join(err["msg"] for err in e.errors()))

    return record, [warning.message for warning in outcome.warnings]


def _result(
    records: list[CandleRecord], errors: list[str], warnings: list[str], total: int
) -> ImportResult:
    return ImportResult(
        success=not errors,
        records=records,
        errors=errors,
        warnings=warnings,
        stats=ImportStats(total=total, valid=len(records), invalid=len(errors)),
    )


def parse_csv(
    content: str,
    session_id: str,
    delimiter: str = ",",
    has_header: bool = True,
    validator: Optional[StructuralValidator] = None,
) -> ImportResult:
    """Parse CSV text into validated records.

    Args:
        content: CSV text with the ``COLUMNS`` layout (spread optional).
        session_id: Session the records belong to.
        delimiter: Field delimiter.
        has_header: Skip the first non-blank line.
        validator: Structural validator. A default one is used if not provided.

    Returns:
        Import result. Row numbers in messages are 1-based and count only
        non-blank lines.
    """
    validator = validator or StructuralValidator()
    lines = [line for line in content.splitlines() if line.strip()]
    start = 1 if has_header else 0

    records: list[CandleRecord] = []
    errors: list[str] = []
    warnings: list[str] = []

    for number, row in enumerate(csv.reader(lines[start:], delimiter=delimiter), start=start + 1):
        values = [value.strip() for value in row]
        if len(values) < MIN_COLUMNS:
            errors.append(f"Row {number}: not enough fields")
            continue

        form = FormInput(
            open=values[2], high=values[3], low=values[4], close=values[5], volume=values[6]
        )
        spread_text = values[7] if len(values) > 7 else ""
        try:
            record, row_warnings = _build_record(
                validator, session_id, values[0], values[1], form, spread_text
            )
        except RowError as e:
            errors.append(f"Row {number}: {e}")
            continue

        if row_warnings:
            warnings.append(f"Row {number}: {', '.join(row_warnings)}")
        records.append(record)

    logger.info(
        "Parsed CSV for session %s: %d valid, %d invalid", session_id, len(records), len(errors)
    )
    return _result(records, errors, warnings, max(len(lines) - start, 0))


def parse_json(
    content: str,
    session_id: str,
    validator: Optional[StructuralValidator] = None,
) -> ImportResult:
    """Parse a JSON array of candle objects into validated records.

    Item numbers in messages are 0-based positions in the array.
    """
    validator = validator or StructuralValidator()
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        return ImportResult(success=False, errors=[f"Invalid JSON: {e}"])

    if not isinstance(data, list):
        return ImportResult(success=False, errors=["JSON must contain an array of objects"])

    records: list[CandleRecord] = []
    errors: list[str] = []
    warnings: list[str] = []

    for position, item in enumerate(data):
        if not isinstance(item, dict):
            errors.append(f"Item {position}: not an object")
            continue

        form = FormInput(
            open=_text(item.get("open")),
            high=_text(item.get("high")),
            low=_text(item.get("low")),
            close=_text(item.get("close")),
            volume=_text(item.get("volume")),
        )
        datetime_text = _text(item.get("candle_datetime") or item.get("timestamp"))
        try:
            record, item_warnings = _build_record(
                validator,
                session_id,
                _text(item.get("candle_index")),
                datetime_text,
                form,
                _text(item.get("spread")),
            )
        except RowError as e:
            errors.append(f"Item {position}: {e}")
            continue

        if item_warnings:
            warnings.append(f"Item {position}: {', '.join(item_warnings)}")
        records.append(record)

    logger.info(
        "Parsed JSON for session %s: %d valid, %d invalid", session_id, len(records), len(errors)
    )
    return _result(records, errors, warnings, len(data))


def import_file(
    path: Union[str, Path],
    session_id: str,
    validator: Optional[StructuralValidator] = None,
) -> ImportResult:
    """Import a ``.csv`` or ``.json`` file, chosen by extension."""
    path = Path(path)
    extension = path.suffix.lower().lstrip(".")
    if extension not in ("csv", "json"):
        return ImportResult(success=False, errors=[f"Unsupported file format: {extension}"])

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Error importing file %s: %s", path, e)
        return ImportResult(success=False, errors=[f"Error reading file: {e}"])

    if extension == "csv":
        return parse_csv(content, session_id, validator=validator)
    return parse_json(content, session_id, validator=validator)


def import_template() -> str:
    """Example CSV showing the import layout."""
    return "\n".join([",".join(COLUMNS), *TEMPLATE_ROWS])
