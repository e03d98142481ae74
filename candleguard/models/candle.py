"""Candle (OHLCV) data models."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


class CandleField(str, Enum):
    """The five user-entered fields of a candle."""

    OPEN = "open"
    HIGH = "high"
    LOW = "low"
    CLOSE = "close"
    VOLUME = "volume"

    @property
    def is_price(self) -> bool:
        return self is not CandleField.VOLUME


PRICE_FIELDS = (CandleField.OPEN, CandleField.HIGH, CandleField.LOW, CandleField.CLOSE)


def format_price(value: float) -> str:
    """Format a price as plain decimal text with at most 8 decimal places."""
    return f"{value:.8f}".rstrip("0").rstrip(".")


class PredictionDirection(str, Enum):
    """Direction annotation a caller may attach to a committed candle."""

    UP = "UP"
    DOWN = "DOWN"
    NEUTRAL = "NEUTRAL"


class FormInput(BaseModel):
    """Raw text of the five candle fields, as typed by the user."""

    open: str = Field(default="", description="Opening price text")
    high: str = Field(default="", description="High price text")
    low: str = Field(default="", description="Low price text")
    close: str = Field(default="", description="Closing price text")
    volume: str = Field(default="", description="Volume text")

    model_config = {"frozen": True}

    def get(self, field: CandleField) -> str:
        """Get the raw text of a single field."""
        return getattr(self, CandleField(field).value)

    def values(self) -> tuple[str, str, str, str, str]:
        """Field texts in canonical order (open, high, low, close, volume)."""
        return (self.open, self.high, self.low, self.close, self.volume)

    def replace(self, **changes: str) -> "FormInput":
        """Return a copy with some fields replaced."""
        return self.model_copy(update=changes)


class Predictions(BaseModel):
    """Optional prediction annotations stored alongside a candle."""

    direction: Optional[PredictionDirection] = Field(default=None)
    probability: Optional[float] = Field(default=None, ge=0, le=1)
    confidence: Optional[float] = Field(default=None, ge=0, le=100)

    model_config = {"frozen": True}


class CandleRecord(BaseModel):
    """A committed candle within a trading session.

    Construction fails unless the OHLC invariants hold:
    ``high >= max(open, close)``, ``low <= min(open, close)`` and
    ``high >= low``.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Record ID")
    session_id: str = Field(..., min_length=1, description="Owning session ID")
    candle_index: int = Field(..., ge=0, description="Sequence index within the session")
    open: float = Field(..., gt=0, allow_inf_nan=False, description="Opening price")
    high: float = Field(..., gt=0, allow_inf_nan=False, description="High price")
    low: float = Field(..., gt=0, allow_inf_nan=False, description="Low price")
    close: float = Field(..., gt=0, allow_inf_nan=False, description="Closing price")
    volume: int = Field(..., gt=0, description="Trading volume")
    timestamp: datetime = Field(..., description="Candle instant")
    spread: float = Field(default=0.0, ge=0, description="High minus low")
    prediction_direction: Optional[PredictionDirection] = Field(default=None)
    prediction_probability: Optional[float] = Field(default=None, ge=0, le=1)
    prediction_confidence: Optional[float] = Field(default=None, ge=0, le=100)
    created_at: datetime = Field(default_factory=datetime.now, description="Commit time")

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def _derive_spread(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("spread") is None:
            try:
                data = {**data, "spread": max(0.0, float(data["high"]) - float(data["low"]))}
            except (KeyError, TypeError, ValueError):
                # Field validation reports the missing or malformed price.
                pass
        return data

    @model_validator(mode="after")
    def _check_ohlc(self) -> "CandleRecord":
        if self.high < max(self.open, self.close):
            raise ValueError("high must be >= max(open, close)")
        if self.low > min(self.open, self.close):
            raise ValueError("low must be <= min(open, close)")
        if self.high < self.low:
            raise ValueError("high must be >= low")
        return self

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    def to_form(self) -> FormInput:
        """Render the record back into form text."""
        return FormInput(
            open=format_price(self.open),
            high=format_price(self.high),
            low=format_price(self.low),
            close=format_price(self.close),
            volume=str(self.volume),
        )
