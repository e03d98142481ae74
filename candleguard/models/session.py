"""TradingSession data model."""

import re
import uuid
from datetime import datetime, timedelta

from pydantic import BaseModel, Field, field_validator

# Supported session timeframes and their candle duration
TIMEFRAMES: dict[str, timedelta] = {
    "1m": timedelta(minutes=1),
    "5m": timedelta(minutes=5),
    "15m": timedelta(minutes=15),
    "30m": timedelta(minutes=30),
    "1h": timedelta(hours=1),
    "4h": timedelta(hours=4),
    "1d": timedelta(days=1),
    "1w": timedelta(weeks=1),
}

CURRENCY_PAIR_REGEX = re.compile(r"^[A-Z]{3}/[A-Z]{3}$")


class TradingSession(BaseModel):
    """A named, ordered sequence of candles for one instrument and timeframe."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Session ID")
    name: str = Field(..., min_length=3, max_length=100, description="Session name")
    pair: str = Field(..., description="Currency pair, e.g. 'EUR/USD'")
    timeframe: str = Field(..., description="Candle timeframe, e.g. '5m'")
    start: datetime = Field(..., description="Instant of the candle at index 0")
    created_at: datetime = Field(default_factory=datetime.now, description="Creation time")

    model_config = {"frozen": True, "str_strip_whitespace": True}

    @field_validator("pair")
    @classmethod
    def _check_pair(cls, value: str) -> str:
        value = value.upper()
        if not CURRENCY_PAIR_REGEX.match(value):
            raise ValueError("pair must be in XXX/YYY format")
        return value

    @field_validator("timeframe")
    @classmethod
    def _check_timeframe(cls, value: str) -> str:
        if value not in TIMEFRAMES:
            raise ValueError(f"timeframe must be one of: {', '.join(TIMEFRAMES)}")
        return value

    @property
    def interval(self) -> timedelta:
        return TIMEFRAMES[self.timeframe]

    def candle_datetime(self, candle_index: int) -> datetime:
        """Instant of the candle at a given sequence index.

        Args:
            candle_index: Non-negative sequence index.

        Returns:
            ``start + candle_index * interval``.
        """
        if candle_index < 0:
            raise ValueError("candle_index must be non-negative")
        return self.start + self.interval * candle_index
