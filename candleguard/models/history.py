"""HistoryEntry data model."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from candleguard.models.candle import CandleRecord


class HistoryOperation(str, Enum):
    """Operation that produced a history entry."""

    ADD = "add"
    REMOVE = "remove"
    UPDATE = "update"


class HistoryEntry(BaseModel):
    """A committed record plus the operation that produced it."""

    record: CandleRecord = Field(..., description="Committed record")
    operation: HistoryOperation = Field(default=HistoryOperation.ADD)
    session_id: str = Field(..., description="Owning session ID")
    timestamp: datetime = Field(default_factory=datetime.now, description="When it was pushed")

    model_config = {"frozen": True}
