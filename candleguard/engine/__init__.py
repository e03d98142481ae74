"""Pipeline orchestration and its in-memory state: index, cache and history."""

from candleguard.engine.cache import ValidationCache, cache_key
from candleguard.engine.history import HistoryManager
from candleguard.engine.index import CandleIndex
from candleguard.engine.pipeline import CandlePipeline, build_record

__all__ = [
    "CandleIndex",
    "CandlePipeline",
    "HistoryManager",
    "ValidationCache",
    "build_record",
    "cache_key",
]
