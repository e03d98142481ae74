"""Undo/redo history of committed candles for one editing session.

Both stacks are bounded deques. New entries are appended on the right and
overflow drops the oldest entry on the left, so the entry that the next
undo or redo would pop is never the one evicted.
"""

import logging
from collections import deque
from typing import Optional

from candleguard.errors import NoOperation
from candleguard.models import HistoryEntry

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 50


class HistoryManager:
    """Linear undo/redo history.

    Any new commit clears the redo stack: there is no branching history.
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        self.max_depth = max_depth
        self._undo: deque[HistoryEntry] = deque(maxlen=max_depth)
        self._redo: deque[HistoryEntry] = deque(maxlen=max_depth)

    def commit(self, entry: HistoryEntry) -> None:
        """Record a newly committed entry and invalidate redo."""
        self._undo.append(entry)
        self._redo.clear()

    def undo(self) -> HistoryEntry:
        """Move the latest entry to the redo stack.

        Raises:
            NoOperation: If there is nothing to undo.
        """
        if not self._undo:
            raise NoOperation("Nothing to undo")
        entry = self._undo.pop()
        self._redo.append(entry)
        return entry

    def redo(self) -> HistoryEntry:
        """Move the latest undone entry back to the undo stack.

        Raises:
            NoOperation: If there is nothing to redo.
        """
        if not self._redo:
            raise NoOperation("Nothing to redo")
        entry = self._redo.pop()
        self._undo.append(entry)
        return entry

    def peek_undo(self) -> Optional[HistoryEntry]:
        return self._undo[-1] if self._undo else None

    def peek_redo(self) -> Optional[HistoryEntry]:
        return self._redo[-1] if self._redo else None

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()

    def can_undo(self) -> bool:
        return bool(self._undo)

    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)
