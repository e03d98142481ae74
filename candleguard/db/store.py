"""SQLite data store for CandleGuard."""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from candleguard.models import CandleRecord, PredictionDirection, TradingSession

logger = logging.getLogger(__name__)


class DataStore:
    """SQLite-based store for trading sessions and their candles.

    ``save_candle`` and ``delete_candle`` return a success flag, so they can
    be passed straight to the pipeline as commit and revert callbacks.
    """

    REQUIRED_TABLES = [
        "sessions",
        "candles",
    ]

    def __init__(self, db_path: Path):
        """Initialize the data store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._ensure_db_dir()
        self._init_schema()

    def _ensure_db_dir(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        """Initialize database schema on first run."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()

            # Sessions table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    pair TEXT NOT NULL,
                    timeframe TEXT NOT NULL,
                    start TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)

            # Candles table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS candles (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL,
                    candle_index INTEGER NOT NULL,
                    timestamp TEXT NOT NULL,
                    open REAL NOT NULL,
                    high REAL NOT NULL,
                    low REAL NOT NULL,
                    close REAL NOT NULL,
                    volume INTEGER NOT NULL,
                    spread REAL NOT NULL,
                    prediction_direction TEXT,
                    prediction_probability REAL,
                    prediction_confidence REAL,
                    created_at TEXT NOT NULL,
                    UNIQUE(session_id, candle_index)
                )
            """)

            conn.commit()
        finally:
            conn.close()

    def get_tables(self) -> list[str]:
        """Get list of all tables in the database."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            return [row["name"] for row in cursor.fetchall()]
        finally:
            conn.close()

    # ==================== Sessions ====================

    def save_session(self, session: TradingSession) -> None:
        """Save or update a trading session.

        Args:
            session: Session to save.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT OR REPLACE INTO sessions
                (id, name, pair, timeframe, start, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    session.id,
                    session.name,
                    session.pair,
                    session.timeframe,
                    session.start.isoformat(),
                    session.created_at.isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def get_session(self, session_id: str) -> Optional[TradingSession]:
        """Get a session by ID.

        Args:
            session_id: Session ID.

        Returns:
            The session, or None if not found.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, name, pair, timeframe, start, created_at
                FROM sessions
                WHERE id = ?
                """,
                (session_id,),
            )
            row = cursor.fetchone()
            return self._row_to_session(row) if row else None
        finally:
            conn.close()

    def get_sessions(self) -> list[TradingSession]:
        """Get all sessions, newest first."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, name, pair, timeframe, start, created_at
                FROM sessions
                ORDER BY created_at DESC
                """
            )
            return [self._row_to_session(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> TradingSession:
        return TradingSession(
            id=row["id"],
            name=row["name"],
            pair=row["pair"],
            timeframe=row["timeframe"],
            start=datetime.fromisoformat(row["start"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # ==================== Candles ====================

    def save_candle(self, record: CandleRecord) -> bool:
        """Insert a committed candle.

        Args:
            record: Candle to save.

        Returns:
            True if saved, False if a candle with the same ID or the same
            index in its session already exists.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO candles
                (id, session_id, candle_index, timestamp, open, high, low, close,
                 volume, spread, prediction_direction, prediction_probability,
                 prediction_confidence, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.session_id,
                    record.candle_index,
                    record.timestamp.isoformat(),
                    record.open,
                    record.high,
                    record.low,
                    record.close,
                    record.volume,
                    record.spread,
                    record.prediction_direction.value if record.prediction_direction else None,
                    record.prediction_probability,
                    record.prediction_confidence,
                    record.created_at.isoformat(),
                ),
            )
            conn.commit()
            return True
        except sqlite3.IntegrityError as e:
            # The failed INSERT leaves a write transaction open
            conn.rollback()
            logger.warning(
                "Could not save candle %d of session %s: %s",
                record.candle_index, record.session_id, str(e),
            )
            return False
        finally:
            conn.close()

    def delete_candle(self, record: CandleRecord) -> bool:
        """Delete a candle.

        Args:
            record: Candle to delete (matched by ID).

        Returns:
            True if a row was deleted.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM candles WHERE id = ?", (record.id,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def get_candles(self, session_id: str) -> list[CandleRecord]:
        """Get the candles of a session.

        Args:
            session_id: Session ID.

        Returns:
            Candles ordered by index.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT * FROM candles
                WHERE session_id = ?
                ORDER BY candle_index
                """,
                (session_id,),
            )
            return [self._row_to_candle(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def get_candle(self, candle_id: str) -> Optional[CandleRecord]:
        """Get a candle by ID.

        Args:
            candle_id: Candle ID.

        Returns:
            The candle, or None if not found.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM candles WHERE id = ?", (candle_id,))
            row = cursor.fetchone()
            return self._row_to_candle(row) if row else None
        finally:
            conn.close()

    def next_candle_index(self, session_id: str) -> int:
        """Index following the highest stored index of a session (0 if empty)."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT MAX(candle_index) as last FROM candles WHERE session_id = ?",
                (session_id,),
            )
            last = cursor.fetchone()["last"]
            return 0 if last is None else last + 1
        finally:
            conn.close()

    @staticmethod
    def _row_to_candle(row: sqlite3.Row) -> CandleRecord:
        direction = row["prediction_direction"]
        return CandleRecord(
            id=row["id"],
            session_id=row["session_id"],
            candle_index=row["candle_index"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
            open=row["open"],
            high=row["high"],
            low=row["low"],
            close=row["close"],
            volume=row["volume"],
            spread=row["spread"],
            prediction_direction=PredictionDirection(direction) if direction else None,
            prediction_probability=row["prediction_probability"],
            prediction_confidence=row["prediction_confidence"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # ==================== Stats ====================

    def get_stats(self) -> dict:
        """Get database statistics.

        Returns:
            Dictionary with table record counts.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            stats = {}
            for table in self.REQUIRED_TABLES:
                cursor.execute(f"SELECT COUNT(*) as count FROM {table}")
                stats[table] = cursor.fetchone()["count"]
            return stats
        finally:
            conn.close()
