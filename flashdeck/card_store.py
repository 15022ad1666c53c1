"""
SQLite Card Store for flashdeck.

Provides portable persistence for:
- Cards and their scheduling state, keyed by id (card source and sink)
- Review history log
- JSON import/export of card records

One database per dataset: <data_dir>/<dataset>.db
"""

from __future__ import annotations

import json
import queue
import sqlite3
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

from loguru import logger

from .card import Card, normalize, parse_date
from .errors import CardImportError
from .session import CardSink

# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class ReviewRecord:
    """A single review event."""

    id: int
    card_id: str
    reviewed_at: datetime
    quality: int
    state_before: str
    state_after: str
    ivl: int


# =============================================================================
# Card Store
# =============================================================================


class CardStore:
    """
    SQLite-backed card persistence.

    Implements the card sink protocol through save(). Access is
    serialized with a lock so a BackgroundCardSink writer thread can
    share the connection.
    """

    DEFAULT_DATA_DIR = Path.home() / ".flashdeck"

    def __init__(self, data_dir: Path | None = None, dataset: str = "default"):
        """
        Initialize the card store.

        Args:
            data_dir: Directory holding dataset databases (defaults to ~/.flashdeck)
            dataset: Dataset name (one database file per dataset)
        """
        self.data_dir = Path(data_dir) if data_dir else self.DEFAULT_DATA_DIR
        self.dataset = dataset
        self.db_path = self.data_dir / f"{dataset}.db"
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = None
        self._init_schema()

        logger.info(f"CardStore initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._lock:
            cursor = self.conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS cards (
                    id TEXT PRIMARY KEY,
                    position INTEGER NOT NULL,
                    front TEXT NOT NULL DEFAULT '',
                    back TEXT NOT NULL DEFAULT '',
                    state TEXT NOT NULL DEFAULT 'new',
                    factor REAL NOT NULL DEFAULT 2.5,
                    ivl INTEGER NOT NULL DEFAULT 0,
                    reps INTEGER NOT NULL DEFAULT 0,
                    lapses INTEGER NOT NULL DEFAULT 0,
                    step_index INTEGER NOT NULL DEFAULT 0,
                    lapse_step_index INTEGER NOT NULL DEFAULT 0,
                    due TEXT,
                    last_answered TEXT,
                    extra TEXT NOT NULL DEFAULT '{}'
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS review_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    card_id TEXT NOT NULL,
                    reviewed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    quality INTEGER NOT NULL,
                    state_before TEXT,
                    state_after TEXT,
                    ivl INTEGER,
                    FOREIGN KEY (card_id) REFERENCES cards(id)
                )
            """)

            # Index for fast due-date queries
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_cards_due ON cards(due)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_review_log_card ON review_log(card_id)")

            self.conn.commit()

    # =========================================================================
    # Card Operations
    # =========================================================================

    def _row_to_card(self, row: sqlite3.Row) -> Card:
        try:
            extra = json.loads(row["extra"] or "{}")
        except json.JSONDecodeError:
            logger.warning(f"Corrupt extra fields for card {row['id']}, dropping them")
            extra = {}

        record = dict(extra) if isinstance(extra, dict) else {}
        record.update(
            {
                "id": row["id"],
                "front": row["front"],
                "back": row["back"],
                "state": row["state"],
                "factor": row["factor"],
                "ivl": row["ivl"],
                "reps": row["reps"],
                "lapses": row["lapses"],
                "stepIndex": row["step_index"],
                "lapseStepIndex": row["lapse_step_index"],
                "due": row["due"],
                "lastAnswered": row["last_answered"],
            }
        )
        return normalize(record)

    def load_cards(self) -> list[Card]:
        """
        Load every card in import order.

        Returns:
            Normalized cards
        """
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("SELECT * FROM cards ORDER BY position ASC")
            return [self._row_to_card(row) for row in cursor.fetchall()]

    def get_card(self, card_id: str) -> Card | None:
        """Get a single card by ID."""
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("SELECT * FROM cards WHERE id = ?", (card_id,))
            row = cursor.fetchone()
        return self._row_to_card(row) if row else None

    def save(self, card: Card) -> None:
        """
        Insert or update a card, keyed by id.

        New cards are appended after the existing ones, so import order
        is preserved for new-card selection.

        Args:
            card: Card to persist (must have an id)
        """
        if card.id is None:
            raise ValueError("Cannot persist a card without an id")

        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                INSERT INTO cards (
                    id, position, front, back, state, factor, ivl, reps,
                    lapses, step_index, lapse_step_index, due, last_answered, extra
                ) VALUES (
                    ?, (SELECT COALESCE(MAX(position), -1) + 1 FROM cards),
                    ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?
                )
                ON CONFLICT(id) DO UPDATE SET
                    front = excluded.front,
                    back = excluded.back,
                    state = excluded.state,
                    factor = excluded.factor,
                    ivl = excluded.ivl,
                    reps = excluded.reps,
                    lapses = excluded.lapses,
                    step_index = excluded.step_index,
                    lapse_step_index = excluded.lapse_step_index,
                    due = excluded.due,
                    last_answered = excluded.last_answered,
                    extra = excluded.extra
            """,
                (
                    card.id,
                    card.front,
                    card.back,
                    card.state.value,
                    card.factor,
                    card.ivl,
                    card.reps,
                    card.lapses,
                    card.step_index,
                    card.lapse_step_index,
                    card.due.isoformat() if card.due else None,
                    card.last_answered.isoformat() if card.last_answered else None,
                    json.dumps(card.extra, default=str, ensure_ascii=False),
                ),
            )
            self.conn.commit()

    # =========================================================================
    # Import / Export
    # =========================================================================

    def import_records(self, records: Iterable[Any]) -> int:
        """
        Normalize and upsert card records.

        Records without an id are skipped, since the store is keyed by id.

        Args:
            records: Raw card mappings (current or legacy field names)

        Returns:
            Number of cards imported
        """
        imported = 0
        skipped = 0

        for record in records:
            card = normalize(record)
            if card.id is None:
                skipped += 1
                logger.warning(f"Skipping card without id: {str(record)[:80]}")
                continue
            self.save(card)
            imported += 1

        logger.info(f"Imported {imported} cards into {self.dataset} ({skipped} skipped)")
        return imported

    def import_json(self, path: Path) -> int:
        """
        Import cards from a JSON file.

        The file holds either a list of records or {"cards": [...]}.

        Args:
            path: Path to JSON file

        Returns:
            Number of cards imported

        Raises:
            CardImportError: If the file cannot be read or parsed
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CardImportError(f"Failed to load {path}: {e}") from e

        records = data.get("cards") if isinstance(data, dict) else data
        if not isinstance(records, list):
            raise CardImportError(f"{path} does not contain a list of cards")

        return self.import_records(records)

    def export_json(self, path: Path) -> int:
        """
        Write every card record to a JSON file.

        Returns:
            Number of cards exported
        """
        cards = self.load_cards()
        with open(path, "w", encoding="utf-8") as f:
            json.dump([c.to_dict() for c in cards], f, indent=2, ensure_ascii=False, default=str)
        logger.info(f"Exported {len(cards)} cards to {path}")
        return len(cards)

    # =========================================================================
    # Review Log Operations
    # =========================================================================

    def log_review(self, card_id: str, quality: int, before: Card, after: Card) -> int:
        """
        Log a review event.

        Args:
            card_id: The reviewed card
            quality: Rating given
            before: Card state before the answer
            after: Card state after the answer

        Returns:
            Review record ID
        """
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                INSERT INTO review_log (card_id, reviewed_at, quality, state_before, state_after, ivl)
                VALUES (?, ?, ?, ?, ?, ?)
            """,
                (
                    card_id,
                    datetime.now().isoformat(timespec="seconds"),
                    quality,
                    before.state.value,
                    after.state.value,
                    after.ivl,
                ),
            )
            self.conn.commit()
            return cursor.lastrowid

    def delete_review(self, review_id: int) -> bool:
        """
        Remove a logged review (used when an answer is undone).

        Returns:
            True if a row was deleted
        """
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("DELETE FROM review_log WHERE id = ?", (review_id,))
            self.conn.commit()
            return cursor.rowcount > 0

    def get_recent_reviews(self, limit: int = 50) -> list[ReviewRecord]:
        """Get most recent reviews across all cards."""
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                SELECT * FROM review_log
                ORDER BY id DESC
                LIMIT ?
            """,
                (limit,),
            )
            rows = cursor.fetchall()

        return [
            ReviewRecord(
                id=row["id"],
                card_id=row["card_id"],
                reviewed_at=datetime.fromisoformat(row["reviewed_at"]),
                quality=row["quality"],
                state_before=row["state_before"],
                state_after=row["state_after"],
                ivl=row["ivl"],
            )
            for row in rows
        ]

    def answered_dates(self) -> list[date]:
        """Distinct days with at least one logged review."""
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("SELECT DISTINCT substr(reviewed_at, 1, 10) AS day FROM review_log")
            days = [parse_date(row["day"]) for row in cursor.fetchall()]
        return sorted(d for d in days if d is not None)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None


# =============================================================================
# Background Sink
# =============================================================================


class BackgroundCardSink:
    """
    Fire-and-forget wrapper around a card sink.

    save() only enqueues; a daemon thread writes to the wrapped sink.
    Write failures are logged and dropped.

    Usage:
        sink = BackgroundCardSink(store)
        sink.start()
        # ... session runs ...
        sink.stop()
    """

    _STOP = object()

    def __init__(self, target: CardSink):
        self.target = target
        self._queue: queue.Queue[Any] = queue.Queue()
        self._thread: threading.Thread | None = None
        self.failures = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the writer thread."""
        if self.is_running:
            logger.warning("Background card sink already running")
            return
        self._thread = threading.Thread(
            target=self._drain,
            name="flashdeck-card-sink",
            daemon=True,
        )
        self._thread.start()

    def save(self, card: Card) -> None:
        """Queue a card for writing and return immediately."""
        if not self.is_running:
            self.start()
        self._queue.put(card)

    def flush(self) -> None:
        """Block until every queued card has been handled."""
        self._queue.join()

    def stop(self, timeout: float = 5.0) -> None:
        """Write out pending cards and stop the thread."""
        if not self.is_running:
            return
        self._queue.put(self._STOP)
        self._thread.join(timeout)
        self._thread = None

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is self._STOP:
                    return
                self.target.save(item)
            except Exception as e:
                self.failures += 1
                logger.warning(f"Background save failed for card {getattr(item, 'id', None)}: {e}")
            finally:
                self._queue.task_done()
