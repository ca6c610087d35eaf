"""
SQLite adapters for local cards and for server-side progress documents.

Timestamps are stored as epoch milliseconds and read back as UTC datetimes.
"""

import json
import logging
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Any

from cadence.domain.clock import from_millis, to_millis
from cadence.domain.exceptions import DeckNotFoundError
from cadence.domain.models import Card, CardStatus, Deck, DeckSettings, ReviewHistorySnapshot
from cadence.domain.ports import CardStore, RemoteProgressStore, StudyLogStore

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS decks (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    created_at INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS cards (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    deck_id TEXT NOT NULL REFERENCES decks(id),
    front TEXT NOT NULL,
    back TEXT NOT NULL,
    front_description TEXT NOT NULL DEFAULT '',
    back_description TEXT NOT NULL DEFAULT '',
    example_sentence TEXT NOT NULL DEFAULT '',
    image_uri TEXT,
    status TEXT NOT NULL DEFAULT 'NEW',
    ease_factor REAL NOT NULL DEFAULT 2.5,
    interval INTEGER NOT NULL DEFAULT 0,
    repetitions INTEGER NOT NULL DEFAULT 0,
    last_reviewed INTEGER,
    next_review_date INTEGER,
    created_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_cards_deck_status ON cards(deck_id, status);
CREATE TABLE IF NOT EXISTS deck_settings (
    deck_id TEXT PRIMARY KEY,
    is_frozen INTEGER NOT NULL DEFAULT 0,
    freeze_until_date INTEGER,
    last_studied_date INTEGER
);
CREATE TABLE IF NOT EXISTS new_card_tally (
    deck_id TEXT NOT NULL,
    day TEXT NOT NULL,
    count INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (deck_id, day)
);
CREATE TABLE IF NOT EXISTS review_history (
    deck_id TEXT NOT NULL,
    day TEXT NOT NULL,
    cards_reviewed INTEGER NOT NULL DEFAULT 0,
    new_cards INTEGER NOT NULL DEFAULT 0,
    learning_cards INTEGER NOT NULL DEFAULT 0,
    review_cards INTEGER NOT NULL DEFAULT 0,
    mastered_cards INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (deck_id, day)
);
"""

CARD_COLUMNS = (
    "id, deck_id, front, back, front_description, back_description, example_sentence, "
    "image_uri, status, ease_factor, interval, repetitions, last_reviewed, "
    "next_review_date, created_at"
)


def _connect(path: Path | str) -> sqlite3.Connection:
    if str(path) != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def _row_to_card(row: sqlite3.Row) -> Card:
    return Card(
        id=row["id"],
        deck_id=row["deck_id"],
        front=row["front"],
        back=row["back"],
        front_description=row["front_description"],
        back_description=row["back_description"],
        example_sentence=row["example_sentence"],
        image_uri=row["image_uri"],
        status=CardStatus(row["status"]),
        ease_factor=row["ease_factor"],
        interval=row["interval"],
        repetitions=row["repetitions"],
        last_reviewed=from_millis(row["last_reviewed"]),
        next_review_date=from_millis(row["next_review_date"]),
        created_at=from_millis(row["created_at"]),
    )


def _card_params(card: Card) -> tuple:
    return (
        card.id,
        card.deck_id,
        card.front,
        card.back,
        card.front_description,
        card.back_description,
        card.example_sentence,
        card.image_uri,
        card.status.value,
        card.ease_factor,
        card.interval,
        card.repetitions,
        to_millis(card.last_reviewed),
        to_millis(card.next_review_date),
        to_millis(card.created_at),
    )


class SqliteStore(CardStore, StudyLogStore):
    """
    Local persistent store.

    Usage:
        with SqliteStore(path) as store:
            store.get_review_due_cards(deck_id, now)
    """

    def __init__(self, path: Path | str):
        self.path = path
        self.conn = _connect(path)
        self.conn.executescript(SCHEMA)
        logger.debug(f"Opened card store at {path}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        self.conn.close()

    # ---------- Decks ----------

    def get_deck(self, deck_id: str) -> Deck | None:
        row = self.conn.execute("SELECT * FROM decks WHERE id = ?", (deck_id,)).fetchone()
        return self._row_to_deck(row) if row else None

    def list_decks(self) -> list[Deck]:
        rows = self.conn.execute("SELECT * FROM decks ORDER BY created_at, id").fetchall()
        return [self._row_to_deck(r) for r in rows]

    def add_deck(self, deck: Deck) -> Deck:
        with self.conn:
            self.conn.execute(
                "INSERT INTO decks (id, name, description, created_at) VALUES (?, ?, ?, ?)",
                (deck.id, deck.name, deck.description, to_millis(deck.created_at)),
            )
        return deck

    @staticmethod
    def _row_to_deck(row: sqlite3.Row) -> Deck:
        return Deck(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            created_at=from_millis(row["created_at"]),
        )

    # ---------- Cards ----------

    def get_card(self, card_id: str) -> Card | None:
        row = self.conn.execute(
            f"SELECT {CARD_COLUMNS} FROM cards WHERE id = ?", (card_id,)
        ).fetchone()
        return _row_to_card(row) if row else None

    def add_cards(self, cards: list[Card]) -> None:
        deck_ids = {c.deck_id for c in cards}
        for deck_id in deck_ids:
            if self.get_deck(deck_id) is None:
                raise DeckNotFoundError(deck_id)
        placeholders = ", ".join("?" * 15)
        with self.conn:
            self.conn.executemany(
                f"INSERT INTO cards ({CARD_COLUMNS}) VALUES ({placeholders})",
                [_card_params(c) for c in cards],
            )

    def get_review_due_cards(self, deck_id: str, now: datetime) -> list[Card]:
        rows = self.conn.execute(
            f"SELECT {CARD_COLUMNS} FROM cards "
            "WHERE deck_id = ? AND status != 'NEW' "
            "AND next_review_date IS NOT NULL AND next_review_date <= ? ORDER BY seq",
            (deck_id, to_millis(now)),
        ).fetchall()
        return [_row_to_card(r) for r in rows]

    def get_new_cards(self, deck_id: str, limit: int) -> list[Card]:
        if limit <= 0:
            return []
        rows = self.conn.execute(
            f"SELECT {CARD_COLUMNS} FROM cards WHERE deck_id = ? AND status = 'NEW' "
            "ORDER BY seq LIMIT ?",
            (deck_id, limit),
        ).fetchall()
        return [_row_to_card(r) for r in rows]

    def count_by_status(self, deck_id: str, status: CardStatus) -> int:
        return self.conn.execute(
            "SELECT COUNT(*) FROM cards WHERE deck_id = ? AND status = ?",
            (deck_id, status.value),
        ).fetchone()[0]

    def update_card(self, card: Card) -> None:
        with self.conn:
            self.conn.execute(
                "UPDATE cards SET status = ?, ease_factor = ?, interval = ?, repetitions = ?, "
                "last_reviewed = ?, next_review_date = ? WHERE id = ?",
                (
                    card.status.value,
                    card.ease_factor,
                    card.interval,
                    card.repetitions,
                    to_millis(card.last_reviewed),
                    to_millis(card.next_review_date),
                    card.id,
                ),
            )

    def get_all_cards_for_deck(self, deck_id: str) -> list[Card]:
        rows = self.conn.execute(
            f"SELECT {CARD_COLUMNS} FROM cards WHERE deck_id = ? ORDER BY seq", (deck_id,)
        ).fetchall()
        return [_row_to_card(r) for r in rows]

    # ---------- Study log ----------

    def get_deck_settings(self, deck_id: str) -> DeckSettings:
        row = self.conn.execute(
            "SELECT * FROM deck_settings WHERE deck_id = ?", (deck_id,)
        ).fetchone()
        if row is None:
            return DeckSettings(deck_id=deck_id)
        return DeckSettings(
            deck_id=deck_id,
            is_frozen=bool(row["is_frozen"]),
            freeze_until_date=from_millis(row["freeze_until_date"]),
            last_studied_date=from_millis(row["last_studied_date"]),
        )

    def save_deck_settings(self, settings: DeckSettings) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT OR REPLACE INTO deck_settings "
                "(deck_id, is_frozen, freeze_until_date, last_studied_date) VALUES (?, ?, ?, ?)",
                (
                    settings.deck_id,
                    int(settings.is_frozen),
                    to_millis(settings.freeze_until_date),
                    to_millis(settings.last_studied_date),
                ),
            )

    def get_new_cards_studied(self, deck_id: str, day: date) -> int:
        row = self.conn.execute(
            "SELECT count FROM new_card_tally WHERE deck_id = ? AND day = ?",
            (deck_id, day.isoformat()),
        ).fetchone()
        return row["count"] if row else 0

    def increment_new_cards_studied(self, deck_id: str, day: date) -> int:
        with self.conn:
            self.conn.execute(
                "INSERT INTO new_card_tally (deck_id, day, count) VALUES (?, ?, 1) "
                "ON CONFLICT(deck_id, day) DO UPDATE SET count = count + 1",
                (deck_id, day.isoformat()),
            )
        return self.get_new_cards_studied(deck_id, day)

    def get_snapshot(self, deck_id: str, day: date) -> ReviewHistorySnapshot | None:
        row = self.conn.execute(
            "SELECT * FROM review_history WHERE deck_id = ? AND day = ?",
            (deck_id, day.isoformat()),
        ).fetchone()
        return self._row_to_snapshot(row) if row else None

    def save_snapshot(self, snapshot: ReviewHistorySnapshot) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT OR REPLACE INTO review_history "
                "(deck_id, day, cards_reviewed, new_cards, learning_cards, review_cards, "
                "mastered_cards) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    snapshot.deck_id,
                    snapshot.day.isoformat(),
                    snapshot.cards_reviewed,
                    snapshot.new_cards,
                    snapshot.learning_cards,
                    snapshot.review_cards,
                    snapshot.mastered_cards,
                ),
            )

    def list_snapshots(self, deck_id: str) -> list[ReviewHistorySnapshot]:
        rows = self.conn.execute(
            "SELECT * FROM review_history WHERE deck_id = ? ORDER BY day", (deck_id,)
        ).fetchall()
        return [self._row_to_snapshot(r) for r in rows]

    @staticmethod
    def _row_to_snapshot(row: sqlite3.Row) -> ReviewHistorySnapshot:
        return ReviewHistorySnapshot(
            deck_id=row["deck_id"],
            day=date.fromisoformat(row["day"]),
            cards_reviewed=row["cards_reviewed"],
            new_cards=row["new_cards"],
            learning_cards=row["learning_cards"],
            review_cards=row["review_cards"],
            mastered_cards=row["mastered_cards"],
        )


PROGRESS_SCHEMA = """
CREATE TABLE IF NOT EXISTS progress_decks (
    user_id TEXT NOT NULL,
    deck_key TEXT NOT NULL,
    document TEXT NOT NULL,
    PRIMARY KEY (user_id, deck_key)
);
CREATE TABLE IF NOT EXISTS progress_cards (
    user_id TEXT NOT NULL,
    deck_key TEXT NOT NULL,
    card_key TEXT NOT NULL,
    document TEXT NOT NULL,
    PRIMARY KEY (user_id, deck_key, card_key)
);
"""


class SqliteProgressStore(RemoteProgressStore):
    """
    Server-side store for progress documents, one JSON document per row.

    The plain methods block on sqlite3; the server calls them from its
    threadpool. The async port methods wrap them for in-process use.
    """

    def __init__(self, path: Path | str):
        self.conn = _connect(path)
        self.conn.executescript(PROGRESS_SCHEMA)

    def close(self) -> None:
        self.conn.close()

    async def aclose(self) -> None:
        self.close()

    def card_documents(self, user_id: str, deck_key: str) -> dict[str, dict[str, Any]]:
        rows = self.conn.execute(
            "SELECT card_key, document FROM progress_cards WHERE user_id = ? AND deck_key = ?",
            (user_id, deck_key),
        ).fetchall()
        return {row["card_key"]: json.loads(row["document"]) for row in rows}

    def deck_document(self, user_id: str, deck_key: str) -> dict[str, Any] | None:
        row = self.conn.execute(
            "SELECT document FROM progress_decks WHERE user_id = ? AND deck_key = ?",
            (user_id, deck_key),
        ).fetchone()
        return json.loads(row["document"]) if row else None

    def merge_deck_document(self, user_id: str, deck_key: str, document: dict[str, Any]) -> None:
        merged = {**(self.deck_document(user_id, deck_key) or {}), **document}
        with self.conn:
            self.conn.execute(
                "INSERT OR REPLACE INTO progress_decks (user_id, deck_key, document) "
                "VALUES (?, ?, ?)",
                (user_id, deck_key, json.dumps(merged)),
            )

    def merge_card_document(
        self, user_id: str, deck_key: str, card_key: str, document: dict[str, Any]
    ) -> None:
        row = self.conn.execute(
            "SELECT document FROM progress_cards "
            "WHERE user_id = ? AND deck_key = ? AND card_key = ?",
            (user_id, deck_key, card_key),
        ).fetchone()
        merged = {**(json.loads(row["document"]) if row else {}), **document}
        with self.conn:
            self.conn.execute(
                "INSERT OR REPLACE INTO progress_cards (user_id, deck_key, card_key, document) "
                "VALUES (?, ?, ?, ?)",
                (user_id, deck_key, card_key, json.dumps(merged)),
            )

    async def fetch_card_documents(self, user_id: str, deck_key: str) -> dict[str, dict[str, Any]]:
        return self.card_documents(user_id, deck_key)

    async def upsert_deck_document(
        self, user_id: str, deck_key: str, document: dict[str, Any]
    ) -> None:
        self.merge_deck_document(user_id, deck_key, document)

    async def upsert_card_document(
        self, user_id: str, deck_key: str, card_key: str, document: dict[str, Any]
    ) -> None:
        self.merge_card_document(user_id, deck_key, card_key, document)
