"""
Ports (interfaces) for storage, settings and remote progress.

These define the contract that infrastructure adapters must implement.
The scheduling engine depends on these abstractions, never on a concrete store.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any

from .models import Card, CardStatus, Deck, DeckSettings, ReviewHistorySnapshot, StudySettings


class CardStore(ABC):
    """
    Port for card and deck records.

    Implementations:
        - InMemoryStore: dict-backed, for tests and embedding.
        - SqliteStore: persistent local database.

    Queries return cards in store iteration order; the engine relies on that
    order for truncation and never re-sorts.
    """

    @abstractmethod
    def get_deck(self, deck_id: str) -> Deck | None:
        pass

    @abstractmethod
    def list_decks(self) -> list[Deck]:
        pass

    @abstractmethod
    def add_deck(self, deck: Deck) -> Deck:
        pass

    @abstractmethod
    def get_card(self, card_id: str) -> Card | None:
        pass

    @abstractmethod
    def add_cards(self, cards: list[Card]) -> None:
        pass

    @abstractmethod
    def get_review_due_cards(self, deck_id: str, now: datetime) -> list[Card]:
        """Cards already seen whose next review date is at or before ``now``."""
        pass

    @abstractmethod
    def get_new_cards(self, deck_id: str, limit: int) -> list[Card]:
        pass

    @abstractmethod
    def count_by_status(self, deck_id: str, status: CardStatus) -> int:
        pass

    @abstractmethod
    def update_card(self, card: Card) -> None:
        """Persist a single card atomically."""
        pass

    @abstractmethod
    def get_all_cards_for_deck(self, deck_id: str) -> list[Card]:
        pass


class StudyLogStore(ABC):
    """
    Port for per-deck study bookkeeping: deck settings, today's new-card
    tally and daily history snapshots.
    """

    @abstractmethod
    def get_deck_settings(self, deck_id: str) -> DeckSettings:
        """Return stored settings, or defaults when the deck has none yet."""
        pass

    @abstractmethod
    def save_deck_settings(self, settings: DeckSettings) -> None:
        pass

    @abstractmethod
    def get_new_cards_studied(self, deck_id: str, day: date) -> int:
        pass

    @abstractmethod
    def increment_new_cards_studied(self, deck_id: str, day: date) -> int:
        pass

    @abstractmethod
    def get_snapshot(self, deck_id: str, day: date) -> ReviewHistorySnapshot | None:
        pass

    @abstractmethod
    def save_snapshot(self, snapshot: ReviewHistorySnapshot) -> None:
        pass

    @abstractmethod
    def list_snapshots(self, deck_id: str) -> list[ReviewHistorySnapshot]:
        pass


class SettingsProvider(ABC):
    @abstractmethod
    def study_settings(self) -> StudySettings:
        """Return the settings in effect for one scheduling computation."""
        pass


class RemoteProgressStore(ABC):
    """
    Port for the remote per-user progress documents.

    Documents are keyed by (user_id, deck_key, card_key) and carry the
    wire fields: status, easeFactor, interval, repetitions, lastReviewed,
    nextReviewDate, updatedAt (epoch milliseconds).

    Implementations raise RemoteStoreError on transport or auth failures.
    """

    @abstractmethod
    async def fetch_card_documents(self, user_id: str, deck_key: str) -> dict[str, dict[str, Any]]:
        """Return all card documents for a deck, keyed by card key."""
        pass

    @abstractmethod
    async def upsert_deck_document(
        self, user_id: str, deck_key: str, document: dict[str, Any]
    ) -> None:
        pass

    @abstractmethod
    async def upsert_card_document(
        self, user_id: str, deck_key: str, card_key: str, document: dict[str, Any]
    ) -> None:
        """Merge ``document`` into the stored card document."""
        pass

    async def aclose(self) -> None:
        """Release connections held by the store."""
        return None
