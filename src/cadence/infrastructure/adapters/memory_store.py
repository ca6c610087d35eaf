"""
In-memory adapters for the card store, study log and remote progress store.

Dict-backed and insertion ordered. Used by tests and by callers that keep
their own persistence.
"""

import copy
from dataclasses import replace
from datetime import date, datetime
from typing import Any

from cadence.domain.exceptions import DeckNotFoundError
from cadence.domain.models import Card, CardStatus, Deck, DeckSettings, ReviewHistorySnapshot
from cadence.domain.ports import CardStore, RemoteProgressStore, StudyLogStore


class InMemoryStore(CardStore, StudyLogStore):
    def __init__(self):
        self._decks: dict[str, Deck] = {}
        self._cards: dict[str, Card] = {}
        self._deck_settings: dict[str, DeckSettings] = {}
        self._tallies: dict[tuple[str, date], int] = {}
        self._snapshots: dict[tuple[str, date], ReviewHistorySnapshot] = {}

    # ---------- Decks ----------

    def get_deck(self, deck_id: str) -> Deck | None:
        return self._decks.get(deck_id)

    def list_decks(self) -> list[Deck]:
        return list(self._decks.values())

    def add_deck(self, deck: Deck) -> Deck:
        self._decks[deck.id] = deck
        return deck

    # ---------- Cards ----------

    def get_card(self, card_id: str) -> Card | None:
        card = self._cards.get(card_id)
        return replace(card) if card else None

    def add_cards(self, cards: list[Card]) -> None:
        for card in cards:
            if card.deck_id not in self._decks:
                raise DeckNotFoundError(card.deck_id)
            self._cards[card.id] = replace(card)

    def get_review_due_cards(self, deck_id: str, now: datetime) -> list[Card]:
        return [
            replace(c)
            for c in self._cards.values()
            if c.deck_id == deck_id and c.is_review_due(now)
        ]

    def get_new_cards(self, deck_id: str, limit: int) -> list[Card]:
        if limit <= 0:
            return []
        new_cards = [
            c for c in self._cards.values() if c.deck_id == deck_id and c.status == CardStatus.NEW
        ]
        return [replace(c) for c in new_cards[:limit]]

    def count_by_status(self, deck_id: str, status: CardStatus) -> int:
        return sum(1 for c in self._cards.values() if c.deck_id == deck_id and c.status == status)

    def update_card(self, card: Card) -> None:
        # Replacing the value keeps the key's original position
        self._cards[card.id] = replace(card)

    def get_all_cards_for_deck(self, deck_id: str) -> list[Card]:
        return [replace(c) for c in self._cards.values() if c.deck_id == deck_id]

    # ---------- Study log ----------

    def get_deck_settings(self, deck_id: str) -> DeckSettings:
        stored = self._deck_settings.get(deck_id)
        return replace(stored) if stored else DeckSettings(deck_id=deck_id)

    def save_deck_settings(self, settings: DeckSettings) -> None:
        self._deck_settings[settings.deck_id] = replace(settings)

    def get_new_cards_studied(self, deck_id: str, day: date) -> int:
        return self._tallies.get((deck_id, day), 0)

    def increment_new_cards_studied(self, deck_id: str, day: date) -> int:
        count = self._tallies.get((deck_id, day), 0) + 1
        self._tallies[(deck_id, day)] = count
        return count

    def get_snapshot(self, deck_id: str, day: date) -> ReviewHistorySnapshot | None:
        snapshot = self._snapshots.get((deck_id, day))
        return replace(snapshot) if snapshot else None

    def save_snapshot(self, snapshot: ReviewHistorySnapshot) -> None:
        self._snapshots[(snapshot.deck_id, snapshot.day)] = replace(snapshot)

    def list_snapshots(self, deck_id: str) -> list[ReviewHistorySnapshot]:
        return sorted(
            (replace(s) for (d, _), s in self._snapshots.items() if d == deck_id),
            key=lambda s: s.day,
        )


class InMemoryProgressStore(RemoteProgressStore):
    """Remote progress documents held in a nested dict: user -> deck -> card -> doc."""

    def __init__(self):
        self.decks: dict[tuple[str, str], dict[str, Any]] = {}
        self.cards: dict[tuple[str, str], dict[str, dict[str, Any]]] = {}
        self.writes = 0

    async def fetch_card_documents(self, user_id: str, deck_key: str) -> dict[str, dict[str, Any]]:
        return copy.deepcopy(self.cards.get((user_id, deck_key), {}))

    async def upsert_deck_document(
        self, user_id: str, deck_key: str, document: dict[str, Any]
    ) -> None:
        self.decks.setdefault((user_id, deck_key), {}).update(document)

    async def upsert_card_document(
        self, user_id: str, deck_key: str, card_key: str, document: dict[str, Any]
    ) -> None:
        docs = self.cards.setdefault((user_id, deck_key), {})
        docs.setdefault(card_key, {}).update(copy.deepcopy(document))
        self.writes += 1
