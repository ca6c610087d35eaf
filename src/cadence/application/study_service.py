"""
Study service — application layer orchestrator.

Composes the pure scheduling engine with the card store, the per-deck study
log and the settings provider. Time always comes from the injected Clock.
"""

import logging

from cadence.application.queue_builder import DueCounts, compute_due_counts, compute_study_queue
from cadence.application.scheduler import apply_review
from cadence.domain.clock import Clock, SystemClock
from cadence.domain.exceptions import CardNotFoundError, DeckNotFoundError
from cadence.domain.models import Card, CardStatus, DeckStats, ReviewHistorySnapshot
from cadence.domain.ports import CardStore, SettingsProvider, StudyLogStore

logger = logging.getLogger(__name__)


class StudyService:
    """
    Application service for building study sessions and recording answers.

    Follows Dependency Inversion: depends on the store and settings ports,
    not on concrete adapters.
    """

    def __init__(
        self,
        store: CardStore,
        log_store: StudyLogStore,
        settings_provider: SettingsProvider,
        clock: Clock | None = None,
    ):
        """
        Args:
            store: Card and deck records.
            log_store: Deck settings, new-card tallies and history snapshots.
            settings_provider: Source of the study settings for each computation.
            clock: Time source; defaults to the system clock.
        """
        self._store = store
        self._log = log_store
        self._settings = settings_provider
        self._clock = clock or SystemClock()

    def study_queue(self, deck_id: str) -> list[Card]:
        """Today's ordered queue for a deck."""
        self._require_deck(deck_id)
        now = self._clock.now()
        return compute_study_queue(
            self._store,
            deck_id,
            self._settings.study_settings(),
            new_cards_studied_today=self._log.get_new_cards_studied(deck_id, now.date()),
            last_studied_date=self._log.get_deck_settings(deck_id).last_studied_date,
            now=now,
        )

    def due_counts(self, deck_id: str) -> DueCounts:
        self._require_deck(deck_id)
        now = self._clock.now()
        return compute_due_counts(
            self._store,
            deck_id,
            self._settings.study_settings(),
            new_cards_studied_today=self._log.get_new_cards_studied(deck_id, now.date()),
            last_studied_date=self._log.get_deck_settings(deck_id).last_studied_date,
            now=now,
        )

    def start_session(self, deck_id: str) -> list[Card]:
        """
        Build the queue and mark the deck as studied now.

        The queue is computed before the study date moves, so skipped days
        are measured from the previous session.
        """
        queue = self.study_queue(deck_id)
        deck_settings = self._log.get_deck_settings(deck_id)
        deck_settings.last_studied_date = self._clock.now()
        self._log.save_deck_settings(deck_settings)
        logger.info(f"Started session for deck {deck_id} with {len(queue)} cards")
        return queue

    def answer(
        self,
        card: Card,
        response_time_ms: int,
        correct: bool,
        first_time_new: bool | None = None,
    ) -> Card:
        """
        Record one answer: reschedule, persist, and update today's bookkeeping.

        Args:
            card: The card that was answered.
            response_time_ms: Time from showing the card to answering.
            correct: Whether the learner recalled it.
            first_time_new: Whether this is the card's first showing; defaults
                to ``card.status == NEW``. Counts toward today's new-card tally
                only when answered correctly.

        Returns:
            The updated card as persisted.
        """
        now = self._clock.now()
        updated = apply_review(card, response_time_ms, correct, self._settings.study_settings(), now)
        self._store.update_card(updated)

        if first_time_new is None:
            first_time_new = card.status == CardStatus.NEW
        if first_time_new and correct:
            self._log.increment_new_cards_studied(card.deck_id, now.date())

        self._record_history(card.deck_id, reviewed=1)
        return updated

    def answer_by_id(self, card_id: str, response_time_ms: int, correct: bool) -> Card:
        card = self._store.get_card(card_id)
        if card is None:
            raise CardNotFoundError(card_id)
        return self.answer(card, response_time_ms, correct)

    def ensure_today_snapshot(self, deck_id: str) -> ReviewHistorySnapshot:
        """Create or refresh today's snapshot without counting a review."""
        return self._record_history(deck_id, reviewed=0)

    def deck_stats(self, deck_id: str) -> DeckStats:
        deck = self._require_deck(deck_id)
        now = self._clock.now()
        cards = self._store.get_all_cards_for_deck(deck_id)
        return DeckStats(
            deck=deck,
            total_cards=len(cards),
            new_cards=sum(1 for c in cards if c.status == CardStatus.NEW),
            learning_cards=sum(1 for c in cards if c.status == CardStatus.LEARNING),
            review_cards=sum(1 for c in cards if c.status == CardStatus.REVIEW),
            mastered_cards=sum(1 for c in cards if c.status == CardStatus.MASTERED),
            due_for_review=sum(1 for c in cards if c.is_due(now)),
        )

    def _record_history(self, deck_id: str, reviewed: int) -> ReviewHistorySnapshot:
        today = self._clock.today()
        snapshot = self._log.get_snapshot(deck_id, today) or ReviewHistorySnapshot(
            deck_id=deck_id, day=today
        )
        snapshot.cards_reviewed += reviewed
        snapshot.new_cards = self._store.count_by_status(deck_id, CardStatus.NEW)
        snapshot.learning_cards = self._store.count_by_status(deck_id, CardStatus.LEARNING)
        snapshot.review_cards = self._store.count_by_status(deck_id, CardStatus.REVIEW)
        snapshot.mastered_cards = self._store.count_by_status(deck_id, CardStatus.MASTERED)
        self._log.save_snapshot(snapshot)
        return snapshot

    def _require_deck(self, deck_id: str):
        deck = self._store.get_deck(deck_id)
        if deck is None:
            raise DeckNotFoundError(deck_id)
        return deck
