"""
Queue builder for daily study sessions.

Builds ordered study queues by:
1. Fetching review-due cards and capping them with the daily load policy
2. Fetching up to the remaining new-card allowance
3. Interleaving the two lists at a fixed reviews-per-new cadence
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TypeVar

from cadence.application.load_policy import DailyLoad, compute_daily_load
from cadence.domain.constants import REVIEWS_PER_NEW_CARD
from cadence.domain.models import Card, CardStatus, StudySettings
from cadence.domain.ports import CardStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class DueCounts:
    """Cards the next session will show."""

    review_count: int
    new_count: int

    @property
    def total(self) -> int:
        return self.review_count + self.new_count


def interleave(
    review_cards: list[T], new_cards: list[T], reviews_per_new: int = REVIEWS_PER_NEW_CARD
) -> list[T]:
    """
    Emit up to ``reviews_per_new`` review cards, then one new card, repeating.

    Whatever remains of either list once the other is exhausted is appended
    unchanged. If either list is empty the other is returned as-is.
    """
    if not review_cards:
        return list(new_cards)
    if not new_cards:
        return list(review_cards)

    step = max(1, reviews_per_new)
    result: list[T] = []
    review_index = 0
    new_index = 0

    while review_index < len(review_cards) and new_index < len(new_cards):
        chunk = review_cards[review_index : review_index + step]
        result.extend(chunk)
        review_index += len(chunk)
        result.append(new_cards[new_index])
        new_index += 1

    result.extend(review_cards[review_index:])
    result.extend(new_cards[new_index:])
    return result


def _load_for(
    store: CardStore,
    deck_id: str,
    settings: StudySettings,
    new_cards_studied_today: int,
    last_studied_date: datetime | None,
    now: datetime,
) -> tuple[list[Card], DailyLoad]:
    review_due = store.get_review_due_cards(deck_id, now)
    load = compute_daily_load(
        settings,
        review_due_count=len(review_due),
        new_cards_already_studied=new_cards_studied_today,
        last_studied=last_studied_date,
        now=now,
    )
    return review_due, load


def compute_study_queue(
    store: CardStore,
    deck_id: str,
    settings: StudySettings,
    new_cards_studied_today: int,
    last_studied_date: datetime | None,
    now: datetime,
) -> list[Card]:
    """
    Build today's ordered study queue for a deck.

    Review cards are truncated in store order, not priority sorted.

    Args:
        store: Card store to read from.
        deck_id: Deck to study.
        settings: Study settings in effect.
        new_cards_studied_today: New cards already introduced today.
        last_studied_date: When the deck was last studied, if ever.
        now: Current time.

    Returns:
        Review and new cards interleaved 3:1.
    """
    review_due, load = _load_for(
        store, deck_id, settings, new_cards_studied_today, last_studied_date, now
    )
    review_cards = review_due[: load.review_count]
    new_cards = (
        store.get_new_cards(deck_id, load.remaining_new_cards)
        if load.remaining_new_cards > 0
        else []
    )

    logger.debug(
        f"Deck {deck_id}: {len(review_cards)}/{len(review_due)} reviews, "
        f"{len(new_cards)} new cards queued"
    )
    return interleave(review_cards, new_cards)


def compute_due_counts(
    store: CardStore,
    deck_id: str,
    settings: StudySettings,
    new_cards_studied_today: int,
    last_studied_date: datetime | None,
    now: datetime,
) -> DueCounts:
    """Count the cards ``compute_study_queue`` would return, without fetching new cards."""
    _, load = _load_for(store, deck_id, settings, new_cards_studied_today, last_studied_date, now)
    new_available = store.count_by_status(deck_id, CardStatus.NEW)
    return DueCounts(
        review_count=load.review_count,
        new_count=min(new_available, load.remaining_new_cards),
    )
