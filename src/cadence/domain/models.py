"""
Domain models for decks, cards and study configuration.

Cards and decks are plain dataclasses with no I/O. StudySettings is a frozen
pydantic model so it can be loaded from config files, presets and API payloads.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict

from .constants import DEFAULT_EASE_FACTOR


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CardStatus(str, Enum):
    NEW = "NEW"  # Never seen
    LEARNING = "LEARNING"  # Recently failed or answered slowly
    REVIEW = "REVIEW"  # In review rotation
    MASTERED = "MASTERED"  # Answered quickly and confidently


class ReviewDifficulty(str, Enum):
    AGAIN = "AGAIN"
    HARD = "HARD"
    GOOD = "GOOD"
    EASY = "EASY"


@dataclass
class Deck:
    id: str
    name: str
    description: str = ""
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class Card:
    """
    A flashcard with its scheduling state.

    Attributes:
        interval: Current interval in minutes.
        last_reviewed: When the card was last answered (None if never).
        next_review_date: When the card becomes due again (None if never scheduled).
    """

    id: str
    deck_id: str
    front: str
    back: str

    # Display content, ignored by the scheduler
    front_description: str = ""
    back_description: str = ""
    example_sentence: str = ""
    image_uri: str | None = None

    # Scheduling state
    status: CardStatus = CardStatus.NEW
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = 0
    repetitions: int = 0
    last_reviewed: datetime | None = None
    next_review_date: datetime | None = None
    created_at: datetime = field(default_factory=_utcnow)

    def is_due(self, now: datetime) -> bool:
        if self.status == CardStatus.NEW:
            return True
        return self.next_review_date is not None and self.next_review_date <= now

    def is_review_due(self, now: datetime) -> bool:
        """Due for review: already seen and its scheduled time has passed."""
        return self.status != CardStatus.NEW and self.is_due(now)


class StudySettings(BaseModel):
    """
    Per-installation study configuration.

    Values are never range-checked here; the scheduling functions clamp
    out-of-range values instead of rejecting them.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    daily_new_cards: int = 20
    daily_review_limit: int = 100

    # Interval lengths in minutes
    again_interval_minutes: int = 1
    hard_interval_minutes: int = 5
    good_interval_minutes: int = 1440  # 1 day
    easy_interval_minutes: int = 5760  # 4 days

    # Response time thresholds in seconds
    easy_threshold_seconds: int = 3
    good_threshold_seconds: int = 5
    hard_threshold_seconds: int | None = None  # None: slow correct answers stay HARD

    # Leniency mode: keeps reviews from piling up after skipped days
    leniency_mode_enabled: bool = True
    max_new_cards_after_skip: int = 30
    max_review_cards: int = 50
    daily_reviews_addable: int = 20

    # Decay mode: shrinks daily targets after extended inactivity
    decay_mode_enabled: bool = True
    decay_start_days: int = 5
    decay_rate_per_day: int = 2
    decay_min_cards: int = 10


@dataclass
class DeckSettings:
    deck_id: str
    is_frozen: bool = False
    freeze_until_date: datetime | None = None
    last_studied_date: datetime | None = None


@dataclass
class ReviewHistorySnapshot:
    """Per-deck, per-day status counts. Observational only."""

    deck_id: str
    day: date
    cards_reviewed: int = 0
    new_cards: int = 0
    learning_cards: int = 0
    review_cards: int = 0
    mastered_cards: int = 0


@dataclass(frozen=True)
class DeckStats:
    deck: Deck
    total_cards: int
    new_cards: int
    learning_cards: int
    review_cards: int
    mastered_cards: int
    due_for_review: int
