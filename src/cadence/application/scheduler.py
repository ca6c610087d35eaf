"""
Interval scheduler.

State machine over NEW / LEARNING / REVIEW / MASTERED driven by the classified
difficulty. Every function here is pure: the caller persists the returned card.
"""

import logging
from dataclasses import replace
from datetime import datetime, timedelta

from cadence.application.difficulty import classify_difficulty
from cadence.domain.constants import (
    AGAIN_EASE_PENALTY,
    EASY_EASE_BONUS,
    EASY_INTERVAL_MULTIPLIER,
    HARD_EASE_PENALTY,
    HARD_INTERVAL_MULTIPLIER,
    MIN_EASE_FACTOR,
    MIN_INTERVAL_MINUTES,
)
from cadence.domain.models import Card, CardStatus, ReviewDifficulty, StudySettings

logger = logging.getLogger(__name__)


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def _clamp_ease(value: float) -> float:
    return max(MIN_EASE_FACTOR, value)


def _minutes(value: int) -> int:
    return max(MIN_INTERVAL_MINUTES, value)


def next_calendar_day(now: datetime) -> datetime:
    """Same wall-clock time tomorrow in ``now``'s timezone."""
    return now + timedelta(days=1)


def schedule_card(
    card: Card, difficulty: ReviewDifficulty, settings: StudySettings, now: datetime
) -> Card:
    """Return a copy of ``card`` with its next status, ease, interval and due date."""
    good_minutes = _minutes(settings.good_interval_minutes)

    if difficulty == ReviewDifficulty.AGAIN:
        # Failed cards come back tomorrow, never in the same sitting
        return replace(
            card,
            status=CardStatus.LEARNING,
            interval=0,
            ease_factor=_clamp_ease(card.ease_factor - AGAIN_EASE_PENALTY),
            repetitions=0,
            last_reviewed=now,
            next_review_date=next_calendar_day(now),
        )

    if difficulty == ReviewDifficulty.HARD:
        if card.status == CardStatus.NEW:
            interval = settings.hard_interval_minutes
        else:
            interval = _round_half_up(card.interval * HARD_INTERVAL_MULTIPLIER)
        interval = _minutes(interval)
        return replace(
            card,
            status=CardStatus.LEARNING,
            interval=interval,
            ease_factor=_clamp_ease(card.ease_factor - HARD_EASE_PENALTY),
            repetitions=card.repetitions + 1,
            last_reviewed=now,
            next_review_date=now + timedelta(minutes=interval),
        )

    if difficulty == ReviewDifficulty.GOOD:
        if card.status == CardStatus.NEW or card.interval == 0:
            interval = good_minutes
        else:
            interval = _minutes(_round_half_up(card.interval * card.ease_factor))
        status = CardStatus.REVIEW if interval >= good_minutes else CardStatus.LEARNING
        return replace(
            card,
            status=status,
            interval=interval,
            repetitions=card.repetitions + 1,
            last_reviewed=now,
            next_review_date=now + timedelta(minutes=interval),
        )

    # EASY
    if card.interval < good_minutes:
        interval = _minutes(settings.easy_interval_minutes)
    else:
        interval = card.interval * EASY_INTERVAL_MULTIPLIER
    return replace(
        card,
        status=CardStatus.MASTERED,
        interval=interval,
        ease_factor=card.ease_factor + EASY_EASE_BONUS,
        repetitions=card.repetitions + 1,
        last_reviewed=now,
        next_review_date=now + timedelta(minutes=interval),
    )


def apply_review(
    card: Card,
    response_time_ms: int,
    correct: bool,
    settings: StudySettings,
    now: datetime,
) -> Card:
    """Classify an answer and reschedule the card accordingly."""
    difficulty = classify_difficulty(correct, response_time_ms, settings)
    updated = schedule_card(card, difficulty, settings, now)
    logger.debug(
        f"Card {card.id}: {difficulty.value} -> {updated.status.value}, "
        f"interval={updated.interval}m, ease={updated.ease_factor}"
    )
    return updated
