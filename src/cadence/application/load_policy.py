"""
Daily load policy.

Computes how many review and new cards a deck may show today, applying
leniency (anti-pileup) and decay (anti-atrophy) adjustments. This is the
single implementation shared by the full queue path and the count-only path.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from cadence.domain.constants import BASE_REVIEW_DIVISOR
from cadence.domain.models import StudySettings

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class DailyLoad:
    """
    Effective limits for one deck on one day.

    Attributes:
        days_skipped: Whole days missed since the last session (-1 = studied today).
        new_cards_limit: Ceiling on new cards for the day.
        review_cards_limit: Ceiling on review cards after decay.
        review_count: How many of the due review cards to take.
        remaining_new_cards: New cards still allowed today.
    """

    days_skipped: int
    new_cards_limit: int
    review_cards_limit: int
    review_count: int
    remaining_new_cards: int


def days_skipped(last_studied: datetime | None, now: datetime) -> int:
    """
    Whole days skipped since ``last_studied``.

    A normal one-day gap counts as zero skipped days. Anything at or after
    ``now`` collapses to -1, the same as studying earlier today.
    """
    if last_studied is None:
        return 0
    return max(-1, (now - last_studied) // ONE_DAY - 1)


def compute_daily_load(
    settings: StudySettings,
    review_due_count: int,
    new_cards_already_studied: int,
    last_studied: datetime | None,
    now: datetime,
) -> DailyLoad:
    """
    Apply the daily caps to a raw review-due count.

    Args:
        settings: Study settings in effect.
        review_due_count: Number of review cards currently due.
        new_cards_already_studied: New cards already introduced today.
        last_studied: When the deck was last studied, if ever.
        now: Current time.

    Returns:
        DailyLoad with the capped review count and remaining new-card allowance.
    """
    skipped = days_skipped(last_studied, now)

    new_cards_limit = settings.daily_new_cards
    review_cards_limit = settings.daily_review_limit
    review_count = max(0, review_due_count)

    if settings.leniency_mode_enabled:
        max_review_cards = max(0, settings.max_review_cards)
        review_count = min(review_count, max_review_cards)

        if skipped > 0 and settings.max_new_cards_after_skip < new_cards_limit:
            new_cards_limit = settings.max_new_cards_after_skip

        base_reviews = settings.daily_review_limit // BASE_REVIEW_DIVISOR
        max_allowed_reviews = base_reviews + settings.daily_reviews_addable * (skipped + 1)
        review_count = min(review_count, max(0, min(max_allowed_reviews, max_review_cards)))

    if settings.decay_mode_enabled and skipped >= settings.decay_start_days:
        decay_days = skipped - settings.decay_start_days + 1
        decay_amount = decay_days * settings.decay_rate_per_day

        decayed_new = max(settings.decay_min_cards, settings.daily_new_cards - decay_amount)
        new_cards_limit = min(new_cards_limit, decayed_new)

        decayed_review = max(settings.decay_min_cards, settings.daily_review_limit - decay_amount)
        review_cards_limit = min(review_cards_limit, decayed_review)

        review_count = min(review_count, max(0, review_cards_limit))

    remaining_new = max(0, new_cards_limit - new_cards_already_studied)

    logger.debug(
        f"Daily load: skipped={skipped} new_limit={new_cards_limit} "
        f"review_limit={review_cards_limit} reviews={review_count}/{review_due_count} "
        f"remaining_new={remaining_new}"
    )

    return DailyLoad(
        days_skipped=skipped,
        new_cards_limit=new_cards_limit,
        review_cards_limit=review_cards_limit,
        review_count=review_count,
        remaining_new_cards=remaining_new,
    )
