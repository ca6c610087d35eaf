from datetime import timedelta

import pytest

from cadence.application.load_policy import compute_daily_load, days_skipped
from cadence.domain.models import StudySettings


@pytest.mark.parametrize(
    "ago, expected",
    [
        (timedelta(hours=2), -1),
        (timedelta(days=1), 0),
        (timedelta(days=1, hours=23), 0),
        (timedelta(days=3), 2),
        (-timedelta(days=5), -1),
    ],
)
def test_days_skipped(now, ago, expected):
    assert days_skipped(now - ago, now) == expected


def test_days_skipped_without_history(now):
    assert days_skipped(None, now) == 0


def test_leniency_caps_reviews_when_studying_daily(settings, now):
    load = compute_daily_load(
        settings,
        review_due_count=60,
        new_cards_already_studied=0,
        last_studied=now - timedelta(days=1),
        now=now,
    )
    # daily_review_limit // 5 + daily_reviews_addable * 1
    assert load.review_count == 40
    assert load.remaining_new_cards == 20


def test_leniency_allowance_grows_with_skipped_days_up_to_max(settings, now):
    load = compute_daily_load(settings, 200, 0, now - timedelta(days=3), now)
    assert load.days_skipped == 2
    assert load.review_count == 50


def test_leniency_never_exceeds_due_count(settings, now):
    load = compute_daily_load(settings, 7, 0, now - timedelta(days=1), now)
    assert load.review_count == 7


def test_new_card_limit_after_skip(now):
    settings = StudySettings(max_new_cards_after_skip=5)
    skipped = compute_daily_load(settings, 0, 0, now - timedelta(days=3), now)
    daily = compute_daily_load(settings, 0, 0, now - timedelta(days=1), now)

    assert skipped.new_cards_limit == 5
    assert daily.new_cards_limit == 20


def test_leniency_disabled_shows_everything_due(now):
    settings = StudySettings(leniency_mode_enabled=False, decay_mode_enabled=False)
    load = compute_daily_load(settings, 500, 0, now - timedelta(days=1), now)
    assert load.review_count == 500


def test_decay_shrinks_targets_after_long_absence(settings, now):
    # 11 days since last session: 10 skipped, 6 decay days at 2 per day
    load = compute_daily_load(settings, 0, 0, now - timedelta(days=11), now)
    assert load.days_skipped == 10
    assert load.new_cards_limit == 10
    assert load.review_cards_limit == 88


def test_decay_respects_minimum(now):
    settings = StudySettings(daily_review_limit=30, leniency_mode_enabled=False)
    load = compute_daily_load(settings, 100, 0, now - timedelta(days=21), now)
    assert load.new_cards_limit == 10
    assert load.review_cards_limit == 10
    assert load.review_count == 10


def test_decay_not_applied_before_start_day(settings, now):
    load = compute_daily_load(settings, 0, 0, now - timedelta(days=5), now)
    assert load.days_skipped == 4
    assert load.new_cards_limit == 20
    assert load.review_cards_limit == 100


def test_remaining_new_cards_never_negative(settings, now):
    assert compute_daily_load(settings, 0, 15, None, now).remaining_new_cards == 5
    assert compute_daily_load(settings, 0, 25, None, now).remaining_new_cards == 0


def test_negative_due_count_is_clamped(settings, now):
    assert compute_daily_load(settings, -3, 0, None, now).review_count == 0


def test_leniency_selects_forty_of_fifty_five_due(now):
    settings = StudySettings(
        daily_review_limit=100, daily_reviews_addable=20, max_review_cards=50
    )
    load = compute_daily_load(settings, 55, 0, now - timedelta(days=1), now)

    assert load.days_skipped == 0
    assert load.review_count == 40


def test_decay_floor_after_nine_skipped_days(now):
    settings = StudySettings(
        daily_new_cards=20, decay_start_days=5, decay_rate_per_day=2, decay_min_cards=10
    )
    # 10 days since the last session: 9 skipped, 5 decay days, decay amount 10
    load = compute_daily_load(settings, 0, 0, now - timedelta(days=10), now)

    assert load.days_skipped == 9
    assert load.new_cards_limit == 10
    assert load.review_cards_limit == 90


def test_decay_starts_on_decay_start_day(settings, now):
    # 5 skipped days: first decay day, decay amount 2
    load = compute_daily_load(settings, 200, 0, now - timedelta(days=6), now)

    assert load.days_skipped == 5
    assert load.new_cards_limit == 18
    assert load.review_cards_limit == 98
    assert load.review_count == 50
