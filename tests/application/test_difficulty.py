import pytest

from cadence.application.difficulty import classify_difficulty
from cadence.domain.models import ReviewDifficulty, StudySettings


@pytest.mark.parametrize(
    "ms, expected",
    [
        (0, ReviewDifficulty.EASY),
        (2999, ReviewDifficulty.EASY),
        (3000, ReviewDifficulty.GOOD),
        (4999, ReviewDifficulty.GOOD),
        (5000, ReviewDifficulty.HARD),
        (120_000, ReviewDifficulty.HARD),
    ],
)
def test_correct_answer_buckets(settings, ms, expected):
    assert classify_difficulty(True, ms, settings) == expected


def test_wrong_answer_is_always_again(settings):
    assert classify_difficulty(False, 0, settings) == ReviewDifficulty.AGAIN
    assert classify_difficulty(False, 60_000, settings) == ReviewDifficulty.AGAIN


def test_negative_latency_counts_as_zero(settings):
    assert classify_difficulty(True, -500, settings) == ReviewDifficulty.EASY


def test_hard_threshold_turns_slow_answers_into_failures():
    settings = StudySettings(hard_threshold_seconds=10)
    assert classify_difficulty(True, 9999, settings) == ReviewDifficulty.HARD
    assert classify_difficulty(True, 10_000, settings) == ReviewDifficulty.AGAIN


def test_custom_thresholds():
    settings = StudySettings(easy_threshold_seconds=1, good_threshold_seconds=2)
    assert classify_difficulty(True, 999, settings) == ReviewDifficulty.EASY
    assert classify_difficulty(True, 1500, settings) == ReviewDifficulty.GOOD
    assert classify_difficulty(True, 2000, settings) == ReviewDifficulty.HARD
