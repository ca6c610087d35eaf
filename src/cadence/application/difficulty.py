"""Classify a review outcome into a difficulty bucket from correctness and latency."""

from cadence.domain.models import ReviewDifficulty, StudySettings


def classify_difficulty(
    correct: bool, response_time_ms: int, settings: StudySettings
) -> ReviewDifficulty:
    """
    Map an answer to AGAIN, HARD, GOOD or EASY.

    Latency is truncated to whole seconds and compared with strict ``<``
    against each threshold. A correct answer slower than the hard threshold
    counts as a failure. When no hard threshold is configured, every slow
    correct answer is HARD.
    """
    if not correct:
        return ReviewDifficulty.AGAIN

    seconds = max(0, response_time_ms) // 1000

    if seconds < settings.easy_threshold_seconds:
        return ReviewDifficulty.EASY
    if seconds < settings.good_threshold_seconds:
        return ReviewDifficulty.GOOD
    if settings.hard_threshold_seconds is None or seconds < settings.hard_threshold_seconds:
        return ReviewDifficulty.HARD
    return ReviewDifficulty.AGAIN
