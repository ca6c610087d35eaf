"""Centralized constants for the cadence engine.

All magic numbers and scheduling defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Ease factor ----------
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
AGAIN_EASE_PENALTY = 0.2
HARD_EASE_PENALTY = 0.15
EASY_EASE_BONUS = 0.15

# ---------- Intervals (minutes) ----------
HARD_INTERVAL_MULTIPLIER = 1.2
EASY_INTERVAL_MULTIPLIER = 2
MIN_INTERVAL_MINUTES = 1

# ---------- Daily load ----------
BASE_REVIEW_DIVISOR = 5  # daily_review_limit // 5 reviews always allowed

# ---------- Queue Builder ----------
REVIEWS_PER_NEW_CARD = 3

# ---------- Sync ----------
REMOTE_DEBUG_TEXT_LEN = 200
REQUEST_TIMEOUT = 30.0
RESPONSIVENESS_TIMEOUT = 2.0
