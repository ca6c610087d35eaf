"""Content-derived identities for decks and cards, stable across independent databases."""

import hashlib
import re

from cadence.domain.clock import to_millis
from cadence.domain.constants import DEFAULT_EASE_FACTOR
from cadence.domain.models import Card, CardStatus, Deck

_WHITESPACE = re.compile(r"\s+")


def normalize_for_key(value: str) -> str:
    """Trim, lowercase and collapse internal whitespace runs to one space."""
    return _WHITESPACE.sub(" ", value.strip().lower())


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def deck_key(deck: Deck | str) -> str:
    name = deck.name if isinstance(deck, Deck) else deck
    return sha256_hex(normalize_for_key(name))


def card_key(card: Card) -> str:
    front = normalize_for_key(card.front)
    back = normalize_for_key(card.back)
    return sha256_hex(f"{front}\x00{back}")


def local_freshness(card: Card) -> int:
    """
    Most recent of the card's creation, review and due timestamps, in epoch ms.

    Missing timestamps count as 0.
    """
    return max(
        to_millis(card.created_at) or 0,
        to_millis(card.last_reviewed) or 0,
        to_millis(card.next_review_date) or 0,
    )


def has_progress(card: Card) -> bool:
    """True when the card's scheduling state differs from a brand-new card."""
    return (
        card.status != CardStatus.NEW
        or card.last_reviewed is not None
        or card.next_review_date is not None
        or card.repetitions != 0
        or card.interval != 0
        or card.ease_factor != DEFAULT_EASE_FACTOR
    )
