"""Local row identifiers for decks and cards."""

from ulid import ULID


def generate_deck_id() -> str:
    """Generate a sortable, collision-free deck ID using ULID."""
    return f"deck_{ULID()}"


def generate_card_id() -> str:
    return f"card_{ULID()}"
