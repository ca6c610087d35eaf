from datetime import datetime, timedelta, timezone

import pytest

from cadence.domain.models import Card, CardStatus, Deck, StudySettings
from cadence.infrastructure.adapters.memory_store import InMemoryStore


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config/presets
    monkeypatch.setenv("HOME", str(home))
    for var in ("CADENCE_USER_ID", "CADENCE_REMOTE_URL", "CADENCE_PRESET", "CADENCE_DAY_OFFSET"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def now():
    return datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings():
    return StudySettings()


@pytest.fixture
def store():
    s = InMemoryStore()
    s.add_deck(Deck(id="deck_1", name="Spanish Verbs"))
    return s


def _make_card(card_id, deck_id="deck_1", status=CardStatus.NEW, due=None, **kwargs):
    """Card factory; ``due`` sets next_review_date."""
    kwargs.setdefault("created_at", datetime(2024, 1, 1, tzinfo=timezone.utc))
    kwargs.setdefault("front", f"front {card_id}")
    kwargs.setdefault("back", f"back {card_id}")
    return Card(
        id=card_id,
        deck_id=deck_id,
        status=status,
        next_review_date=due,
        **kwargs,
    )


def _make_review_cards(count, now, prefix="R"):
    return [
        _make_card(
            f"{prefix}{i}",
            status=CardStatus.REVIEW,
            interval=1440,
            last_reviewed=now - timedelta(days=2),
            due=now - timedelta(hours=1),
        )
        for i in range(1, count + 1)
    ]


def _make_new_cards(count, prefix="N"):
    return [_make_card(f"{prefix}{i}") for i in range(1, count + 1)]


@pytest.fixture
def make_card():
    return _make_card


@pytest.fixture
def review_cards(now):
    """Factory for review cards already due at ``now``."""
    return lambda count, prefix="R": _make_review_cards(count, now, prefix)


@pytest.fixture
def new_cards():
    return _make_new_cards
