from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from cadence.application.reconciler import (
    ProgressReconciler,
    RemoteCardDocument,
    merge_remote_card,
    progress_document,
)
from cadence.application.sync_keys import card_key, deck_key, local_freshness
from cadence.domain.clock import to_millis
from cadence.domain.exceptions import NotAuthenticatedError, RemoteStoreError
from cadence.domain.models import CardStatus, Deck
from cadence.infrastructure.adapters.memory_store import InMemoryProgressStore, InMemoryStore

USER = "user-1"


@pytest.fixture
def reviewed(make_card, now):
    return make_card(
        "c1",
        front="Hola",
        back="Hello",
        status=CardStatus.REVIEW,
        interval=1440,
        repetitions=1,
        last_reviewed=now - timedelta(days=1),
        due=now + timedelta(days=1),
    )


@pytest.fixture
def remote():
    return InMemoryProgressStore()


@pytest.fixture
def deck(store):
    return store.get_deck("deck_1")


@pytest.fixture
def reconciler(store, remote):
    return ProgressReconciler(store=store, remote=remote)


def _remote_doc(card, updated_at, **overrides):
    doc = progress_document(card, updated_at)
    doc.update(overrides)
    return doc


@pytest.mark.asyncio
async def test_first_sync_uploads_progress(store, remote, reconciler, deck, reviewed, make_card):
    store.add_cards([reviewed, make_card("fresh")])

    report = await reconciler.reconcile_deck(USER, deck)

    assert report.uploaded == 1
    assert remote.writes == 1
    dk = deck_key(deck)
    assert remote.decks[(USER, dk)]["deckName"] == "Spanish Verbs"
    doc = remote.cards[(USER, dk)][card_key(reviewed)]
    assert doc["status"] == "REVIEW"
    assert doc["updatedAt"] == local_freshness(reviewed)
    assert doc["nextReviewDate"] == to_millis(reviewed.next_review_date)


@pytest.mark.asyncio
async def test_second_sync_is_a_no_op(store, remote, reconciler, deck, reviewed):
    store.add_cards([reviewed])
    await reconciler.reconcile_deck(USER, deck)
    writes = remote.writes

    report = await reconciler.reconcile_deck(USER, deck)

    assert report.merged == 0
    assert report.uploaded == 0
    assert remote.writes == writes


@pytest.mark.asyncio
async def test_newer_remote_overwrites_local(store, remote, reconciler, deck, reviewed, now):
    store.add_cards([reviewed])
    newer = local_freshness(reviewed) + 60_000
    remote.cards[(USER, deck_key(deck))] = {
        card_key(reviewed): _remote_doc(
            reviewed,
            newer,
            status="MASTERED",
            interval=5760,
            easeFactor=2.65,
            nextReviewDate=to_millis(now + timedelta(days=4)),
        )
    }

    report = await reconciler.reconcile_deck(USER, deck)

    assert report.pulled == 1
    assert report.merged == 1
    local = store.get_card("c1")
    assert local.status == CardStatus.MASTERED
    assert local.interval == 5760
    assert local.ease_factor == 2.65
    assert to_millis(local.next_review_date) == to_millis(now + timedelta(days=4))

    # Converged: nothing left to do
    writes = remote.writes
    again = await reconciler.reconcile_deck(USER, deck)
    assert again.merged == 0
    assert again.uploaded == 0
    assert remote.writes == writes


@pytest.mark.asyncio
async def test_older_remote_is_replaced_by_local(store, remote, reconciler, deck, reviewed):
    store.add_cards([reviewed])
    dk, ck = deck_key(deck), card_key(reviewed)
    remote.cards[(USER, dk)] = {ck: _remote_doc(reviewed, 1, status="LEARNING", interval=5)}

    report = await reconciler.reconcile_deck(USER, deck)

    assert report.merged == 0
    assert store.get_card("c1").status == CardStatus.REVIEW
    assert report.uploaded == 1
    assert remote.cards[(USER, dk)][ck]["status"] == "REVIEW"


@pytest.mark.asyncio
async def test_tie_keeps_local(store, remote, reconciler, deck, reviewed):
    store.add_cards([reviewed])
    remote.cards[(USER, deck_key(deck))] = {
        card_key(reviewed): _remote_doc(reviewed, local_freshness(reviewed), status="MASTERED")
    }

    report = await reconciler.reconcile_deck(USER, deck)

    assert report.merged == 0
    assert store.get_card("c1").status == CardStatus.REVIEW


@pytest.mark.asyncio
async def test_missing_updated_at_means_local_wins(store, remote, reconciler, deck, reviewed):
    store.add_cards([reviewed])
    doc = _remote_doc(reviewed, 0, status="MASTERED")
    del doc["updatedAt"]
    remote.cards[(USER, deck_key(deck))] = {card_key(reviewed): doc}

    report = await reconciler.reconcile_deck(USER, deck)

    assert report.merged == 0
    assert store.get_card("c1").status == CardStatus.REVIEW


@pytest.mark.asyncio
async def test_malformed_remote_document_is_skipped(store, remote, reconciler, deck, reviewed):
    store.add_cards([reviewed])
    remote.cards[(USER, deck_key(deck))] = {
        card_key(reviewed): {"status": "SOMETIMES", "updatedAt": 10**15}
    }

    report = await reconciler.reconcile_deck(USER, deck)

    assert report.skipped == 1
    assert report.merged == 0
    assert store.get_card("c1").status == CardStatus.REVIEW


@pytest.mark.asyncio
async def test_unknown_remote_cards_are_ignored(store, remote, reconciler, deck, reviewed):
    store.add_cards([reviewed])
    remote.cards[(USER, deck_key(deck))] = {"f" * 64: {"status": "MASTERED", "updatedAt": 10**15}}

    report = await reconciler.reconcile_deck(USER, deck)

    assert report.pulled == 1
    assert report.merged == 0
    assert len(store.get_all_cards_for_deck("deck_1")) == 1


@pytest.mark.asyncio
async def test_progress_follows_content_across_devices(remote, reviewed, make_card):
    """Two independent stores with different ids converge through the remote."""
    laptop = InMemoryStore()
    laptop.add_deck(Deck(id="deck_1", name="Spanish Verbs"))
    laptop.add_cards([reviewed])

    phone = InMemoryStore()
    phone.add_deck(Deck(id="phone_deck", name="  spanish verbs"))
    phone.add_cards([make_card("phone_card", deck_id="phone_deck", front="hola", back="hello ")])

    await ProgressReconciler(laptop, remote).reconcile_deck(USER, laptop.get_deck("deck_1"))
    report = await ProgressReconciler(phone, remote).reconcile_deck(
        USER, phone.get_deck("phone_deck")
    )

    assert report.merged == 1
    synced = phone.get_card("phone_card")
    assert synced.status == CardStatus.REVIEW
    assert synced.interval == 1440
    assert synced.front == "hola"


@pytest.mark.asyncio
async def test_empty_user_is_rejected(reconciler, deck):
    with pytest.raises(NotAuthenticatedError):
        await reconciler.reconcile_deck("", deck)


@pytest.mark.asyncio
async def test_fetch_failure_propagates(store, deck, reviewed):
    store.add_cards([reviewed])
    failing = AsyncMock()
    failing.fetch_card_documents.side_effect = RemoteStoreError("offline")

    with pytest.raises(RemoteStoreError):
        await ProgressReconciler(store, failing).reconcile_deck(USER, deck)

    failing.upsert_card_document.assert_not_awaited()


@pytest.mark.asyncio
async def test_upload_failure_propagates(store, deck, reviewed):
    store.add_cards([reviewed])
    failing = AsyncMock()
    failing.fetch_card_documents.return_value = {}
    failing.upsert_card_document.side_effect = RemoteStoreError("quota")

    with pytest.raises(RemoteStoreError):
        await ProgressReconciler(store, failing).reconcile_deck(USER, deck)


@pytest.mark.asyncio
async def test_reconcile_all_covers_every_deck(store, remote, reconciler, reviewed, make_card):
    store.add_deck(Deck(id="deck_2", name="French"))
    store.add_cards([reviewed, make_card("f1", deck_id="deck_2", status=CardStatus.LEARNING)])

    reports = await reconciler.reconcile_all(USER)

    assert [r.uploaded for r in reports] == [1, 1]
    assert remote.writes == 2


@pytest.mark.asyncio
async def test_upload_card_progress(remote, reconciler, deck, reviewed):
    await reconciler.upload_card_progress(USER, deck, reviewed, updated_at=1234)

    doc = remote.cards[(USER, deck_key(deck))][card_key(reviewed)]
    assert doc["updatedAt"] == 1234
    assert remote.decks[(USER, deck_key(deck))]["updatedAt"] == 1234


def test_merge_keeps_local_fields_missing_from_remote(reviewed):
    remote = RemoteCardDocument(status=CardStatus.LEARNING, updated_at=10**15)
    merged = merge_remote_card(reviewed, remote)

    assert merged.status == CardStatus.LEARNING
    assert merged.interval == reviewed.interval
    assert merged.ease_factor == reviewed.ease_factor
    assert merged.last_reviewed is None


def test_merge_ignores_stale_remote(reviewed):
    remote = RemoteCardDocument(status=CardStatus.NEW, updated_at=local_freshness(reviewed) - 1)
    assert merge_remote_card(reviewed, remote) is None


def test_unrepresentable_timestamp_fails_validation():
    with pytest.raises(ValidationError):
        RemoteCardDocument.model_validate(
            {"status": "REVIEW", "nextReviewDate": 10**18, "updatedAt": 10**15}
        )


@pytest.mark.asyncio
async def test_out_of_range_timestamp_skips_only_that_card(
    store, remote, reconciler, deck, reviewed, make_card
):
    other = make_card(
        "c2", front="Adios", back="Goodbye", status=CardStatus.LEARNING, interval=5
    )
    store.add_cards([reviewed, other])
    newer = local_freshness(reviewed) + 60_000
    remote.cards[(USER, deck_key(deck))] = {
        card_key(reviewed): _remote_doc(reviewed, newer, nextReviewDate=10**18),
        card_key(other): _remote_doc(other, newer, status="MASTERED"),
    }

    report = await reconciler.reconcile_deck(USER, deck)

    assert report.skipped == 1
    assert report.merged == 1
    assert store.get_card("c1").status == CardStatus.REVIEW
    assert store.get_card("c1").next_review_date == reviewed.next_review_date
    assert store.get_card("c2").status == CardStatus.MASTERED


@pytest.fixture
def duplicate(make_card, now):
    """Same normalized content as ``reviewed``, older and weaker progress."""
    return make_card(
        "c1-copy",
        front=" hola",
        back="HELLO",
        status=CardStatus.LEARNING,
        interval=5,
        repetitions=1,
        last_reviewed=now - timedelta(days=2),
        due=now - timedelta(days=2) + timedelta(minutes=5),
    )


@pytest.mark.asyncio
async def test_duplicate_content_cards_converge_after_one_run(
    store, remote, reconciler, deck, reviewed, duplicate
):
    store.add_cards([reviewed, duplicate])

    first = await reconciler.reconcile_deck(USER, deck)
    writes = remote.writes
    later = [await reconciler.reconcile_deck(USER, deck) for _ in range(3)]

    assert (first.merged, first.uploaded) == (0, 1)
    assert [(r.merged, r.uploaded) for r in later] == [(0, 0)] * 3
    assert remote.writes == writes
    doc = remote.cards[(USER, deck_key(deck))][card_key(reviewed)]
    assert doc["status"] == "REVIEW"
    assert store.get_card("c1-copy").status == CardStatus.LEARNING
    assert store.get_card("c1").status == CardStatus.REVIEW


@pytest.mark.asyncio
async def test_newer_remote_applies_to_every_duplicate(
    store, remote, reconciler, deck, reviewed, duplicate, now
):
    store.add_cards([reviewed, duplicate])
    newer = local_freshness(reviewed) + 60_000
    remote.cards[(USER, deck_key(deck))] = {
        card_key(reviewed): _remote_doc(
            reviewed,
            newer,
            status="MASTERED",
            interval=5760,
            nextReviewDate=to_millis(now + timedelta(days=4)),
        )
    }

    report = await reconciler.reconcile_deck(USER, deck)
    again = await reconciler.reconcile_deck(USER, deck)

    assert report.merged == 2
    for card_id in ("c1", "c1-copy"):
        assert store.get_card(card_id).status == CardStatus.MASTERED
        assert store.get_card(card_id).interval == 5760
    assert (again.merged, again.uploaded) == (0, 0)


@pytest.mark.asyncio
async def test_close_releases_remote_store(store):
    remote = AsyncMock()
    await ProgressReconciler(store, remote).close()
    remote.aclose.assert_awaited_once()
