"""
Progress reconciler — merges remote and local scheduling state per deck.

Last-writer-wins on the card's freshness timestamp: a remote document replaces
local state only when it is strictly newer, then every card with progress is
pushed back. No conflict detection; ties keep local.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from cadence.application.sync_keys import card_key, deck_key, has_progress, local_freshness
from cadence.domain.clock import from_millis, to_millis
from cadence.domain.constants import REMOTE_DEBUG_TEXT_LEN
from cadence.domain.exceptions import NotAuthenticatedError
from cadence.domain.models import Card, CardStatus, Deck
from cadence.domain.ports import CardStore, RemoteProgressStore

logger = logging.getLogger(__name__)


class RemoteCardDocument(BaseModel):
    """Wire shape of a remote card progress document."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    status: CardStatus
    ease_factor: float | None = Field(default=None, alias="easeFactor")
    interval: int | None = None
    repetitions: int | None = None
    last_reviewed: int | None = Field(default=None, alias="lastReviewed")
    next_review_date: int | None = Field(default=None, alias="nextReviewDate")
    updated_at: int | None = Field(default=None, alias="updatedAt")

    @field_validator("last_reviewed", "next_review_date")
    @classmethod
    def representable_timestamp(cls, v: int | None) -> int | None:
        try:
            from_millis(v)
        except (ValueError, OverflowError, OSError) as e:
            raise ValueError(f"timestamp {v} out of range") from e
        return v


@dataclass
class ReconcileReport:
    """Outcome of reconciling one deck."""

    deck_key: str
    pulled: int = 0  # remote documents read
    merged: int = 0  # local cards overwritten from remote
    skipped: int = 0  # malformed remote documents ignored
    uploaded: int = 0  # card documents written remotely


def progress_document(card: Card, updated_at: int) -> dict[str, Any]:
    return {
        "status": card.status.value,
        "easeFactor": float(card.ease_factor),
        "interval": card.interval,
        "repetitions": card.repetitions,
        "lastReviewed": to_millis(card.last_reviewed),
        "nextReviewDate": to_millis(card.next_review_date),
        "updatedAt": updated_at,
        # Debug copies only; identity comes from the card key
        "front": card.front[:REMOTE_DEBUG_TEXT_LEN],
        "back": card.back[:REMOTE_DEBUG_TEXT_LEN],
    }


def merge_remote_card(local: Card, remote: RemoteCardDocument) -> Card | None:
    """
    Return the merged card if ``remote`` is strictly newer and differs, else None.

    Ease, interval and repetitions fall back to local values when absent.
    Review timestamps are taken from the remote document as-is.
    """
    remote_updated_at = remote.updated_at or 0
    if remote_updated_at <= local_freshness(local):
        return None

    merged = replace(
        local,
        status=remote.status,
        ease_factor=remote.ease_factor if remote.ease_factor is not None else local.ease_factor,
        interval=remote.interval if remote.interval is not None else local.interval,
        repetitions=remote.repetitions if remote.repetitions is not None else local.repetitions,
        last_reviewed=from_millis(remote.last_reviewed),
        next_review_date=from_millis(remote.next_review_date),
    )
    if _same_schedule(merged, local):
        return None
    return merged


def _same_schedule(a: Card, b: Card) -> bool:
    return (
        a.status == b.status
        and a.ease_factor == b.ease_factor
        and a.interval == b.interval
        and a.repetitions == b.repetitions
        and to_millis(a.last_reviewed) == to_millis(b.last_reviewed)
        and to_millis(a.next_review_date) == to_millis(b.next_review_date)
    )


def _matches(remote: dict[str, Any] | None, payload: dict[str, Any]) -> bool:
    if remote is None:
        return False
    return all(remote.get(key) == value for key, value in payload.items())


def group_by_key(cards: list[Card]) -> dict[str, list[Card]]:
    """Group cards sharing a card key, keeping store order inside each group."""
    groups: dict[str, list[Card]] = {}
    for card in cards:
        groups.setdefault(card_key(card), []).append(card)
    return groups


def representative(cards: list[Card]) -> Card:
    """The freshest card of a duplicate group; ties go to the earliest in store order."""
    return max(cards, key=local_freshness)


class ProgressReconciler:
    """
    Pulls remote progress into the local store, then pushes local progress.

    Local cards with the same normalized content share one remote document.
    Such a group is merged as a unit and only its freshest card is uploaded.

    Callers must not run two reconciliations for the same user concurrently.
    Each card is merged independently, so an aborted run can simply be re-run.
    """

    def __init__(self, store: CardStore, remote: RemoteProgressStore):
        self._store = store
        self._remote = remote

    async def close(self) -> None:
        await self._remote.aclose()

    async def reconcile_deck(self, user_id: str, deck: Deck) -> ReconcileReport:
        """
        Merge remote progress for ``deck`` into local cards and upload local progress.

        Store failures propagate and abort this deck; cards already merged stay merged.
        """
        if not user_id:
            raise NotAuthenticatedError("A signed-in user is required to sync progress")

        key = deck_key(deck)
        report = ReconcileReport(deck_key=key)

        try:
            remote_docs = await self._remote.fetch_card_documents(user_id, key)
        except Exception as e:
            logger.error(f"Failed to fetch remote progress for deck '{deck.name}': {e}")
            raise
        report.pulled = len(remote_docs)

        local_cards = self._store.get_all_cards_for_deck(deck.id)
        if remote_docs:
            self._merge(group_by_key(local_cards), remote_docs, report)
            # Re-read so the push step sees merged state
            local_cards = self._store.get_all_cards_for_deck(deck.id)

        await self._push(user_id, deck, key, group_by_key(local_cards), remote_docs, report)

        logger.info(
            f"Reconciled deck '{deck.name}': pulled={report.pulled} merged={report.merged} "
            f"skipped={report.skipped} uploaded={report.uploaded}"
        )
        return report

    async def reconcile_all(self, user_id: str) -> list[ReconcileReport]:
        reports = []
        for deck in self._store.list_decks():
            reports.append(await self.reconcile_deck(user_id, deck))
        return reports

    async def upload_card_progress(
        self, user_id: str, deck: Deck, card: Card, updated_at: int | None = None
    ) -> None:
        """Push a single card's scheduling state, e.g. right after a review."""
        if not user_id:
            raise NotAuthenticatedError("A signed-in user is required to sync progress")

        key = deck_key(deck)
        stamp = updated_at if updated_at is not None else local_freshness(card)
        await self._remote.upsert_deck_document(
            user_id, key, {"deckName": deck.name, "updatedAt": stamp}
        )
        await self._remote.upsert_card_document(
            user_id, key, card_key(card), progress_document(card, stamp)
        )

    def _merge(
        self,
        groups: dict[str, list[Card]],
        remote_docs: dict[str, dict[str, Any]],
        report: ReconcileReport,
    ) -> None:
        for remote_key, raw in remote_docs.items():
            group = groups.get(remote_key)
            if not group:
                continue

            try:
                remote = RemoteCardDocument.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Skipping malformed remote card {remote_key[:12]}: {e.errors()}")
                report.skipped += 1
                continue

            # Duplicates take the remote state together or not at all
            if (remote.updated_at or 0) <= local_freshness(representative(group)):
                continue

            for local in group:
                merged = merge_remote_card(local, remote)
                if merged is None:
                    continue
                self._store.update_card(merged)
                report.merged += 1

    async def _push(
        self,
        user_id: str,
        deck: Deck,
        key: str,
        groups: dict[str, list[Card]],
        remote_docs: dict[str, dict[str, Any]],
        report: ReconcileReport,
    ) -> None:
        pending: list[tuple[str, dict[str, Any]]] = []
        for ckey, group in groups.items():
            card = representative(group)
            if not has_progress(card):
                continue
            payload = progress_document(card, local_freshness(card))
            if _matches(remote_docs.get(ckey), payload):
                continue
            pending.append((ckey, payload))

        if not pending:
            return

        latest = max(payload["updatedAt"] for _, payload in pending)
        try:
            await self._remote.upsert_deck_document(
                user_id, key, {"deckName": deck.name, "updatedAt": latest}
            )
            for ckey, payload in pending:
                await self._remote.upsert_card_document(user_id, key, ckey, payload)
                report.uploaded += 1
        except Exception as e:
            logger.error(f"Failed to upload progress for deck '{deck.name}': {e}")
            raise
