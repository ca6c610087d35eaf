import logging
import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel

from cadence.consts import VERSION
from cadence.domain.exceptions import CardNotFoundError, DeckNotFoundError
from cadence.domain.models import Card

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cadence.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Cadence Server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("Cadence Server shutting down...")


app = FastAPI(
    title="Cadence Server",
    description="Study scheduling and progress sync server.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


# ---------------------------------------------------------------------------
# Dependencies (overridable in tests via app.dependency_overrides)
# ---------------------------------------------------------------------------


def get_config():
    from cadence.application.config import resolve_config

    return resolve_config()


def get_study_service(config=Depends(get_config)):
    from cadence.application.factory import get_store, get_study_service as build_service

    store = get_store(config)
    try:
        yield build_service(config, store)
    finally:
        store.close()


def get_progress_store(config=Depends(get_config)):
    from cadence.infrastructure.adapters.sqlite_store import SqliteProgressStore

    store = SqliteProgressStore(config.progress_db_path)
    try:
        yield store
    finally:
        store.close()


def require_token(authorization: str | None = Header(default=None), config=Depends(get_config)):
    """Reject progress requests without the configured bearer token."""
    if not config.remote_token:
        return
    if authorization != f"Bearer {config.remote_token}":
        raise HTTPException(status_code=401, detail="Invalid or missing token")


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class CardResponse(BaseModel):
    id: str
    deck_id: str
    front: str
    back: str
    status: str
    ease_factor: float
    interval: int
    repetitions: int
    last_reviewed: str | None = None
    next_review_date: str | None = None

    @classmethod
    def from_card(cls, card: Card) -> "CardResponse":
        return cls(
            id=card.id,
            deck_id=card.deck_id,
            front=card.front,
            back=card.back,
            status=card.status.value,
            ease_factor=card.ease_factor,
            interval=card.interval,
            repetitions=card.repetitions,
            last_reviewed=card.last_reviewed.isoformat() if card.last_reviewed else None,
            next_review_date=(
                card.next_review_date.isoformat() if card.next_review_date else None
            ),
        )


class DueCountsResponse(BaseModel):
    review_count: int
    new_count: int


class ReviewRequest(BaseModel):
    response_time_ms: int
    correct: bool


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.get("/decks/{deck_id}/queue", response_model=list[CardResponse])
def deck_queue(deck_id: str, service=Depends(get_study_service)):
    """Today's ordered study queue for a deck."""
    try:
        return [CardResponse.from_card(c) for c in service.study_queue(deck_id)]
    except DeckNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Queue build failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.get("/decks/{deck_id}/counts", response_model=DueCountsResponse)
def deck_counts(deck_id: str, service=Depends(get_study_service)):
    try:
        counts = service.due_counts(deck_id)
        return DueCountsResponse(review_count=counts.review_count, new_count=counts.new_count)
    except DeckNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Count failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.post("/cards/{card_id}/review", response_model=CardResponse)
def review_card(card_id: str, req: ReviewRequest, service=Depends(get_study_service)):
    """Record an answer and return the rescheduled card."""
    try:
        card = service.answer_by_id(card_id, req.response_time_ms, req.correct)
        return CardResponse.from_card(card)
    except CardNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Review failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.get("/progress/{user_id}/decks/{deck_key}/cards", dependencies=[Depends(require_token)])
def fetch_progress(user_id: str, deck_key: str, store=Depends(get_progress_store)):
    return {"cards": store.card_documents(user_id, deck_key)}


@app.put("/progress/{user_id}/decks/{deck_key}", dependencies=[Depends(require_token)])
def put_deck_progress(
    user_id: str, deck_key: str, document: dict[str, Any], store=Depends(get_progress_store)
):
    store.merge_deck_document(user_id, deck_key, document)
    return {"ok": True}


@app.put(
    "/progress/{user_id}/decks/{deck_key}/cards/{card_key}",
    dependencies=[Depends(require_token)],
)
def put_card_progress(
    user_id: str,
    deck_key: str,
    card_key: str,
    document: dict[str, Any],
    store=Depends(get_progress_store),
):
    store.merge_card_document(user_id, deck_key, card_key, document)
    return {"ok": True}
