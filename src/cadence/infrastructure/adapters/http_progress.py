import logging
from typing import Any

import httpx

from cadence.domain.constants import REQUEST_TIMEOUT, RESPONSIVENESS_TIMEOUT
from cadence.domain.exceptions import NotAuthenticatedError, RemoteStoreError
from cadence.domain.ports import RemoteProgressStore


class HttpProgressStore(RemoteProgressStore):
    """Adapter for the remote progress documents served by ``cadence server``."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=REQUEST_TIMEOUT,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def is_responsive(self) -> bool:
        """Check if the progress server answers its health endpoint."""
        try:
            resp = await self._get_client().get("/health", timeout=RESPONSIVENESS_TIMEOUT)
            return resp.status_code == 200
        except httpx.HTTPError:
            return False

    async def fetch_card_documents(self, user_id: str, deck_key: str) -> dict[str, dict[str, Any]]:
        data = await self._request("GET", f"/progress/{user_id}/decks/{deck_key}/cards")
        cards = data.get("cards", {}) if isinstance(data, dict) else {}
        if not isinstance(cards, dict):
            raise RemoteStoreError("response field 'cards' is not a mapping")
        return cards

    async def upsert_deck_document(
        self, user_id: str, deck_key: str, document: dict[str, Any]
    ) -> None:
        await self._request("PUT", f"/progress/{user_id}/decks/{deck_key}", json=document)

    async def upsert_card_document(
        self, user_id: str, deck_key: str, card_key: str, document: dict[str, Any]
    ) -> None:
        await self._request(
            "PUT", f"/progress/{user_id}/decks/{deck_key}/cards/{card_key}", json=document
        )

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = await self._get_client().request(method, path, **kwargs)
            if resp.status_code in (401, 403):
                raise NotAuthenticatedError(
                    f"Progress server rejected credentials ({resp.status_code})"
                )
            resp.raise_for_status()
            return resp.json() if resp.content else None
        except httpx.HTTPError as e:
            self.logger.error(f"Progress server call failed: {method} {path}: {e}")
            raise RemoteStoreError(str(e)) from e
