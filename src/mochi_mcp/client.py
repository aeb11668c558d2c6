"""Mochi REST API client with HTTP Basic authentication."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import httpx
import structlog

from mochi_mcp.config import DEFAULT_API_BASE_URL
from mochi_mcp.exceptions import MochiAPIError, MochiRateLimitError, MochiTimeoutError
from mochi_mcp.models import Card, CardPage, Deck

logger = structlog.get_logger(__name__)

# Hard caps on auto-paginated scans
MAX_DECKS = 1000
MAX_CARDS = 5000
MAX_PAGE_SIZE = 100

RATE_LIMIT_MARKER = "Please wait"
RATE_LIMIT_RETRY_DELAY = 2.0


class MochiClient:
    """HTTP client for the Mochi REST API.

    Handles authentication, bookmark pagination, rate-limit retries and error
    normalization. Paginated scans are sequential with a delay between pages
    and stop after ``scan_timeout`` seconds with a ``MochiTimeoutError`` that
    carries the items retrieved so far.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_API_BASE_URL,
        *,
        timeout: float = 30.0,
        scan_timeout: float = 45.0,
        page_delay: float = 1.5,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.scan_timeout = scan_timeout
        self.page_delay = page_delay
        self._clock = clock
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=httpx.BasicAuth(api_key, ""),
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Make an authenticated API request and decode the JSON body.

        A rate-limited response is retried once after a short pause.
        """
        try:
            response = await self._client.request(method, path, **kwargs)
            if response.is_error and RATE_LIMIT_MARKER in response.text:
                logger.warning("mochi_rate_limited", method=method, path=path)
                await self._sleep(RATE_LIMIT_RETRY_DELAY)
                response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            msg = f"Mochi API request timed out: {method} {path}"
            raise MochiTimeoutError(msg) from e

        if response.is_error:
            message = _error_message(response)
            if RATE_LIMIT_MARKER in response.text:
                raise MochiRateLimitError(message, status_code=response.status_code)
            raise MochiAPIError(message, status_code=response.status_code)

        if not response.content:
            return {}
        return response.json()

    async def _paginate(
        self,
        path: str,
        params: dict[str, str | int],
        cap: int,
        label: str,
    ) -> list[dict[str, Any]]:
        """Follow bookmarks until exhausted, the cap is hit, or time runs out."""
        docs: list[dict[str, Any]] = []
        bookmark: str | None = None
        started = self._clock()

        while True:
            if docs:
                await self._sleep(self.page_delay)

            page_params = dict(params)
            if bookmark:
                page_params["bookmark"] = bookmark
            try:
                data = await self._request("GET", path, params=page_params)
            except (MochiTimeoutError, MochiRateLimitError) as e:
                # Keep the pages already fetched so callers can report a partial scan
                logger.warning("mochi_scan_interrupted", path=path, retrieved=len(docs), error=str(e))
                msg = f"{e.message}. Retrieved {len(docs)} {label}."
                raise MochiTimeoutError(msg, items=docs) from e

            page = data.get("docs") or []
            if not page:
                break
            docs.extend(page)

            previous, bookmark = bookmark, data.get("bookmark")
            # The API sometimes repeats the last bookmark instead of omitting it
            if not bookmark or bookmark == previous:
                break

            if self._clock() - started > self.scan_timeout:
                logger.warning("mochi_scan_timed_out", path=path, retrieved=len(docs))
                msg = (
                    f"Operation timed out after {self.scan_timeout:g}s. "
                    f"Retrieved {len(docs)} {label}."
                )
                raise MochiTimeoutError(msg, items=docs)

            if len(docs) >= cap:
                break

        return docs

    # --- Deck endpoints ---

    async def list_decks(self) -> list[Deck]:
        """List all decks, following pagination up to the deck cap."""
        try:
            docs = await self._paginate("/decks/", {}, MAX_DECKS, "decks")
        except MochiTimeoutError as e:
            e.items = [Deck.model_validate(d) for d in e.items]
            raise
        return [Deck.model_validate(d) for d in docs]

    async def get_deck(self, deck_id: str) -> Deck:
        """Get a single deck."""
        data = await self._request("GET", f"/decks/{deck_id}")
        return Deck.model_validate(data)

    async def create_deck(self, name: str, parent_id: str | None = None) -> Deck:
        """Create a deck, optionally nested under a parent deck."""
        body: dict[str, str] = {"name": name}
        if parent_id:
            body["parent-id"] = parent_id
        data = await self._request("POST", "/decks/", json=body)
        return Deck.model_validate(data)

    async def delete_deck(self, deck_id: str, permanent: bool = False) -> None:
        """Delete a deck. Soft delete moves it to the trash."""
        if permanent:
            await self._request("DELETE", f"/decks/{deck_id}")
        else:
            await self._request("POST", f"/decks/{deck_id}", json={"trashed?": _now_iso()})

    # --- Card endpoints ---

    async def list_cards(self, deck_id: str | None = None, limit: int = 100) -> list[Card]:
        """List up to ``limit`` cards, optionally scoped to a deck.

        ``limit`` is the number of cards to retrieve, not the API page size.
        """
        params: dict[str, str | int] = {"limit": min(limit, MAX_PAGE_SIZE)}
        if deck_id:
            params["deck-id"] = deck_id
        try:
            docs = await self._paginate("/cards/", params, min(limit, MAX_CARDS), "cards")
        except MochiTimeoutError as e:
            e.items = [Card.model_validate(d) for d in e.items[:limit]]
            raise
        return [Card.model_validate(d) for d in docs[:limit]]

    async def list_cards_page(
        self,
        deck_id: str | None = None,
        bookmark: str | None = None,
        page_size: int = 50,
    ) -> CardPage:
        """Fetch a single page of cards without following the bookmark."""
        params: dict[str, str | int] = {"limit": page_size}
        if deck_id:
            params["deck-id"] = deck_id
        if bookmark:
            params["bookmark"] = bookmark
        data = await self._request("GET", "/cards/", params=params)
        return CardPage(
            cards=[Card.model_validate(d) for d in data.get("docs") or []],
            bookmark=data.get("bookmark") or None,
        )

    async def get_card(self, card_id: str) -> Card:
        """Get a single card."""
        data = await self._request("GET", f"/cards/{card_id}")
        return Card.model_validate(data)

    async def create_card(
        self,
        deck_id: str,
        content: str,
        tags: list[str] | None = None,
    ) -> Card:
        """Create a card in a deck."""
        body: dict[str, Any] = {"deck-id": deck_id, "content": content}
        if tags:
            body["manual-tags"] = tags
        data = await self._request("POST", "/cards/", json=body)
        return Card.model_validate(data)

    async def update_card(
        self,
        card_id: str,
        content: str | None = None,
        tags: list[str] | None = None,
        deck_id: str | None = None,
    ) -> Card:
        """Replace a card's content, tags and/or deck."""
        body: dict[str, Any] = {}
        if content is not None:
            body["content"] = content
        if tags is not None:
            body["manual-tags"] = tags
        if deck_id is not None:
            body["deck-id"] = deck_id
        data = await self._request("POST", f"/cards/{card_id}", json=body)
        return Card.model_validate(data)

    async def delete_card(self, card_id: str, permanent: bool = False) -> None:
        """Delete a card. Soft delete moves it to the trash."""
        if permanent:
            await self._request("DELETE", f"/cards/{card_id}")
        else:
            await self._request("POST", f"/cards/{card_id}", json={"trashed?": _now_iso()})


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _error_message(response: httpx.Response) -> str:
    """Flatten a Mochi error body into a single message."""
    fallback = f"Mochi API error: {response.status_code} {response.reason_phrase}"
    try:
        errors = response.json().get("errors")
    except (ValueError, AttributeError):
        return fallback
    if isinstance(errors, list):
        return ", ".join(str(e) for e in errors)
    if isinstance(errors, dict):
        return ", ".join(f"{k}: {v}" for k, v in errors.items())
    return fallback
