import asyncio
from typing import Any, Optional, Protocol

import httpx
from pydantic import BaseModel

from arbscan.config import settings
from arbscan.exceptions import UpstreamUnavailable
from arbscan.models import EventSnapshot, MarketSnapshot
from arbscan.utils.logger import get_logger
from arbscan.utils.retry import RetryConfig, with_retry

logger = get_logger(__name__)

ORDER_BOOK_DEPTH = 5

_page_retry = RetryConfig(max_attempts=3, base_delay=0.5)


class OutcomeQuote(BaseModel):
    """Top-of-book view of one outcome token"""

    best_ask: float
    best_bid: float
    liquidity: float  # USD resting on the top bid levels
    is_sentinel: bool = False

    @classmethod
    def sentinel(cls) -> "OutcomeQuote":
        """Stand-in when a lookup fails: midpoint price, no depth."""
        return cls(best_ask=0.5, best_bid=0.5, liquidity=0.0, is_sentinel=True)

    @classmethod
    def from_order_book(cls, book: dict) -> "OutcomeQuote":
        if not isinstance(book, dict):
            raise ValueError(f"Order book payload is {type(book).__name__}, expected an object")
        asks = book.get("asks") or []
        bids = book.get("bids") or []

        ask_prices = [float(level["price"]) for level in asks]
        bid_levels = sorted(
            ((float(level["price"]), float(level["size"])) for level in bids),
            key=lambda level: level[0],
            reverse=True,
        )

        best_ask = min(ask_prices) if ask_prices else 0.5
        best_bid = bid_levels[0][0] if bid_levels else 0.5
        liquidity = sum(price * size for price, size in bid_levels[:ORDER_BOOK_DEPTH])

        return cls(
            best_ask=min(1.0, max(0.0, best_ask)),
            best_bid=min(1.0, max(0.0, best_bid)),
            liquidity=max(0.0, liquidity),
        )


class MarketDataProvider(Protocol):
    """What a scan cycle needs from the exchange"""

    async def get_all_events(self, max_events: int) -> list[EventSnapshot]: ...

    async def get_all_markets(self, max_markets: int, **filters: Any) -> list[MarketSnapshot]: ...

    async def get_outcome_quote(self, token_id: str) -> OutcomeQuote: ...


class MarketDataClient:
    """Gamma + CLOB client implementing ``MarketDataProvider``"""

    def __init__(
        self,
        gamma_url: Optional[str] = None,
        clob_url: Optional[str] = None,
        timeout: Optional[float] = None,
        quote_timeout: Optional[float] = None,
        page_size: Optional[int] = None,
        page_delay: Optional[float] = None,
    ):
        self.gamma_url = gamma_url or settings.GAMMA_API_URL
        self.clob_url = clob_url or settings.CLOB_API_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.quote_timeout = quote_timeout or settings.PRICE_LOOKUP_TIMEOUT_SECONDS
        self.page_size = page_size or settings.PAGE_SIZE
        self.page_delay = settings.PAGE_DELAY_SECONDS if page_delay is None else page_delay
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    @with_retry(_page_retry)
    async def _get_json(self, url: str, params: Optional[dict] = None) -> Any:
        client = await self._get_client()
        response = await client.get(url, params=params)
        response.raise_for_status()
        return response.json()

    async def _get_page(self, path: str, params: dict) -> list[dict]:
        try:
            data = await self._get_json(f"{self.gamma_url}{path}", params)
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamUnavailable(f"Gamma {path} request failed: {e}", source="gamma") from e
        if not isinstance(data, list):
            raise UpstreamUnavailable(f"Gamma {path} returned a non-list payload", source="gamma")
        return [item for item in data if isinstance(item, dict)]

    # ==================== GAMMA API ====================

    async def get_events(self, limit: int, offset: int = 0, closed: bool = False) -> list[EventSnapshot]:
        """Fetch one page of events (events contain grouped markets)"""
        params = {
            "active": "true",
            "closed": str(closed).lower(),
            "limit": limit,
            "offset": offset,
        }
        events = []
        for raw in await self._get_page("/events", params):
            try:
                events.append(EventSnapshot.from_gamma_response(raw))
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning("Skipping malformed event", event_id=raw.get("id"), error=str(e))
        return events

    async def get_all_events(self, max_events: int) -> list[EventSnapshot]:
        """Fetch events with pagination up to ``max_events``"""
        all_events: list[EventSnapshot] = []
        offset = 0

        while len(all_events) < max_events:
            limit = min(self.page_size, max_events - len(all_events))
            events = await self.get_events(limit=limit, offset=offset)
            if not events:
                break
            all_events.extend(events)
            offset += limit
            if len(events) < limit:
                break
            await asyncio.sleep(self.page_delay)

        return all_events[:max_events]

    async def get_markets(self, limit: int, offset: int = 0, **filters: Any) -> list[MarketSnapshot]:
        """Fetch one page of markets; filters map straight onto Gamma query params"""
        params: dict[str, Any] = {"limit": limit, "offset": offset}
        for key, value in filters.items():
            if value is None:
                continue
            params[key] = str(value).lower() if isinstance(value, bool) else value

        markets = []
        for raw in await self._get_page("/markets", params):
            try:
                markets.append(MarketSnapshot.from_gamma_response(raw))
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(
                    "Skipping malformed market",
                    market_id=raw.get("conditionId") or raw.get("id"),
                    error=str(e),
                )
        return markets

    async def get_all_markets(self, max_markets: int, **filters: Any) -> list[MarketSnapshot]:
        """Fetch markets with pagination up to ``max_markets``"""
        all_markets: list[MarketSnapshot] = []
        offset = 0

        while len(all_markets) < max_markets:
            limit = min(self.page_size, max_markets - len(all_markets))
            markets = await self.get_markets(limit=limit, offset=offset, **filters)
            if not markets:
                break
            all_markets.extend(markets)
            offset += limit
            if len(markets) < limit:
                break
            await asyncio.sleep(self.page_delay)

        return all_markets[:max_markets]

    # ==================== CLOB API ====================

    async def get_order_book(self, token_id: str) -> dict:
        client = await self._get_client()
        response = await client.get(f"{self.clob_url}/book", params={"token_id": token_id})
        response.raise_for_status()
        return response.json()

    async def get_outcome_quote(self, token_id: str) -> OutcomeQuote:
        """Order-book quote for a token, or the sentinel on any failure"""
        try:
            book = await asyncio.wait_for(self.get_order_book(token_id), timeout=self.quote_timeout)
            return OutcomeQuote.from_order_book(book)
        except (
            httpx.HTTPError,
            asyncio.TimeoutError,
            ValueError,
            KeyError,
            TypeError,
            AttributeError,
        ) as e:
            logger.warning(
                "Price lookup failed, using sentinel quote",
                token_id=token_id,
                error=str(e) or type(e).__name__,
            )
            return OutcomeQuote.sentinel()
