"""Shared fixtures for arbitrage scan tests."""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from arbscan.models import EventSnapshot, MarketSnapshot
from arbscan.services.market_data import OutcomeQuote


# ---------------------------------------------------------------------------
# Raw API response fixtures (mimicking Gamma API payloads)
# ---------------------------------------------------------------------------


@pytest.fixture
def raw_market_response():
    """A realistic Gamma-API /markets response dict."""
    return {
        "id": "123456",
        "conditionId": "0xabc123",
        "question": "Will BTC exceed $100k by end of 2025?",
        "groupItemTitle": "",
        "slug": "will-btc-exceed-100k-2025",
        "clobTokenIds": json.dumps(["token_yes_1", "token_no_1"]),
        "outcomePrices": json.dumps(["0.65", "0.35"]),
        "active": True,
        "closed": False,
        "volume": "12345.67",
        "volume24hr": 900.0,
        "volume1wk": 2100.0,
        "oneDayPriceChange": 0.05,
        "oneHourPriceChange": -0.01,
        "liquidity": "5000.00",
        "bestBid": 0.64,
        "bestAsk": 0.66,
        "endDate": "2025-12-31T12:00:00Z",
    }


@pytest.fixture
def raw_event_response(raw_market_response):
    """A realistic Gamma-API /events response dict containing nested markets."""
    closed_market = dict(raw_market_response, conditionId="0xclosed", closed=True)
    second_market = dict(
        raw_market_response,
        conditionId="0xdef789",
        question="Will BTC exceed $150k by end of 2025?",
        clobTokenIds=json.dumps(["token_yes_2", "token_no_2"]),
        outcomePrices=json.dumps(["0.20", "0.80"]),
    )
    return {
        "id": "evt_001",
        "slug": "btc-price-events",
        "title": "Bitcoin Price Predictions",
        "description": "All markets about BTC price targets.",
        "negRisk": False,
        "active": True,
        "closed": False,
        "markets": [raw_market_response, second_market, closed_market],
    }


# ---------------------------------------------------------------------------
# Domain object builders
# ---------------------------------------------------------------------------


def make_market(market_id: str, question: str = "", **kwargs) -> MarketSnapshot:
    kwargs.setdefault("liquidity", 1000.0)
    kwargs.setdefault("clob_token_ids", [f"{market_id}_yes", f"{market_id}_no"])
    return MarketSnapshot(id=market_id, question=question or market_id, **kwargs)


def make_event(event_id: str, title: str, prices: list[float], **market_kwargs) -> EventSnapshot:
    markets = [
        make_market(
            f"{event_id}_m{i}",
            question=f"Candidate {chr(65 + i)}",
            group_item_title=f"Candidate {chr(65 + i)}",
            price=price,
            **market_kwargs,
        )
        for i, price in enumerate(prices)
    ]
    return EventSnapshot(id=event_id, slug=event_id, title=title, markets=markets)


@pytest.fixture
def fixed_now():
    return datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_data_provider():
    """Data provider whose order-book lookups always return the sentinel quote."""
    provider = AsyncMock()
    provider.get_all_events = AsyncMock(return_value=[])
    provider.get_all_markets = AsyncMock(return_value=[])
    provider.get_outcome_quote = AsyncMock(return_value=OutcomeQuote.sentinel())
    return provider
