import json
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from arbscan.utils.utcnow import make_aware, utcfromtimestamp


def _parse_maybe_json_list(raw: object) -> list[object]:
    """Accept list values directly or parse JSON-encoded list strings."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return list(raw)
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return []
        try:
            parsed = json.loads(text)
        except (json.JSONDecodeError, TypeError):
            return []
        if isinstance(parsed, list):
            return parsed
    return []


def _to_float(raw: object) -> Optional[float]:
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def clamp_probability(value: float) -> float:
    """Clamp a raw price into [0, 1]."""
    return min(1.0, max(0.0, float(value)))


def _parse_datetime(raw: object) -> Optional[datetime]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return make_aware(raw)
    if isinstance(raw, (int, float)):
        return utcfromtimestamp(float(raw))
    text = str(raw).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return make_aware(datetime.fromisoformat(text))
    except ValueError:
        return None


class Outcome(BaseModel):
    """One possible resolution of an event, priced as an implied probability"""

    id: str
    label: str
    price: float = Field(ge=0.0, le=1.0)
    liquidity: float = Field(default=0.0, ge=0.0)
    token_id: Optional[str] = None


class MarketSnapshot(BaseModel):
    """A single exchange market as seen at scan time"""

    id: str
    question: str = ""
    group_item_title: str = ""
    slug: str = ""
    clob_token_ids: list[str] = []
    outcome_prices: list[float] = []
    price: Optional[float] = Field(default=None, ge=0.0, le=1.0)  # YES price
    liquidity: float = Field(default=0.0, ge=0.0)
    volume: float = 0.0
    volume_24h: float = 0.0
    avg_volume_7d: Optional[float] = None
    price_24h_ago: Optional[float] = None
    price_velocity_1h: float = 0.0  # Price change per hour, signed
    best_bid: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    best_ask: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    last_trade_at: Optional[datetime] = None
    end_date: Optional[datetime] = None
    active: bool = True
    closed: bool = False
    settled: bool = False

    @field_validator("end_date", "last_trade_at", mode="before")
    @classmethod
    def _coerce_datetime(cls, value: object) -> Optional[datetime]:
        return _parse_datetime(value)

    @classmethod
    def from_gamma_response(cls, data: dict) -> "MarketSnapshot":
        """Parse market from Gamma API response"""
        clob_token_ids: list[str] = []
        for token_id in _parse_maybe_json_list(
            data.get("clobTokenIds", data.get("clob_token_ids"))
        ):
            token_text = str(token_id or "").strip()
            if token_text:
                clob_token_ids.append(token_text)

        outcome_prices: list[float] = []
        for raw_price in _parse_maybe_json_list(
            data.get("outcomePrices", data.get("outcome_prices"))
        ):
            value = _to_float(raw_price)
            if value is not None:
                outcome_prices.append(clamp_probability(value))

        price = outcome_prices[0] if outcome_prices else None

        best_bid = _to_float(data.get("bestBid"))
        best_ask = _to_float(data.get("bestAsk"))

        # Gamma reports signed price changes; recover the 24h-ago price and
        # treat the 1h change as velocity per hour.
        one_day_change = _to_float(data.get("oneDayPriceChange"))
        price_24h_ago = None
        if price is not None and one_day_change is not None:
            price_24h_ago = clamp_probability(price - one_day_change)

        volume_1wk = _to_float(data.get("volume1wk"))
        avg_volume_7d = volume_1wk / 7.0 if volume_1wk else None

        settled = data.get("settled")
        if isinstance(settled, str):
            settled = settled.strip().lower() == "true"

        return cls(
            id=str(data.get("conditionId") or data.get("condition_id") or data.get("id", "")),
            question=data.get("question") or "",
            group_item_title=data.get("groupItemTitle") or data.get("group_item_title") or "",
            slug=data.get("slug") or "",
            clob_token_ids=clob_token_ids,
            outcome_prices=outcome_prices,
            price=price,
            liquidity=max(
                0.0, _to_float(data.get("liquidityNum") or data.get("liquidity")) or 0.0
            ),
            volume=_to_float(data.get("volumeNum") or data.get("volume")) or 0.0,
            volume_24h=_to_float(data.get("volume24hr")) or 0.0,
            avg_volume_7d=avg_volume_7d,
            price_24h_ago=price_24h_ago,
            price_velocity_1h=_to_float(data.get("oneHourPriceChange")) or 0.0,
            best_bid=clamp_probability(best_bid) if best_bid is not None else None,
            best_ask=clamp_probability(best_ask) if best_ask is not None else None,
            last_trade_at=data.get("lastTradeTime"),
            end_date=data.get("endDateIso") or data.get("endDate"),
            active=bool(data.get("active", True)),
            closed=bool(data.get("closed", False)),
            settled=bool(settled),
        )

    @property
    def label(self) -> str:
        """Outcome label inside a grouped event: group title, else question"""
        return (self.group_item_title or self.question).strip()

    @property
    def yes_token_id(self) -> Optional[str]:
        if len(self.clob_token_ids) >= 2:
            return self.clob_token_ids[0]
        return None


class EventSnapshot(BaseModel):
    """An event bundling the markets advertised as its full resolution set"""

    id: str
    slug: str = ""
    title: str = ""
    description: str = ""
    neg_risk: bool = False
    active: bool = True
    closed: bool = False
    markets: list[MarketSnapshot] = []

    @classmethod
    def from_gamma_response(cls, data: dict) -> "EventSnapshot":
        markets = [
            MarketSnapshot.from_gamma_response(m)
            for m in data.get("markets") or []
            if isinstance(m, dict)
        ]
        return cls(
            id=str(data.get("id", "")),
            slug=data.get("slug") or "",
            title=data.get("title") or "",
            description=(data.get("description") or "")[:200],
            neg_risk=bool(data.get("negRisk", data.get("neg_risk", False))),
            active=bool(data.get("active", True)),
            closed=bool(data.get("closed", False)),
            markets=markets,
        )

    @property
    def open_markets(self) -> list[MarketSnapshot]:
        return [m for m in self.markets if m.active and not m.closed]
