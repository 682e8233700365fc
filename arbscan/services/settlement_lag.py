"""
Settlement lag detection (Type 3).

Finds markets whose outcome is effectively decided while the price still
sits away from 0 or 1.  Example: a head of state flees the country, so the
"remains in office" market must resolve NO, yet YES still trades at $0.30.
Selling YES at $0.30 captures the lag.

Detection signals (weight):
1. Price-volume divergence (25): heavy volume, flat price
2. Boundary rush (30): fast move toward 0 or 1
3. Stale price (20): parked near a boundary with no trades for hours
4. Past resolution (35): end date passed, market not settled
5. Extreme spread (15): wide book near a boundary

A market is flagged when at least two signals fire with combined weight
of 40 or more and the price is at least 5 cents from the inferred outcome.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from arbscan.models import (
    MarketSnapshot,
    SettlementAnalysis,
    SettlementSignal,
    SettlementStrategy,
    SignalType,
)
from arbscan.services.fee_model import FeeModel
from arbscan.utils.logger import get_logger
from arbscan.utils.utcnow import make_aware, utcnow

logger = get_logger(__name__)

SIGNAL_WEIGHTS: dict[SignalType, int] = {
    SignalType.PRICE_VOLUME_DIVERGENCE: 25,
    SignalType.BOUNDARY_RUSH: 30,
    SignalType.STALE_PRICE: 20,
    SignalType.PAST_RESOLUTION: 35,
    SignalType.EXTREME_SPREAD: 15,
}


@dataclass
class SettlementLagConfig:
    volume_multiplier: float = 3.0  # 24h volume vs 7d daily average
    max_price_change: float = 0.10
    boundary_threshold: float = 0.15
    velocity_threshold: float = 0.05  # per hour
    stale_boundary: float = 0.10
    stale_hours: float = 6.0
    grace_period: timedelta = timedelta(hours=24)
    spread_boundary: float = 0.20
    max_spread: float = 0.10
    velocity_hint: float = 0.01
    min_signals: int = 2
    min_confidence: int = 40
    min_profit: float = 0.05


class SettlementLagScorer:
    """Weighted signal scorer for markets lagging their resolution."""

    def __init__(
        self,
        fee_rate: float = 0.02,
        config: Optional[SettlementLagConfig] = None,
    ):
        self.fee_model = FeeModel(fee_rate)
        self.config = config or SettlementLagConfig()

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def detect_price_volume_divergence(self, market: MarketSnapshot, price: float) -> SettlementSignal:
        recent = market.volume_24h or 0.0
        average = market.avg_volume_7d or market.volume_24h or 1.0
        previous = market.price_24h_ago if market.price_24h_ago is not None else 0.5
        price_change = abs(price - previous)
        volume_ratio = recent / average

        detected = (
            volume_ratio >= self.config.volume_multiplier
            and price_change < self.config.max_price_change
        )
        return SettlementSignal(
            type=SignalType.PRICE_VOLUME_DIVERGENCE,
            detected=detected,
            weight=SIGNAL_WEIGHTS[SignalType.PRICE_VOLUME_DIVERGENCE] if detected else 0,
            detail=(
                f"Volume {volume_ratio:.1f}x normal with only "
                f"{price_change * 100:.1f}% price change"
                if detected else None
            ),
            metrics={"volume_ratio": volume_ratio, "price_change": price_change},
        )

    def detect_boundary_rush(self, market: MarketSnapshot, price: float) -> SettlementSignal:
        velocity = market.price_velocity_1h
        to_zero = price < self.config.boundary_threshold and velocity < -self.config.velocity_threshold
        to_one = (
            price > 1 - self.config.boundary_threshold
            and velocity > self.config.velocity_threshold
        )
        detected = to_zero or to_one
        return SettlementSignal(
            type=SignalType.BOUNDARY_RUSH,
            detected=detected,
            weight=SIGNAL_WEIGHTS[SignalType.BOUNDARY_RUSH] if detected else 0,
            detail=(
                f"Price at {price * 100:.1f}% moving {abs(velocity) * 100:.1f}%/hr "
                f"toward {'0' if to_zero else '1'}"
                if detected else None
            ),
            metrics={"price": price, "velocity": velocity},
        )

    def detect_stale_price(self, market: MarketSnapshot, price: float, now: datetime) -> SettlementSignal:
        near_boundary = price < self.config.stale_boundary or price > 1 - self.config.stale_boundary
        hours_since = 0.0
        if market.last_trade_at is not None:
            hours_since = (now - make_aware(market.last_trade_at)).total_seconds() / 3600

        detected = near_boundary and hours_since > self.config.stale_hours
        return SettlementSignal(
            type=SignalType.STALE_PRICE,
            detected=detected,
            weight=SIGNAL_WEIGHTS[SignalType.STALE_PRICE] if detected else 0,
            detail=(
                f"Price at {price * 100:.1f}% unchanged for {hours_since:.1f} hours"
                if detected else None
            ),
            metrics={"hours_since_trade": hours_since},
        )

    def detect_past_resolution(self, market: MarketSnapshot, price: float, now: datetime) -> SettlementSignal:
        if market.end_date is None:
            return SettlementSignal(type=SignalType.PAST_RESOLUTION, detected=False)

        end_date = make_aware(market.end_date)
        past_end = now > end_date + self.config.grace_period
        unsettled = not market.settled and 0.01 < price < 0.99
        days_past = (now - end_date).total_seconds() / 86400

        detected = past_end and unsettled
        return SettlementSignal(
            type=SignalType.PAST_RESOLUTION,
            detected=detected,
            weight=SIGNAL_WEIGHTS[SignalType.PAST_RESOLUTION] if detected else 0,
            detail=(
                f"Market ended {days_past:.1f} days ago but not settled "
                f"(price: {price * 100:.1f}%)"
                if detected else None
            ),
            metrics={"days_past_end": days_past},
        )

    def detect_extreme_spread(self, market: MarketSnapshot) -> SettlementSignal:
        bid = market.best_bid if market.best_bid is not None else 0.0
        ask = market.best_ask if market.best_ask is not None else 1.0
        spread = ask - bid
        mid = (bid + ask) / 2

        near_boundary = mid < self.config.spread_boundary or mid > 1 - self.config.spread_boundary
        detected = near_boundary and spread > self.config.max_spread
        return SettlementSignal(
            type=SignalType.EXTREME_SPREAD,
            detected=detected,
            weight=SIGNAL_WEIGHTS[SignalType.EXTREME_SPREAD] if detected else 0,
            detail=(
                f"{spread * 100:.1f}% spread near {'zero' if mid < 0.5 else 'one'} boundary"
                if detected else None
            ),
            metrics={"best_bid": bid, "best_ask": ask, "spread": spread},
        )

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------

    def infer_expected_price(
        self, market: MarketSnapshot, price: float, fired: list[SettlementSignal]
    ) -> float:
        """
        Heuristic resolution guess.

        Boundary rush or past resolution: snap to the nearer boundary.
        Otherwise follow a meaningful 1h velocity, and failing that fall back
        to the nearer boundary again.
        """
        fired_types = {s.type for s in fired}
        if SignalType.BOUNDARY_RUSH in fired_types or SignalType.PAST_RESOLUTION in fired_types:
            return 0.0 if price < 0.5 else 1.0

        velocity = market.price_velocity_1h
        if abs(velocity) > self.config.velocity_hint:
            return 0.0 if velocity < 0 else 1.0

        return 0.0 if price < 0.5 else 1.0

    @staticmethod
    def determine_strategy(current_price: float, expected_price: float) -> SettlementStrategy:
        if expected_price == 0:
            return SettlementStrategy(
                action="SELL",
                side="YES",
                explanation=f"Sell YES at ${current_price:.4f}, expected to resolve to $0",
            )
        if expected_price == 1:
            return SettlementStrategy(
                action="BUY",
                side="YES",
                explanation=f"Buy YES at ${current_price:.4f}, expected to resolve to $1",
            )
        return SettlementStrategy(
            action="WAIT", explanation="Outcome unclear, monitor for more signals"
        )

    def analyze(self, market: MarketSnapshot, now: Optional[datetime] = None) -> SettlementAnalysis:
        """Score one market against every signal."""
        now = make_aware(now) if now else utcnow()
        price = market.price if market.price is not None else 0.5

        signals = [
            self.detect_price_volume_divergence(market, price),
            self.detect_boundary_rush(market, price),
            self.detect_stale_price(market, price, now),
            self.detect_past_resolution(market, price, now),
            self.detect_extreme_spread(market),
        ]
        fired = [s for s in signals if s.detected]
        confidence = sum(s.weight for s in fired)

        expected = self.infer_expected_price(market, price, fired)
        potential_profit = abs(price - expected)
        has_opportunity = (
            len(fired) >= self.config.min_signals
            and confidence >= self.config.min_confidence
            and potential_profit >= self.config.min_profit
        )
        fees = self.fee_model.settlement_leg_fee()
        profit_after_fees = potential_profit - fees

        analysis = SettlementAnalysis(
            market_id=market.id,
            question=market.question,
            current_price=price,
            expected_price=expected,
            potential_profit=potential_profit,
            fees=fees,
            profit_after_fees=profit_after_fees,
            has_opportunity=has_opportunity,
            qualifies=has_opportunity and profit_after_fees > 0,
            confidence=confidence,
            signals=fired,
            strategy=self.determine_strategy(price, expected),
            liquidity=market.liquidity,
        )
        analysis.position_size = self.calculate_position_size(analysis)
        return analysis

    def scan(
        self, markets: Iterable[MarketSnapshot], now: Optional[datetime] = None
    ) -> list[SettlementAnalysis]:
        """Flagged markets, largest potential profit first."""
        now = now or utcnow()
        opportunities = []
        for market in markets:
            analysis = self.analyze(market, now)
            if analysis.has_opportunity:
                opportunities.append(analysis)
        opportunities.sort(key=lambda a: a.potential_profit, reverse=True)
        return opportunities

    @staticmethod
    def calculate_position_size(
        analysis: SettlementAnalysis,
        max_capital: float = 1000.0,
        min_liquidity: Optional[float] = None,
    ) -> float:
        """Half-Kelly style sizing scaled by confidence and profit, capped by depth."""
        confidence_factor = analysis.confidence / 100
        profit_factor = min(analysis.potential_profit / 0.20, 1.0)
        size = max_capital * confidence_factor * profit_factor * 0.5

        liquidity = min_liquidity if min_liquidity is not None else analysis.liquidity
        if liquidity:
            size = min(size, liquidity * 0.1)
        return float(round(size))
