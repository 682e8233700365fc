"""
Type 1 arbitrage engine: multi-outcome mispricing with a Bregman bound.

For an event whose outcomes are mutually exclusive and exhaustive exactly
one outcome pays $1, so the outcome prices must sum to 1:

- Σθ < 1: buy every outcome for Σθ, redeem $1 (BUY_ALL)
- Σθ > 1: sell every outcome for Σθ, pay out at most $1 (SELL_ALL)

The raw profit is |Σθ - 1| per $1 of settlement.  The Bregman divergence
D(μ*||θ) of the simplex projection bounds what any trade can lock in; the
engine reports α·D as the guaranteed share under the extraction rate.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from arbscan.models import (
    EventAnalysis,
    OpportunityType,
    OptimizerMetrics,
    Outcome,
    QualityAssessment,
)
from arbscan.services.fee_model import FeeModel
from arbscan.utils.logger import get_logger

from .bregman import BregmanProjector, bregman_projector

logger = get_logger(__name__)

# Fraction of the thinnest outcome's liquidity that can be taken without
# walking the book
POSITION_LIQUIDITY_FRACTION = 0.10


@dataclass
class ArbitrageAnalysis:
    """Engine verdict on one outcome set."""

    prices: list[float]
    total_price: float
    mispricing: float
    has_arbitrage: bool
    opportunity_type: OpportunityType
    strategy_explanation: str
    raw_profit: float
    fees: float
    profit_after_fees: float
    min_liquidity: float
    qualifies: bool
    reasons: list[str] = field(default_factory=list)
    metrics: OptimizerMetrics = field(default_factory=OptimizerMetrics)


class MultiOutcomeArbitrageEngine:
    """Closed-form simplex optimizer with fee-aware qualification."""

    def __init__(
        self,
        fee_rate: float = 0.02,
        alpha_extraction: float = 0.9,
        epsilon_d: float = 0.05,
        min_liquidity: float = 100.0,
        projector: Optional[BregmanProjector] = None,
    ):
        self.fee_model = FeeModel(fee_rate)
        self.alpha = alpha_extraction
        self.epsilon_d = epsilon_d
        self.min_liquidity = min_liquidity
        self.projector = projector or bregman_projector

    @property
    def fee_rate(self) -> float:
        return self.fee_model.fee_rate

    def analyze(self, outcomes: Sequence[Outcome]) -> ArbitrageAnalysis:
        """
        Measure the mispricing of a valid outcome set.

        Args:
            outcomes: Priced outcomes of one mutually exclusive event (n >= 2)

        Returns:
            ArbitrageAnalysis with strategy, fee-adjusted profit and sizing
        """
        if len(outcomes) < 2:
            raise ValueError("Multi-outcome analysis needs at least 2 outcomes")

        prices = [o.price for o in outcomes]
        projection = self.projector.project_multi_outcome(prices)
        mispricing = projection.mispricing
        abs_mispricing = abs(mispricing)

        # A set summing to exactly 1 is fair even with a zero threshold
        has_arbitrage = abs_mispricing > 0 and abs_mispricing >= self.epsilon_d
        if not has_arbitrage:
            opportunity_type = OpportunityType.NONE
            explanation = "Prices sum to approximately 1; no actionable mispricing"
        elif mispricing < 0:
            opportunity_type = OpportunityType.BUY_ALL
            explanation = (
                f"Buy all {len(outcomes)} outcomes for ${projection.total_price:.4f}, "
                "redeem $1.00 at settlement"
            )
        else:
            opportunity_type = OpportunityType.SELL_ALL
            explanation = (
                f"Sell all {len(outcomes)} outcomes for ${projection.total_price:.4f}, "
                "maximum payout $1.00 at settlement"
            )

        raw_profit = abs_mispricing
        fees = self.fee_model.settlement_leg_fee()
        profit_after_fees = raw_profit - fees

        min_liq = float(np.min([o.liquidity for o in outcomes]))
        max_position = min_liq * POSITION_LIQUIDITY_FRACTION
        metrics = OptimizerMetrics(
            bregman_divergence=projection.divergence,
            frank_wolfe_gap=projection.frank_wolfe_gap,
            guaranteed_profit=projection.divergence * self.alpha,
            extraction_rate=self.alpha,
            max_position_size=max_position,
            expected_dollar_profit=profit_after_fees * max_position,
        )

        reasons: list[str] = []
        if not has_arbitrage:
            reasons.append(
                f"Mispricing {abs_mispricing * 100:.2f}% below "
                f"{self.epsilon_d * 100:g}% threshold"
            )
        if has_arbitrage and profit_after_fees <= 0:
            reasons.append(f"Fees ({self.fee_rate * 100:.1f}% per leg) exceed profit")
        if min_liq < self.min_liquidity:
            reasons.append(
                f"Insufficient liquidity: ${min_liq:.0f} < ${self.min_liquidity:.0f} minimum"
            )

        qualifies = has_arbitrage and profit_after_fees > 0 and min_liq >= self.min_liquidity
        if qualifies:
            reasons.append(f"Qualifies: {profit_after_fees * 100:.2f}% profit after fees")
            logger.debug(
                "Multi-outcome arbitrage qualifies",
                strategy=opportunity_type.value,
                mispricing=round(mispricing, 6),
                profit_after_fees=round(profit_after_fees, 6),
            )

        return ArbitrageAnalysis(
            prices=prices,
            total_price=projection.total_price,
            mispricing=mispricing,
            has_arbitrage=has_arbitrage,
            opportunity_type=opportunity_type,
            strategy_explanation=explanation,
            raw_profit=raw_profit,
            fees=fees,
            profit_after_fees=profit_after_fees,
            min_liquidity=min_liq,
            qualifies=qualifies,
            reasons=reasons,
            metrics=metrics,
        )

    def analyze_event(
        self,
        event_id: str,
        outcomes: Sequence[Outcome],
        **event_fields,
    ) -> EventAnalysis:
        """Analyze an outcome set and wrap it as an API-facing EventAnalysis."""
        analysis = self.analyze(outcomes)
        event = EventAnalysis(
            id=event_id,
            num_outcomes=len(outcomes),
            outcomes=list(outcomes),
            total_price=analysis.total_price,
            mispricing=analysis.mispricing,
            absolute_mispricing=abs(analysis.mispricing),
            has_arbitrage=analysis.has_arbitrage,
            opportunity_type=analysis.opportunity_type,
            strategy_explanation=analysis.strategy_explanation,
            raw_profit=analysis.raw_profit,
            fees=analysis.fees,
            profit_after_fees=analysis.profit_after_fees,
            min_liquidity=analysis.min_liquidity,
            qualifies=analysis.qualifies,
            reasons=analysis.reasons,
            metrics=analysis.metrics,
            **event_fields,
        )
        event.quality = assess_quality(event)
        return event


def _profit_points(profit: float) -> int:
    if profit > 0.10:
        return 40
    if profit > 0.05:
        return 30
    if profit > 0.02:
        return 20
    if profit > 0:
        return 10
    return 0


def _liquidity_points(liquidity: float) -> int:
    if liquidity > 10000:
        return 30
    if liquidity > 5000:
        return 25
    if liquidity > 1000:
        return 20
    if liquidity > 500:
        return 15
    if liquidity > 100:
        return 10
    return 0


def _extraction_points(rate: float) -> int:
    if rate > 0.95:
        return 30
    if rate > 0.90:
        return 25
    if rate > 0.80:
        return 20
    return 10


def assess_quality(analysis: EventAnalysis) -> QualityAssessment:
    """Score an analyzed event 0-100 and grade it for triage."""
    score = (
        _profit_points(analysis.profit_after_fees)
        + _liquidity_points(analysis.min_liquidity)
        + _extraction_points(analysis.metrics.extraction_rate)
    )

    if score >= 90:
        grade = "A"
    elif score >= 80:
        grade = "B"
    elif score >= 70:
        grade = "C"
    elif score >= 60:
        grade = "D"
    else:
        grade = "F"

    if score >= 70:
        recommendation = "EXECUTE"
    elif score >= 50:
        recommendation = "MONITOR"
    else:
        recommendation = "SKIP"

    return QualityAssessment(score=score, grade=grade, recommendation=recommendation)
