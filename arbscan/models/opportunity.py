from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from arbscan.models.market import Outcome
from arbscan.utils.utcnow import utcnow


class ScanType(str, Enum):
    """The three independent mispricing classes the engine scans for.

    - TYPE1: within-event mispricing, sum of exclusive outcome prices != 1
    - TYPE2: cross-market dependency, prices violate a logical implication
    - TYPE3: settlement lag, outcome effectively known but price not at 0/1
    """

    TYPE1 = "type1"
    TYPE2 = "type2"
    TYPE3 = "type3"


class Confidence(str, Enum):
    CERTAIN = "CERTAIN"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"


class MarketCategory(str, Enum):
    INSUFFICIENT_OUTCOMES = "INSUFFICIENT_OUTCOMES"
    TEMPORAL = "TEMPORAL"  # Nested deadlines, "by March" implies "by June"
    INDEPENDENT = "INDEPENDENT"  # Unrelated events bundled together
    CUMULATIVE = "CUMULATIVE"  # Ascending thresholds, higher implies lower
    WINNER = "WINNER"  # Canonical single-winner phrasing
    UNKNOWN = "UNKNOWN"


class Classification(BaseModel):
    """Verdict on whether an outcome set is mutually exclusive and exhaustive.

    Frozen: a verdict is fixed for the scan cycle that produced it.
    """

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    confidence: Confidence
    reason: str
    category: MarketCategory
    rule: str = ""
    taxonomy_version: str = ""


class OpportunityType(str, Enum):
    BUY_ALL = "BUY_ALL"  # Pay < $1 for every outcome, redeem $1
    SELL_ALL = "SELL_ALL"  # Receive > $1 for every outcome, max liability $1
    NONE = "NONE"


class OptimizerMetrics(BaseModel):
    bregman_divergence: float = 0.0
    frank_wolfe_gap: float = 0.0
    guaranteed_profit: float = 0.0
    extraction_rate: float = 0.0
    max_position_size: float = 0.0
    expected_dollar_profit: float = 0.0


class QualityAssessment(BaseModel):
    score: int
    grade: str  # A-F
    recommendation: str  # EXECUTE, MONITOR, SKIP


class Opportunity(BaseModel):
    """Uniform record surfaced by the qualification gate for any scan type"""

    type: ScanType
    id: str
    title: str
    strategy: str
    profit_after_fees: float
    qualifies: bool
    reasons: list[str] = []
    sizing: float = 0.0  # Max position in USD
    detected_at: datetime = Field(default_factory=utcnow)


class EventAnalysis(BaseModel):
    """Type 1 analysis of one multi-outcome event"""

    id: str
    slug: str = ""
    title: str = ""
    description: str = ""
    url: str = ""
    is_neg_risk: bool = False
    num_outcomes: int
    outcomes: list[Outcome]
    total_price: float
    mispricing: float
    absolute_mispricing: float
    has_arbitrage: bool = False
    opportunity_type: OpportunityType = OpportunityType.NONE
    strategy_explanation: str = ""
    raw_profit: float = 0.0
    fees: float = 0.0
    profit_after_fees: float = 0.0
    min_liquidity: float = 0.0
    qualifies: bool = False
    reasons: list[str] = []
    metrics: OptimizerMetrics = Field(default_factory=OptimizerMetrics)
    classification: Optional[Classification] = None
    quality: Optional[QualityAssessment] = None
    analyzed_at: datetime = Field(default_factory=utcnow)

    def to_opportunity(self) -> Opportunity:
        return Opportunity(
            type=ScanType.TYPE1,
            id=self.id,
            title=self.title,
            strategy=self.opportunity_type.value,
            profit_after_fees=self.profit_after_fees,
            qualifies=self.qualifies,
            reasons=list(self.reasons),
            sizing=self.metrics.max_position_size,
            detected_at=self.analyzed_at,
        )
