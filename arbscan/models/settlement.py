from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from arbscan.models.opportunity import Opportunity, ScanType


class SignalType(str, Enum):
    PRICE_VOLUME_DIVERGENCE = "PRICE_VOLUME_DIVERGENCE"
    BOUNDARY_RUSH = "BOUNDARY_RUSH"
    STALE_PRICE = "STALE_PRICE"
    PAST_RESOLUTION = "PAST_RESOLUTION"
    EXTREME_SPREAD = "EXTREME_SPREAD"


class SettlementSignal(BaseModel):
    type: SignalType
    detected: bool
    weight: int = 0
    detail: Optional[str] = None
    metrics: dict[str, float] = {}


class SettlementStrategy(BaseModel):
    action: str  # BUY, SELL, WAIT
    side: Optional[str] = None
    explanation: str


class SettlementAnalysis(BaseModel):
    """Type 3 verdict for one market"""

    market_id: str
    question: str = ""
    current_price: float = Field(ge=0.0, le=1.0)
    expected_price: float = Field(ge=0.0, le=1.0)
    potential_profit: float = 0.0
    fees: float = 0.0
    profit_after_fees: float = 0.0
    has_opportunity: bool = False
    qualifies: bool = False
    confidence: int = 0  # Sum of fired signal weights
    signals: list[SettlementSignal] = []
    strategy: SettlementStrategy
    liquidity: float = 0.0
    position_size: float = 0.0

    def to_opportunity(self) -> Opportunity:
        reasons = [s.detail for s in self.signals if s.detail]
        return Opportunity(
            type=ScanType.TYPE3,
            id=self.market_id,
            title=self.question,
            strategy=f"{self.strategy.action} {self.strategy.side or ''}".strip(),
            profit_after_fees=self.profit_after_fees,
            qualifies=self.qualifies,
            reasons=reasons,
            sizing=self.position_size,
        )


class SettlementLagStats(BaseModel):
    total_markets: int = 0
    markets_analyzed: int = 0
    opportunities_found: int = 0
    total_potential_profit: float = 0.0
