from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from arbscan.models.opportunity import Opportunity, ScanType

# Price slack before an implication counts as violated
VIOLATION_TOLERANCE = 0.01


class EdgeType(str, Enum):
    TEMPORAL = "TEMPORAL"
    THRESHOLD = "THRESHOLD"


class Relation(str, Enum):
    IMPLIES = "IMPLIES"  # A true -> B true
    EXCLUDES = "EXCLUDES"  # A true -> B false
    EQUIVALENT = "EQUIVALENT"  # A true <-> B true


class ThresholdDirection(str, Enum):
    ABOVE = "above"
    BELOW = "below"


class Deadline(BaseModel):
    year: int
    month: int = Field(ge=1, le=12)
    day: int = Field(ge=1, le=31)
    raw: str = ""

    def as_date(self) -> date:
        """Calendar date, clamping the day into the month (e.g. Feb 31 -> Feb 28/29)"""
        day = self.day
        while day > 28:
            try:
                return date(self.year, self.month, day)
            except ValueError:
                day -= 1
        return date(self.year, self.month, day)


class Threshold(BaseModel):
    value: float
    direction: ThresholdDirection
    raw: str = ""


class MarketNode(BaseModel):
    """A market plus the features parsed from its question text"""

    id: str
    question: str
    price: float = Field(ge=0.0, le=1.0)
    liquidity: float = Field(default=0.0, ge=0.0)
    slug: str = ""
    subject: str = ""
    deadline: Optional[Deadline] = None
    threshold: Optional[Threshold] = None


class EdgeViolation(BaseModel):
    actual: str
    difference: float


class EdgeLeg(BaseModel):
    action: str  # BUY or SELL
    market_id: str
    side: str = "YES"
    price: float


class EdgeStrategy(BaseModel):
    action: str  # SELL_A_BUY_B, SELL_BOTH
    legs: list[EdgeLeg]


class DependencyEdge(BaseModel):
    """Directed logical dependency between two markets.

    For IMPLIES the edge runs from the stronger (implying) market to the
    weaker (implied) one, so the constraint is always P(from) <= P(to).
    """

    from_node: MarketNode
    to_node: MarketNode
    type: EdgeType
    relation: Relation
    similarity: float = 0.0
    violation: Optional[EdgeViolation] = None
    profit: float = 0.0
    fees: float = 0.0
    profit_after_fees: float = 0.0
    qualifies: bool = False
    strategy: Optional[EdgeStrategy] = None

    @property
    def id(self) -> str:
        return f"{self.from_node.id}->{self.to_node.id}"

    @property
    def expected_constraint(self) -> str:
        if self.relation == Relation.IMPLIES:
            return "P(A) <= P(B)"
        if self.relation == Relation.EXCLUDES:
            return "P(A) + P(B) <= 1"
        return "P(A) = P(B)"

    def evaluate(self, fees: float, tolerance: float = VIOLATION_TOLERANCE) -> "DependencyEdge":
        """Check the price constraint and price the corrective trade.

        Args:
            fees: Total fee cost of trading this edge
            tolerance: Slack before a price gap counts as a violation
        """
        price_a = self.from_node.price
        price_b = self.to_node.price

        self.violation = None
        self.strategy = None
        self.profit = 0.0

        if self.relation == Relation.IMPLIES:
            if price_a > price_b + tolerance:
                self.violation = EdgeViolation(
                    actual=f"P(A)={price_a:.4f} > P(B)={price_b:.4f}",
                    difference=price_a - price_b,
                )
                self.profit = price_a - price_b
                self.strategy = EdgeStrategy(
                    action="SELL_A_BUY_B",
                    legs=[
                        EdgeLeg(action="SELL", market_id=self.from_node.id, price=price_a),
                        EdgeLeg(action="BUY", market_id=self.to_node.id, price=price_b),
                    ],
                )
        elif self.relation == Relation.EXCLUDES:
            total = price_a + price_b
            if total > 1 + tolerance:
                self.violation = EdgeViolation(
                    actual=f"P(A)+P(B)={total:.4f} > 1", difference=total - 1
                )
                self.profit = total - 1
                self.strategy = EdgeStrategy(
                    action="SELL_BOTH",
                    legs=[
                        EdgeLeg(action="SELL", market_id=self.from_node.id, price=price_a),
                        EdgeLeg(action="SELL", market_id=self.to_node.id, price=price_b),
                    ],
                )
        elif abs(price_a - price_b) > tolerance:
            # EQUIVALENT: sell the dearer side, buy the cheaper one
            dear, cheap = (
                (self.from_node, self.to_node) if price_a > price_b
                else (self.to_node, self.from_node)
            )
            self.violation = EdgeViolation(
                actual=f"P(A)={price_a:.4f} != P(B)={price_b:.4f}",
                difference=abs(price_a - price_b),
            )
            self.profit = abs(price_a - price_b)
            self.strategy = EdgeStrategy(
                action="SELL_A_BUY_B" if dear is self.from_node else "SELL_B_BUY_A",
                legs=[
                    EdgeLeg(action="SELL", market_id=dear.id, price=dear.price),
                    EdgeLeg(action="BUY", market_id=cheap.id, price=cheap.price),
                ],
            )

        self.fees = fees
        self.profit_after_fees = self.profit - fees
        self.qualifies = self.violation is not None and self.profit_after_fees > 0
        return self

    def to_opportunity(self) -> Opportunity:
        reasons = []
        if self.violation:
            reasons.append(
                f"{self.relation.value} violated: {self.violation.actual} "
                f"({self.expected_constraint})"
            )
        if self.violation and not self.qualifies:
            reasons.append(
                f"Fees {self.fees * 100:.1f}% exceed edge profit {self.profit * 100:.2f}%"
            )
        return Opportunity(
            type=ScanType.TYPE2,
            id=self.id,
            title=f"{self.from_node.question} / {self.to_node.question}",
            strategy=self.strategy.action if self.strategy else "NONE",
            profit_after_fees=self.profit_after_fees,
            qualifies=self.qualifies,
            reasons=reasons,
            sizing=min(self.from_node.liquidity, self.to_node.liquidity) * 0.1,
        )


class GraphStats(BaseModel):
    total_markets: int = 0
    total_edges: int = 0
    temporal_edges: int = 0
    threshold_edges: int = 0
    violations: int = 0
    opportunities: int = 0
    total_profit: float = 0.0
