"""
Dependency graph for cross-market (Type 2) arbitrage.

Edges are logical implications between markets asking the same question:

- Temporal: "X by March" -> "X by June" (earlier deadline implies later)
- Threshold: "X above $150k" -> "X above $100k" (higher implies lower);
  "X below $50k" -> "X below $100k" (lower implies higher)

An implication A -> B requires P(A) <= P(B).  When the market prices A
above B the spread is riskless: sell A, buy B.
"""

from datetime import date
from typing import Iterable, Optional, Union

from arbscan.models import (
    DependencyEdge,
    EdgeType,
    GraphStats,
    MarketNode,
    MarketSnapshot,
    Relation,
    ThresholdDirection,
)
from arbscan.models.dependency import VIOLATION_TOLERANCE
from arbscan.services.dependency_extractor import build_market_node, subject_similarity
from arbscan.services.fee_model import FeeModel
from arbscan.utils.logger import get_logger

logger = get_logger(__name__)


class DependencyGraph:
    """Pairwise implication graph over one scan's markets."""

    def __init__(
        self,
        fee_rate: float = 0.02,
        min_similarity: float = 0.4,
        tolerance: float = VIOLATION_TOLERANCE,
        today: Optional[date] = None,
    ):
        self.fee_model = FeeModel(fee_rate)
        self.min_similarity = min_similarity
        self.tolerance = tolerance
        self.today = today
        self.nodes: dict[str, MarketNode] = {}
        self.edges: list[DependencyEdge] = []

    def add_market(self, market: Union[MarketSnapshot, dict]) -> MarketNode:
        node = build_market_node(market, self.today)
        self.nodes[node.id] = node
        return node

    def add_markets(self, markets: Iterable[Union[MarketSnapshot, dict]]) -> list[MarketNode]:
        return [self.add_market(m) for m in markets]

    def detect_temporal(self, a: MarketNode, b: MarketNode) -> Optional[DependencyEdge]:
        if a.deadline is None or b.deadline is None:
            return None
        similarity = subject_similarity(a.subject, b.subject)
        if similarity < self.min_similarity:
            return None

        date_a = a.deadline.as_date()
        date_b = b.deadline.as_date()
        if date_a == date_b:
            return None

        earlier, later = (a, b) if date_a < date_b else (b, a)
        return DependencyEdge(
            from_node=earlier,
            to_node=later,
            type=EdgeType.TEMPORAL,
            relation=Relation.IMPLIES,
            similarity=similarity,
        )

    def detect_threshold(self, a: MarketNode, b: MarketNode) -> Optional[DependencyEdge]:
        if a.threshold is None or b.threshold is None:
            return None
        similarity = subject_similarity(a.subject, b.subject)
        if similarity < self.min_similarity:
            return None
        if a.threshold.direction != b.threshold.direction:
            return None

        value_a = a.threshold.value
        value_b = b.threshold.value
        if value_a == value_b:
            return None

        if a.threshold.direction == ThresholdDirection.ABOVE:
            # Clearing the higher bar implies clearing the lower one
            stronger, weaker = (a, b) if value_a > value_b else (b, a)
        else:
            stronger, weaker = (a, b) if value_a < value_b else (b, a)
        return DependencyEdge(
            from_node=stronger,
            to_node=weaker,
            type=EdgeType.THRESHOLD,
            relation=Relation.IMPLIES,
            similarity=similarity,
        )

    def build_edges(self) -> list[DependencyEdge]:
        """Detect dependencies for every unordered pair, temporal first."""
        self.edges = []
        node_list = list(self.nodes.values())
        for i, node_a in enumerate(node_list):
            for node_b in node_list[i + 1:]:
                edge = self.detect_temporal(node_a, node_b)
                if edge is None:
                    edge = self.detect_threshold(node_a, node_b)
                if edge is not None:
                    self.edges.append(edge)

        logger.debug(
            "Dependency edges built",
            markets=len(node_list),
            edges=len(self.edges),
        )
        return self.edges

    def evaluate(self) -> list[DependencyEdge]:
        fees = self.fee_model.cross_market_fee()
        for edge in self.edges:
            edge.evaluate(fees, self.tolerance)
        return self.edges

    def find_violations(self) -> list[DependencyEdge]:
        """Violated edges, most profitable after fees first."""
        self.evaluate()
        violations = [e for e in self.edges if e.violation is not None]
        violations.sort(key=lambda e: e.profit_after_fees, reverse=True)
        return violations

    def get_opportunities(self) -> list[DependencyEdge]:
        return [e for e in self.find_violations() if e.qualifies]

    def get_stats(self) -> GraphStats:
        violations = self.find_violations()
        opportunities = [e for e in violations if e.qualifies]
        return GraphStats(
            total_markets=len(self.nodes),
            total_edges=len(self.edges),
            temporal_edges=sum(1 for e in self.edges if e.type == EdgeType.TEMPORAL),
            threshold_edges=sum(1 for e in self.edges if e.type == EdgeType.THRESHOLD),
            violations=len(violations),
            opportunities=len(opportunities),
            total_profit=sum(e.profit_after_fees for e in opportunities),
        )
