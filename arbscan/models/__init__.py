from .market import Outcome, MarketSnapshot, EventSnapshot, clamp_probability
from .opportunity import (
    Classification,
    Confidence,
    EventAnalysis,
    MarketCategory,
    Opportunity,
    OpportunityType,
    OptimizerMetrics,
    QualityAssessment,
    ScanType,
)
from .dependency import (
    Deadline,
    DependencyEdge,
    EdgeLeg,
    EdgeStrategy,
    EdgeType,
    EdgeViolation,
    GraphStats,
    MarketNode,
    Relation,
    Threshold,
    ThresholdDirection,
)
from .settlement import (
    SettlementAnalysis,
    SettlementLagStats,
    SettlementSignal,
    SettlementStrategy,
    SignalType,
)
from .scan import (
    CrossMarketScanResult,
    MultiOutcomeScanResult,
    ScanResult,
    ScanStatus,
    ScanStatusReport,
    SettlementLagScanResult,
    empty_result,
)

__all__ = [
    "Outcome",
    "MarketSnapshot",
    "EventSnapshot",
    "clamp_probability",
    "Classification",
    "Confidence",
    "EventAnalysis",
    "MarketCategory",
    "Opportunity",
    "OpportunityType",
    "OptimizerMetrics",
    "QualityAssessment",
    "ScanType",
    "Deadline",
    "DependencyEdge",
    "EdgeLeg",
    "EdgeStrategy",
    "EdgeType",
    "EdgeViolation",
    "GraphStats",
    "MarketNode",
    "Relation",
    "Threshold",
    "ThresholdDirection",
    "SettlementAnalysis",
    "SettlementLagStats",
    "SettlementSignal",
    "SettlementStrategy",
    "SignalType",
    "CrossMarketScanResult",
    "MultiOutcomeScanResult",
    "ScanResult",
    "ScanStatus",
    "ScanStatusReport",
    "SettlementLagScanResult",
    "empty_result",
]
