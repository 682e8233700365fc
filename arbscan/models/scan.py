from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field

from arbscan.models.dependency import DependencyEdge, GraphStats
from arbscan.models.opportunity import EventAnalysis, Opportunity, ScanType
from arbscan.models.settlement import SettlementAnalysis, SettlementLagStats
from arbscan.utils.utcnow import utcnow


class ScanStatus(str, Enum):
    COMPLETED = "completed"
    NOT_RUN = "not_run"
    IN_PROGRESS = "in_progress"


_NOT_RUN_MESSAGES = {
    ScanType.TYPE1: "No scan performed yet. Trigger a type1 scan first.",
    ScanType.TYPE2: "No cross-market scan performed yet. Trigger a type2 scan first.",
    ScanType.TYPE3: "No settlement lag scan performed yet. Trigger a type3 scan first.",
}


class ScanResultBase(BaseModel):
    scan_type: ScanType
    status: ScanStatus = ScanStatus.COMPLETED
    scan_duration_ms: float = 0.0
    timestamp: datetime = Field(default_factory=utcnow)
    errors: list[str] = []
    qualified: list[Opportunity] = []  # Uniform view from the qualification gate

    @property
    def opportunity_count(self) -> int:
        return len(getattr(self, "opportunities", []))

    @property
    def item_count(self) -> int:
        return 0


class MultiOutcomeScanResult(ScanResultBase):
    """Type 1 scan over multi-outcome events"""

    scan_type: ScanType = ScanType.TYPE1
    events: list[EventAnalysis] = []
    opportunities: list[EventAnalysis] = []  # Qualifying subset of events
    total_events: int = 0
    multi_outcome_events_seen: int = 0
    with_mispricing_count: int = 0  # |mispricing| >= 0.01
    qualifying_count: int = 0

    @property
    def item_count(self) -> int:
        return len(self.events)


class CrossMarketScanResult(ScanResultBase):
    """Type 2 scan over pairwise market dependencies"""

    scan_type: ScanType = ScanType.TYPE2
    dependencies: list[DependencyEdge] = []
    violations: list[DependencyEdge] = []
    opportunities: list[DependencyEdge] = []
    stats: GraphStats = Field(default_factory=GraphStats)

    @property
    def item_count(self) -> int:
        return len(self.dependencies)


class SettlementLagScanResult(ScanResultBase):
    """Type 3 scan for markets lagging their effective resolution"""

    scan_type: ScanType = ScanType.TYPE3
    opportunities: list[SettlementAnalysis] = []
    stats: SettlementLagStats = Field(default_factory=SettlementLagStats)

    @property
    def item_count(self) -> int:
        return self.stats.markets_analyzed


ScanResult = Union[MultiOutcomeScanResult, CrossMarketScanResult, SettlementLagScanResult]

_RESULT_TYPES = {
    ScanType.TYPE1: MultiOutcomeScanResult,
    ScanType.TYPE2: CrossMarketScanResult,
    ScanType.TYPE3: SettlementLagScanResult,
}


def empty_result(
    scan_type: ScanType, status: ScanStatus, error: Optional[str] = None
) -> ScanResult:
    """Placeholder result for a scan that has not run or is still running"""
    if error is None:
        if status == ScanStatus.NOT_RUN:
            error = _NOT_RUN_MESSAGES[scan_type]
        else:
            error = "Scan in progress, please wait..."
    return _RESULT_TYPES[scan_type](status=status, errors=[error])


class ScanStatusReport(BaseModel):
    scan_type: ScanType
    scan_in_progress: bool
    has_cached_result: bool
    cached_result_timestamp: Optional[datetime] = None
    cached_event_count: int = 0
    cached_opportunity_count: int = 0
    cached_errors: list[str] = []
    server_time: datetime = Field(default_factory=utcnow)
