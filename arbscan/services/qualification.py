from typing import Iterable, Protocol

from arbscan.models import Opportunity
from arbscan.utils.logger import get_logger

logger = get_logger(__name__)


class QualifiableRecord(Protocol):
    def to_opportunity(self) -> Opportunity: ...


class QualificationGate:
    """Uniform filter over detector records of any scan type."""

    def collect(self, records: Iterable[QualifiableRecord]) -> list[Opportunity]:
        """Qualifying opportunities, most profitable after fees first."""
        opportunities = [record.to_opportunity() for record in records]
        qualifying = [o for o in opportunities if o.qualifies]
        qualifying.sort(key=lambda o: o.profit_after_fees, reverse=True)

        if opportunities:
            logger.debug(
                "Qualification gate applied",
                candidates=len(opportunities),
                qualifying=len(qualifying),
            )
        return qualifying


qualification_gate = QualificationGate()
