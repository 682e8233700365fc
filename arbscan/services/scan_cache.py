from dataclasses import dataclass
from typing import Optional

from arbscan.models import ScanResult, ScanType


@dataclass
class ScanCache:
    """Last result and in-flight flag for one scan type.

    Both fields are only touched from the event loop thread.  ``begin`` is a
    check-and-set with no await inside, which is what keeps at most one scan
    of a type in flight.
    """

    scan_type: ScanType
    last_result: Optional[ScanResult] = None
    in_progress: bool = False

    def begin(self) -> bool:
        """Claim the scan slot; False when another scan already holds it."""
        if self.in_progress:
            return False
        self.in_progress = True
        return True

    def finish(self, result: ScanResult) -> None:
        # Publish before releasing so waiters never observe a stale result
        self.last_result = result
        self.in_progress = False

    def abandon(self) -> None:
        self.in_progress = False
