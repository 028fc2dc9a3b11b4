"""Running counters for the scan coordinator and annotation sessions."""
from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field, replace
from typing import Dict, Optional


@dataclass
class ScanStats:
    """Counters exposed by ``ScanCoordinator.get_stats``."""
    entity_events_received: int = 0
    scans_triggered: int = 0
    relations_extracted: int = 0
    errors: int = 0

    def snapshot(self) -> "ScanStats":
        return replace(self)

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class SessionStats:
    """Diagnostics for one annotation session."""
    refreshes: int = 0
    scans_dispatched: int = 0
    scans_applied: int = 0
    scans_superseded: int = 0
    scan_errors: int = 0
    cache_hits: int = 0
    cache_errors: int = 0
    spans_realigned: int = 0
    spans_dropped: int = 0
    last_scan_at: Optional[float] = None
    started_at: float = field(default_factory=time.time)

    @property
    def cache_hit_rate(self) -> float:
        if self.refreshes == 0:
            return 0.0
        return self.cache_hits / self.refreshes

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        data["cache_hit_rate"] = round(self.cache_hit_rate, 3)
        return data
