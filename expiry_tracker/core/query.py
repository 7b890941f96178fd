"""
Public query handler - read-only view of the records whose grace period is about
to end, with scan progress. Never touches the remote table.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .kv_store import IKeyValueStore
from .schema import TrackerState
from .snapshot import SnapshotStore
from .windowing import days_left, grace_end_ms, is_in_display_window
from ..util.logging import logger


@dataclass
class ExpiringEntry:
    name: str
    expiration_ms: int
    grace_period_end_ms: int
    days_left: int


@dataclass
class ExpiringView:
    records: List[ExpiringEntry] = field(default_factory=list)
    last_scan_completed_at: Optional[int] = None
    scan_progress_percent: int = 0
    total_tracked: int = 0


def compute_scan_progress(state: TrackerState) -> int:
    """Percent of the table covered by the current scan (capped at 99 until it completes)."""
    if state.scan_in_progress and state.total_fields_observed > 0:
        return min(99, round(state.total_processed / state.total_fields_observed * 100))
    if state.last_scan_completed_at:
        return 100
    return 0


def build_expiring_view(store: IKeyValueStore, now: int) -> ExpiringView:
    snapshots = SnapshotStore(store)
    state = snapshots.load_state()
    tracked = snapshots.load()

    entries = [
        ExpiringEntry(
            name=record.name,
            expiration_ms=record.expiration_ms,
            grace_period_end_ms=grace_end_ms(record.expiration_ms),
            days_left=days_left(record.expiration_ms, now),
        )
        for record in tracked
        if is_in_display_window(record.expiration_ms, now)
    ]
    entries.sort(key=lambda e: (e.grace_period_end_ms, e.name))

    view = ExpiringView(
        records=entries,
        last_scan_completed_at=state.last_scan_completed_at,
        scan_progress_percent=compute_scan_progress(state),
        total_tracked=len(entries),
    )
    logger.log_query(returned=len(entries), tracked=len(tracked), progress_percent=view.scan_progress_percent)
    return view
