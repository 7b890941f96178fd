"""
Full scanner - resumable, page-budgeted pass over the whole registry table.

Each invocation reads at most PAGES_PER_INVOCATION pages from the persisted
cursor, keeps the records that fall in the capture window, merges them into the
snapshot and advances (or clears) the scan position.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from . import config as config_module
from .merge import merge
from .remote_table import RemoteTableClient, RemoteTableError
from .schema import TrackedRecord, TrackerPhase, TrackerState
from .snapshot import SnapshotStore
from .windowing import extract, is_in_capture_window
from ..util.logging import logger


@dataclass
class ScanReport:
    """Outcome of one full-scan invocation."""
    started_at: datetime
    completed_at: Optional[datetime] = None
    pages: int = 0
    nodes_seen: int = 0
    skipped_nodes: int = 0
    captured: int = 0
    total_processed: int = 0
    tracked: int = 0
    scan_complete: bool = False
    error: Optional[str] = None
    cursor: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert report to dictionary for serialization."""
        data = {
            "operation": "full_scan",
            "started_at": self.started_at.isoformat(),
            "pages": self.pages,
            "nodes_seen": self.nodes_seen,
            "skipped_nodes": self.skipped_nodes,
            "captured": self.captured,
            "total_processed": self.total_processed,
            "tracked": self.tracked,
            "scan_complete": self.scan_complete,
            "error": self.error,
        }
        if self.completed_at:
            data["completed_at"] = self.completed_at.isoformat()
        return data


def full_scan(snapshots: SnapshotStore, client: RemoteTableClient, now: int,
              state: TrackerState = None) -> ScanReport:
    """
    Run one budgeted slice of the full scan.

    A remote error stops the page loop early; everything captured before it is
    still merged and the cursor only advances past pages that were processed.
    Store failures propagate. The snapshot is written before the state, so a
    crash between the two only causes already-merged pages to be merged again.
    """
    report = ScanReport(started_at=datetime.now())

    if state is None:
        state = snapshots.load_state()
    if not state.scan_in_progress:
        state = state.begin_scan()

    existing = snapshots.load()
    previous_observed = state.total_fields_observed
    cursor = state.cursor
    total_processed = state.total_processed
    captured: List[TrackedRecord] = []

    try:
        while report.pages < config_module.PAGES_PER_INVOCATION:
            page = client.fetch_page(cursor, config_module.PAGE_SIZE)
            report.pages += 1
            total_processed += len(page.nodes)
            report.nodes_seen += len(page.nodes)

            for node in page.nodes:
                record = extract(node)
                if record is None:
                    report.skipped_nodes += 1
                    continue
                if is_in_capture_window(record.expiration_ms, now):
                    captured.append(record)

            if not page.has_next_page:
                report.scan_complete = True
                break

            cursor = page.end_cursor
    except RemoteTableError as e:
        report.error = str(e)
        logger.error(f"Scan error after {report.pages} pages: {e}")

    merged = merge(existing, captured, now)
    snapshots.save(merged)

    if report.scan_complete:
        new_state = TrackerState(
            phase=TrackerPhase.IDLE,
            cursor=None,
            total_processed=0,
            last_scan_completed_at=now,
            total_fields_observed=total_processed,
        )
    else:
        new_state = TrackerState(
            phase=TrackerPhase.SCANNING,
            cursor=cursor,
            total_processed=total_processed,
            last_scan_completed_at=state.last_scan_completed_at,
            # The progress denominator never shrinks mid-scan
            total_fields_observed=max(previous_observed, total_processed),
        )
    snapshots.save_state(new_state)

    report.captured = len(captured)
    report.total_processed = total_processed
    report.tracked = len(merged)
    report.cursor = new_state.cursor
    report.completed_at = datetime.now()

    logger.log_scan_invocation(
        pages=report.pages,
        total_processed=total_processed,
        captured=report.captured,
        tracked=report.tracked,
        complete=report.scan_complete,
        error=report.error,
    )
    return report
