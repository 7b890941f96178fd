"""
Incremental maintainer - runs between full scans. Prunes records whose grace has
ended and re-verifies only the records close to their grace-period end, where a
missed renewal would show up as a false entry.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from . import config as config_module
from .merge import merge
from .remote_table import RemoteTableClient, RemoteTableError
from .schema import TrackedRecord
from .snapshot import SnapshotStore
from .windowing import (
    grace_end_ms,
    is_in_capture_window,
    is_verify_candidate,
    name_to_labels,
    parse_expiration,
)
from ..util.logging import logger

KEPT = "kept"
REFRESHED = "refreshed"
DROPPED = "dropped"
UNVERIFIED = "unverified"


@dataclass
class MaintenanceReport:
    """Outcome of one maintenance pass."""
    started_at: datetime
    completed_at: Optional[datetime] = None
    tracked_before: int = 0
    pruned: int = 0
    candidates: int = 0
    verified: int = 0
    unverified: int = 0
    refreshed: int = 0
    dropped: int = 0
    deferred: int = 0
    tracked_after: int = 0
    written: bool = False
    dropped_names: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert report to dictionary for serialization."""
        data = {
            "operation": "maintenance",
            "started_at": self.started_at.isoformat(),
            "tracked_before": self.tracked_before,
            "pruned": self.pruned,
            "candidates": self.candidates,
            "verified": self.verified,
            "unverified": self.unverified,
            "refreshed": self.refreshed,
            "dropped": self.dropped,
            "deferred": self.deferred,
            "tracked_after": self.tracked_after,
            "written": self.written,
            "dropped_names": self.dropped_names,
        }
        if self.completed_at:
            data["completed_at"] = self.completed_at.isoformat()
        return data


def _check_one(client: RemoteTableClient, record: TrackedRecord, now: int) -> Tuple[str, TrackedRecord]:
    """Verify one record. Ambiguity of any kind keeps the record as it is."""
    try:
        raw = client.lookup_expiration(name_to_labels(record.name))
    except RemoteTableError as e:
        logger.log_verification(record.name, UNVERIFIED, {"error": str(e)[:120]})
        return UNVERIFIED, record

    current = parse_expiration(raw)
    if current is None:
        return UNVERIFIED, record

    if not is_in_capture_window(current, now):
        # Renewed past the window, or grace already over
        logger.log_verification(record.name, DROPPED, {"expiration_ms": current})
        return DROPPED, record

    if current != record.expiration_ms:
        return REFRESHED, TrackedRecord(name=record.name, expiration_ms=current)
    return KEPT, record


def verify_records(records: List[TrackedRecord], client: RemoteTableClient, now: int,
                   batch_size: int = None) -> List[Tuple[str, TrackedRecord]]:
    """
    Point-look-up every record, batch_size lookups in flight at a time.

    Batches run one after another; each batch is awaited in full before the
    next starts. Results come back in input order.
    """
    batch_size = batch_size or config_module.VERIFY_BATCH_SIZE
    results: List[Tuple[str, TrackedRecord]] = []
    if not records:
        return results

    with ThreadPoolExecutor(max_workers=min(batch_size, len(records))) as pool:
        for start in range(0, len(records), batch_size):
            batch = records[start:start + batch_size]
            futures = [pool.submit(_check_one, client, record, now) for record in batch]
            results.extend(future.result() for future in futures)

    return results


def maintain(snapshots: SnapshotStore, client: RemoteTableClient, now: int) -> MaintenanceReport:
    """Prune and re-verify the snapshot; write only if something was removed."""
    report = MaintenanceReport(started_at=datetime.now())

    tracked = snapshots.load()
    report.tracked_before = len(tracked)
    if not tracked:
        report.completed_at = datetime.now()
        logger.log_maintenance_pass(0, 0, 0, 0, 0, written=False)
        return report

    cutoff = now - config_module.GRACE_PERIOD_MS
    candidates: List[TrackedRecord] = []
    passthrough: List[TrackedRecord] = []

    for record in tracked:
        if record.expiration_ms <= cutoff:
            report.pruned += 1
        elif is_verify_candidate(record.expiration_ms, now):
            candidates.append(record)
        else:
            passthrough.append(record)

    # Soonest grace end first; whatever exceeds the cap waits for the next pass
    candidates.sort(key=lambda r: (grace_end_ms(r.expiration_ms), r.name))
    cap = config_module.MAX_VERIFICATIONS
    if len(candidates) > cap:
        report.deferred = len(candidates) - cap
        passthrough.extend(candidates[cap:])
        candidates = candidates[:cap]
    report.candidates = len(candidates)

    verified: List[TrackedRecord] = []
    for outcome, record in verify_records(candidates, client, now):
        if outcome == DROPPED:
            report.dropped += 1
            report.dropped_names.append(record.name)
            continue
        if outcome == UNVERIFIED:
            report.unverified += 1
        elif outcome == REFRESHED:
            report.refreshed += 1
        verified.append(record)
    report.verified = report.candidates - report.unverified

    if report.pruned == 0 and report.dropped == 0:
        report.tracked_after = len(tracked)
    else:
        final = merge(passthrough, verified, now)
        snapshots.save(final)
        report.written = True
        report.tracked_after = len(final)

    report.completed_at = datetime.now()
    logger.log_maintenance_pass(
        tracked_before=report.tracked_before,
        pruned=report.pruned,
        dropped=report.dropped,
        deferred=report.deferred,
        tracked_after=report.tracked_after,
        written=report.written,
    )
    return report
