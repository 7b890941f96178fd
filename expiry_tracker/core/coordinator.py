"""
Scan coordinator - decides per invocation whether to continue/start a full scan
or run incremental maintenance, under an exclusivity lease.
"""

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Union

from . import config as config_module
from .kv_store import IKeyValueStore, SQLiteKVStore
from .lease import InvocationLease
from .maintainer import MaintenanceReport, maintain
from .remote_table import RemoteTableClient
from .scanner import ScanReport, full_scan
from .schema import TrackerPhase, TrackerState
from .snapshot import SnapshotStore
from ..util.logging import audit_event


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class InvocationReport:
    phase: Optional[TrackerPhase]
    started_at: datetime
    completed_at: Optional[datetime] = None
    skipped: bool = False
    result: Union[ScanReport, MaintenanceReport, None] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert report to dictionary for serialization."""
        data = {
            "phase": self.phase.value if self.phase else None,
            "started_at": self.started_at.isoformat(),
            "skipped": self.skipped,
            "result": self.result.to_dict() if self.result else None,
        }
        if self.completed_at:
            data["completed_at"] = self.completed_at.isoformat()
        return data


def is_scan_stale(state: TrackerState, now: int) -> bool:
    last = state.last_scan_completed_at or 0
    return now - last > config_module.RESCAN_INTERVAL_MS


def decide_phase(state: TrackerState, now: int) -> TrackerPhase:
    """SCANNING while a scan is mid-flight or the last one is stale, else MAINTAINING."""
    if state.scan_in_progress or is_scan_stale(state, now):
        return TrackerPhase.SCANNING
    return TrackerPhase.MAINTAINING


def run_invocation(store: IKeyValueStore, client: RemoteTableClient, now: int = None,
                   lease: InvocationLease = None) -> InvocationReport:
    """
    One scheduled unit of work.

    Refuses to run (skipped=True) when another invocation holds the lease.
    Store errors propagate after the lease is released.
    """
    now = now if now is not None else now_ms()
    report = InvocationReport(phase=None, started_at=datetime.now())
    lease = lease or InvocationLease(store)

    if not lease.acquire():
        report.skipped = True
        report.completed_at = datetime.now()
        return report

    try:
        snapshots = SnapshotStore(store)
        state = snapshots.load_state()
        report.phase = decide_phase(state, now)

        if report.phase == TrackerPhase.SCANNING:
            report.result = full_scan(snapshots, client, now, state=state)
        else:
            report.result = maintain(snapshots, client, now)
    finally:
        lease.release()

    report.completed_at = datetime.now()
    audit_event(
        event_type="tracker.invocation",
        identifiers={"phase": report.phase.value, "owner": lease.owner},
        payload={"duration_sec": round((report.completed_at - report.started_at).total_seconds(), 3)},
    )
    return report


def run_scheduled_invocation(db_path: str = None) -> InvocationReport:
    """
    Entrypoint for the external scheduler: configured store and client, current time.

    Rows whose TTL has passed (stale leases, probe keys) are purged after the run.
    """
    issues = config_module.validate_tracker_config()
    if issues:
        raise ValueError(f"Tracker configuration invalid: {issues}")

    store = SQLiteKVStore(db_path or config_module.DB_PATH)
    client = RemoteTableClient()
    try:
        report = run_invocation(store, client)
        store.purge_expired()
    finally:
        client.close()
    return report
