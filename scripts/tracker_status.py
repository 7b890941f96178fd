#!/usr/bin/env python3
"""
Print the tracker state and the current expiring view.
"""

import argparse
import json
import sys
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

# Add repository root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from expiry_tracker.core import config as config_module
from expiry_tracker.core.coordinator import decide_phase, now_ms
from expiry_tracker.core.kv_store import SQLiteKVStore, StoreError
from expiry_tracker.core.query import build_expiring_view
from expiry_tracker.core.snapshot import SnapshotStore


def _fmt_ms(value):
    if not value:
        return "never"
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def main():
    parser = argparse.ArgumentParser(description="Show expiring-record tracker status")
    parser.add_argument("--db-path", default=None, help="SQLite store path (default: DB_PATH)")
    parser.add_argument("--json", action="store_true", help="Print as JSON")
    parser.add_argument("--limit", type=int, default=50, help="Maximum records to list")
    args = parser.parse_args()

    now = now_ms()
    try:
        store = SQLiteKVStore(args.db_path or config_module.DB_PATH)
        state = SnapshotStore(store).load_state()
        view = build_expiring_view(store, now)
    except StoreError as e:
        print(f"ERROR: {e}")
        return 1

    if args.json:
        print(json.dumps({
            "state": {**asdict(state), "phase": state.phase.value},
            "next_phase": decide_phase(state, now).value,
            "view": asdict(view),
        }, indent=2))
        return 0

    print(f"Phase: {state.phase.value} (next invocation: {decide_phase(state, now).value})")
    print(f"Last completed scan: {_fmt_ms(state.last_scan_completed_at)}")
    print(f"Scan progress: {view.scan_progress_percent}%")
    if state.scan_in_progress:
        print(f"Processed this scan: {state.total_processed} / ~{state.total_fields_observed}")
    print(f"In display window: {view.total_tracked}")
    print("-" * 60)
    for entry in view.records[:args.limit]:
        print(f"{entry.name:<40} grace ends {_fmt_ms(entry.grace_period_end_ms)} ({entry.days_left}d)")

    return 0


if __name__ == "__main__":
    sys.exit(main())
