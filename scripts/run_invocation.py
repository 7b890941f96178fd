#!/usr/bin/env python3
"""
Single tracker invocation - the command an external scheduler (cron, systemd
timer) runs at a fixed cadence. Exit codes: 0 ran, 3 skipped (lease held),
1 configuration or store failure.
"""

import argparse
import json
import sys
from pathlib import Path

# Add repository root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from expiry_tracker.core import config as config_module
from expiry_tracker.core.coordinator import InvocationReport, run_scheduled_invocation
from expiry_tracker.core.kv_store import StoreError


def format_report(report: InvocationReport) -> str:
    """Format an invocation report for display."""
    if report.skipped:
        return "Status: SKIPPED (another invocation holds the lease)"

    lines = [f"Phase: {report.phase.value}"]
    if report.completed_at:
        duration = report.completed_at - report.started_at
        lines.append(f"Duration: {duration.total_seconds():.2f} seconds")

    details = report.result.to_dict() if report.result else {}
    for key, value in details.items():
        if key in ("operation", "started_at", "completed_at"):
            continue
        lines.append(f"  {key}: {value}")
    return "\n".join(lines)


def main():
    parser = argparse.ArgumentParser(description="Run one expiring-record tracker invocation")
    parser.add_argument("--db-path", default=None, help="SQLite store path (default: DB_PATH)")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    args = parser.parse_args()

    issues = config_module.validate_tracker_config()
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}")
        return 1

    try:
        report = run_scheduled_invocation(args.db_path)
    except StoreError as e:
        print(f"ERROR: Store failure, invocation aborted: {e}")
        return 1

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, default=str))
    else:
        print(format_report(report))

    return 3 if report.skipped else 0


if __name__ == "__main__":
    sys.exit(main())
