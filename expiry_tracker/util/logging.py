"""
Structured logging for tracker invocations, maintenance passes and lease events.
"""

import logging
from typing import Any, Dict


class StructuredLogger:
    """Structured logger for scan, maintenance, verification and query operations."""

    def __init__(self, name: str = "expiry_tracker"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.info(message)

    def log_scan_invocation(self, pages: int, total_processed: int, captured: int,
                            tracked: int, complete: bool, error: str = None):
        """Log the single summary line of a full-scan invocation."""
        details = {
            "pages": pages,
            "total_processed": total_processed,
            "captured": captured,
            "tracked": tracked,
            "complete": complete,
        }
        if error:
            details["error"] = error[:200]

        self.log_operation("scan.invocation", "partial" if error else "success", details)

    def log_maintenance_pass(self, tracked_before: int, pruned: int, dropped: int,
                             deferred: int, tracked_after: int, written: bool):
        """Log the single summary line of a maintenance pass."""
        details = {
            "tracked_before": tracked_before,
            "pruned": pruned,
            "dropped": dropped,
            "deferred": deferred,
            "tracked_after": tracked_after,
        }
        self.log_operation("maintenance.pass", "written" if written else "unchanged", details)

    def log_verification(self, name: str, outcome: str, details: Dict[str, Any] = None):
        """Log one point-lookup outcome (kept, refreshed, dropped, unverified)."""
        log_details = {"name": name}
        if details:
            log_details.update(details)

        self.log_operation(f"verify.{outcome}", "success", log_details)

    def log_lease_event(self, event: str, owner: str, status: str = "success", details: Dict[str, Any] = None):
        """Log lease acquisition, refusal and release."""
        log_details = {"owner": owner}
        if details:
            log_details.update(details)

        self.log_operation(f"lease.{event}", status, log_details)

    def log_query(self, returned: int, tracked: int, progress_percent: int):
        """Log a read of the public expiring view."""
        self.log_operation("query.expiring", "success", {
            "returned": returned,
            "tracked": tracked,
            "progress_percent": progress_percent,
        })

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()


def audit_event(event_type: str, identifiers: Dict[str, Any], payload: Dict[str, Any] = None):
    """General audit event logging; long string payload values are truncated."""
    log_details = identifiers.copy() if identifiers else {}

    if payload:
        sanitized_payload = {}
        for k, v in payload.items():
            if isinstance(v, str) and len(v) > 100:
                sanitized_payload[k] = v[:97] + "..."
            else:
                sanitized_payload[k] = v
        log_details["payload"] = sanitized_payload

    logger.log_operation(event_type.replace(".", "_"), "audit", log_details)
