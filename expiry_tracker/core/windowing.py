"""
Extraction and windowing - turns raw registry nodes into tracked records and
decides which records belong in the snapshot or the public view.
"""

import math
from typing import List, Optional

from . import config as config_module
from .schema import RawNode, TrackedRecord

ROOT_LABEL = "sui"


def parse_expiration(raw) -> Optional[int]:
    """Parse a numeric expiration string; None for anything missing, non-finite or <= 0."""
    if raw is None or isinstance(raw, bool):
        return None
    text = str(raw).strip()
    if not text:
        return None
    try:
        value = int(text)
    except ValueError:
        try:
            as_float = float(text)
        except ValueError:
            return None
        if not math.isfinite(as_float):
            return None
        value = int(as_float)
    return value if value > 0 else None


def extract(node: RawNode) -> Optional[TrackedRecord]:
    """
    Parse one raw node into a TrackedRecord.

    Labels arrive root-first (``["sui", "example", "sub"]``); the dotted name is
    every label except the root, reversed (``"sub.example"``). Fails closed:
    anything malformed yields None so the caller can skip it.
    """
    labels = node.name_labels
    if not labels or len(labels) < 2:
        return None

    expiration_ms = parse_expiration(node.expiration_raw)
    if expiration_ms is None:
        return None

    parts = [str(label) for label in reversed(labels[1:]) if label]
    if not parts:
        return None

    return TrackedRecord(name=".".join(parts), expiration_ms=expiration_ms)


def name_to_labels(name: str) -> List[str]:
    """Inverse of extract(): ``"sub.example"`` -> ``["sui", "example", "sub"]``."""
    return [ROOT_LABEL] + list(reversed(name.split(".")))


def grace_end_ms(expiration_ms: int) -> int:
    return expiration_ms + config_module.GRACE_PERIOD_MS


def is_grace_active(expiration_ms: int, now: int) -> bool:
    """Expired but still inside the grace period."""
    return expiration_ms < now < grace_end_ms(expiration_ms)


def is_in_capture_window(expiration_ms: int, now: int) -> bool:
    """
    True when the record must be in the snapshot: either expired with grace
    still running, or expiring before the next scheduled rescan would see it.
    """
    upcoming = now <= expiration_ms < now + config_module.RESCAN_INTERVAL_MS
    return is_grace_active(expiration_ms, now) or upcoming


def is_verify_candidate(expiration_ms: int, now: int) -> bool:
    """Expired, grace running, and within the expiring window of grace end."""
    return (is_grace_active(expiration_ms, now)
            and grace_end_ms(expiration_ms) - now <= config_module.EXPIRING_WINDOW_MS)


def is_in_display_window(expiration_ms: int, now: int) -> bool:
    """Expired, grace running, and within the display window of grace end."""
    return (is_grace_active(expiration_ms, now)
            and grace_end_ms(expiration_ms) - now < config_module.DISPLAY_WINDOW_MS)


def days_left(expiration_ms: int, now: int) -> int:
    return max(0, math.ceil((grace_end_ms(expiration_ms) - now) / config_module.MS_PER_DAY))
