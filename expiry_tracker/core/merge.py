"""
Snapshot merge - union by name, incoming wins, grace-expired records dropped.
"""

from typing import Dict, Iterable, List

from . import config as config_module
from .schema import TrackedRecord


def sort_records(records: Iterable[TrackedRecord]) -> List[TrackedRecord]:
    """Ascending by expiration; name breaks ties so equal sets serialize identically."""
    return sorted(records, key=lambda r: (r.expiration_ms, r.name))


def merge(existing: Iterable[TrackedRecord], incoming: Iterable[TrackedRecord], now: int) -> List[TrackedRecord]:
    """
    Merge two record collections.

    The result holds one record per name (the incoming value on collision) and
    nothing with ``expiration_ms <= now - GRACE``.
    """
    cutoff = now - config_module.GRACE_PERIOD_MS
    by_name: Dict[str, TrackedRecord] = {}

    for record in existing:
        if record.expiration_ms > cutoff:
            by_name[record.name] = record

    # Incoming overlays existing; stale incoming values leave the existing entry alone
    for record in incoming:
        if record.expiration_ms > cutoff:
            by_name[record.name] = record

    return sort_records(by_name.values())
