"""
Tracker data model - tracked records, raw remote nodes and the persisted tracker state.
"""

import json
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, List, Optional


@dataclass(frozen=True)
class TrackedRecord:
    name: str
    expiration_ms: int

    def to_dict(self) -> Dict:
        return {"name": self.name, "expirationMs": self.expiration_ms}

    @classmethod
    def from_dict(cls, data: Dict) -> 'TrackedRecord':
        return cls(name=str(data["name"]), expiration_ms=int(data["expirationMs"]))


@dataclass
class RawNode:
    """One dynamic-field entry as returned by the paginated query."""
    name_labels: Optional[List[str]]
    expiration_raw: Optional[str]
    raw: Dict = field(default_factory=dict, repr=False)


@dataclass
class Page:
    nodes: List[RawNode]
    has_next_page: bool
    end_cursor: Optional[str]


class TrackerPhase(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    MAINTAINING = "maintaining"  # decision only, never persisted


@dataclass
class TrackerState:
    """Explicit tracker state, persisted atomically under a single key.

    The ``scanning`` phase carries the resumable scan position (cursor and
    total_processed). last_scan_completed_at and total_fields_observed are
    scan metadata used for staleness and progress estimation only.
    """
    phase: TrackerPhase = TrackerPhase.IDLE
    cursor: Optional[str] = None
    total_processed: int = 0
    last_scan_completed_at: Optional[int] = None
    total_fields_observed: int = 0

    @property
    def scan_in_progress(self) -> bool:
        return self.phase == TrackerPhase.SCANNING

    def begin_scan(self) -> 'TrackerState':
        """Return the scanning state for a fresh pass from the start of the table."""
        return TrackerState(
            phase=TrackerPhase.SCANNING,
            cursor=None,
            total_processed=0,
            last_scan_completed_at=self.last_scan_completed_at,
            total_fields_observed=self.total_fields_observed,
        )

    def to_json(self) -> bytes:
        data = asdict(self)
        data["phase"] = self.phase.value
        return json.dumps(data, sort_keys=True, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_json(cls, raw: bytes) -> 'TrackerState':
        data = json.loads(raw.decode("utf-8"))
        phase = TrackerPhase(data.get("phase", TrackerPhase.IDLE.value))
        if phase == TrackerPhase.MAINTAINING:
            raise ValueError("maintaining is not a persistable phase")
        return cls(
            phase=phase,
            cursor=data.get("cursor"),
            total_processed=int(data.get("total_processed", 0)),
            last_scan_completed_at=data.get("last_scan_completed_at"),
            total_fields_observed=int(data.get("total_fields_observed", 0)),
        )
