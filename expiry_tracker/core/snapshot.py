"""
Snapshot persistence - the tracked set is sharded by expiration bucket so a write
only touches the shards whose contents changed. The tracker state lives under a
single key and is always written after the snapshot.
"""

import json
from typing import Dict, List, Optional

from . import config as config_module
from .kv_store import IKeyValueStore
from .merge import sort_records
from .schema import TrackedRecord, TrackerState
from ..util.logging import logger

STATE_KEY = "tracker:state"
LEASE_KEY = "tracker:lease"
SNAPSHOT_PREFIX = "tracker:snapshot:"


def bucket_key(expiration_ms: int) -> str:
    bucket_ms = config_module.SNAPSHOT_BUCKET_MS
    start = (expiration_ms // bucket_ms) * bucket_ms
    # Zero padding keeps lexical key order equal to time order
    return f"{SNAPSHOT_PREFIX}{start:016d}"


def serialize_records(records: List[TrackedRecord]) -> bytes:
    payload = [record.to_dict() for record in sort_records(records)]
    return json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")


def deserialize_records(raw: bytes) -> List[TrackedRecord]:
    return [TrackedRecord.from_dict(item) for item in json.loads(raw.decode("utf-8"))]


class SnapshotStore:
    """Reads and writes the tracked snapshot and tracker state through a key-value store."""

    def __init__(self, store: IKeyValueStore):
        self.store = store
        self._shards: Optional[Dict[str, bytes]] = None

    def _read_shards(self) -> Dict[str, bytes]:
        shards = {}
        for key in self.store.list_keys(SNAPSHOT_PREFIX):
            raw = self.store.get(key)
            if raw is not None:
                shards[key] = raw
        self._shards = shards
        return shards

    def load(self) -> List[TrackedRecord]:
        """Return the full snapshot, ascending by expiration."""
        records = []
        for key, raw in self._read_shards().items():
            try:
                records.extend(deserialize_records(raw))
            except (ValueError, KeyError, TypeError) as e:
                # A corrupt shard is dropped; the next save deletes it
                logger.warning(f"Skipping unreadable snapshot shard {key}: {e}")
        return sort_records(records)

    def save(self, records: List[TrackedRecord]) -> int:
        """
        Persist records as the new snapshot.

        Only shards whose serialized bytes changed are rewritten, shards that no
        longer hold records are deleted. Returns the number of keys touched.
        """
        current = self._shards if self._shards is not None else self._read_shards()

        grouped: Dict[str, List[TrackedRecord]] = {}
        for record in records:
            grouped.setdefault(bucket_key(record.expiration_ms), []).append(record)

        target = {key: serialize_records(group) for key, group in grouped.items()}
        touched = 0

        for key in sorted(target):
            if current.get(key) != target[key]:
                self.store.put(key, target[key])
                touched += 1

        for key in sorted(set(current) - set(target)):
            self.store.delete(key)
            touched += 1

        self._shards = target
        return touched

    def load_state(self) -> TrackerState:
        raw = self.store.get(STATE_KEY)
        if raw is None:
            return TrackerState()
        try:
            return TrackerState.from_json(raw)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Unreadable tracker state, treating as idle: {e}")
            return TrackerState()

    def save_state(self, state: TrackerState) -> None:
        self.store.put(STATE_KEY, state.to_json())
