"""
Snapshot persistence tests - bucketed shards, minimal rewrites, state round trip.
"""

from unittest.mock import patch

from expiry_tracker.core.schema import TrackedRecord, TrackerPhase, TrackerState
from expiry_tracker.core.snapshot import (
    SNAPSHOT_PREFIX,
    STATE_KEY,
    SnapshotStore,
    bucket_key,
    serialize_records,
)
from tests.helpers import DAY, NOW


def rec(name, offset_days):
    return TrackedRecord(name=name, expiration_ms=NOW + int(offset_days * DAY))


class TestSharding:
    """Test shard layout and write minimisation."""

    def test_bucket_keys_sort_by_time(self):
        early = bucket_key(NOW - 10 * DAY)
        late = bucket_key(NOW)
        assert early.startswith(SNAPSHOT_PREFIX)
        assert early < late

    def test_round_trip_sorted(self, memory_store):
        snapshots = SnapshotStore(memory_store)
        records = [rec("c", -1), rec("a", -20), rec("b", -5)]

        snapshots.save(records)

        assert SnapshotStore(memory_store).load() == [rec("a", -20), rec("b", -5), rec("c", -1)]

    def test_records_split_across_shards(self, memory_store):
        SnapshotStore(memory_store).save([rec("a", -20), rec("b", -5), rec("c", -5)])
        assert len(memory_store.list_keys(SNAPSHOT_PREFIX)) == 2

    def test_unchanged_save_touches_nothing(self, memory_store):
        snapshots = SnapshotStore(memory_store)
        records = [rec("a", -20), rec("b", -5)]
        snapshots.save(records)

        assert SnapshotStore(memory_store).save(records) == 0

    def test_only_changed_shard_rewritten(self, memory_store):
        snapshots = SnapshotStore(memory_store)
        snapshots.save([rec("a", -20), rec("b", -5)])

        with patch.object(memory_store, "put", wraps=memory_store.put) as put:
            touched = snapshots.save([rec("a", -20), rec("b", -5), rec("c", -5)])

        assert touched == 1
        assert put.call_count == 1
        assert put.call_args[0][0] == bucket_key(NOW - 5 * DAY)

    def test_emptied_shard_deleted(self, memory_store):
        snapshots = SnapshotStore(memory_store)
        snapshots.save([rec("a", -20), rec("b", -5)])

        snapshots.save([rec("b", -5)])

        assert memory_store.list_keys(SNAPSHOT_PREFIX) == [bucket_key(NOW - 5 * DAY)]

    def test_corrupt_shard_skipped_then_removed(self, memory_store):
        memory_store.put(bucket_key(NOW - 3 * DAY), b"{not json")
        snapshots = SnapshotStore(memory_store)

        assert snapshots.load() == []

        snapshots.save([rec("a", -20)])
        assert memory_store.get(bucket_key(NOW - 3 * DAY)) is None

    def test_serialization_is_deterministic(self):
        forward = serialize_records([rec("a", -1), rec("b", -1)])
        backward = serialize_records([rec("b", -1), rec("a", -1)])
        assert forward == backward


class TestStatePersistence:
    """Test tracker state storage."""

    def test_missing_state_is_idle(self, memory_store):
        state = SnapshotStore(memory_store).load_state()
        assert state.phase == TrackerPhase.IDLE
        assert state.last_scan_completed_at is None

    def test_state_round_trip(self, memory_store):
        snapshots = SnapshotStore(memory_store)
        state = TrackerState(phase=TrackerPhase.SCANNING, cursor="abc", total_processed=150,
                             last_scan_completed_at=NOW - DAY, total_fields_observed=900)
        snapshots.save_state(state)

        assert snapshots.load_state() == state

    def test_corrupt_state_treated_as_idle(self, memory_store):
        memory_store.put(STATE_KEY, b"\xff\xfe")
        assert SnapshotStore(memory_store).load_state() == TrackerState()

    def test_maintaining_phase_not_loadable(self, memory_store):
        memory_store.put(STATE_KEY, b'{"phase": "maintaining"}')
        assert SnapshotStore(memory_store).load_state().phase == TrackerPhase.IDLE
