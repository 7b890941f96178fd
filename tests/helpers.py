"""
Scripted stand-ins for the remote registry table used across tracker tests.
"""

import threading
from typing import Dict, List, Optional, Tuple, Union

from expiry_tracker.core import config
from expiry_tracker.core.remote_table import RemoteTableError
from expiry_tracker.core.schema import Page, RawNode
from expiry_tracker.core.windowing import name_to_labels

DAY = config.MS_PER_DAY
HOUR = 3_600_000
NOW = 1_760_000_000_000


def make_node(name: str, expiration_ms: Optional[int]) -> RawNode:
    raw_exp = None if expiration_ms is None else str(expiration_ms)
    return RawNode(name_labels=name_to_labels(name), expiration_raw=raw_exp)


class FakeRemoteTable:
    """
    Serves pre-built pages keyed by cursor ("c1", "c2", ...) and answers point
    lookups from a dict. Indices in fail_pages raise RemoteTableError once.

    With a lookup_barrier every lookup blocks until the barrier's party count
    of lookups are in flight together. lookup_events records ("start", name)
    and ("end", name) in the order they happen.
    """

    def __init__(self, pages: List[List[RawNode]] = None,
                 lookups: Dict[str, Union[str, None, Exception]] = None,
                 fail_pages=None, lookup_barrier: threading.Barrier = None):
        self.pages = pages or [[]]
        self.lookups = lookups or {}
        self.fail_pages = set(fail_pages or [])
        self.lookup_barrier = lookup_barrier
        self.fetched_cursors: List[Optional[str]] = []
        self.looked_up: List[List[str]] = []
        self.lookup_events: List[Tuple[str, str]] = []
        self.graphql_url = "http://fake/graphql"
        self.rpc_url = "http://fake/rpc"
        self._lock = threading.Lock()
        self.in_flight = 0
        self.max_in_flight = 0

    def fetch_page(self, cursor, page_size=None) -> Page:
        index = 0 if cursor is None else int(cursor[1:])
        self.fetched_cursors.append(cursor)
        if index in self.fail_pages:
            self.fail_pages.discard(index)
            raise RemoteTableError(f"page {index} unavailable")
        has_next = index + 1 < len(self.pages)
        return Page(
            nodes=list(self.pages[index]),
            has_next_page=has_next,
            end_cursor=f"c{index + 1}" if has_next else None,
        )

    def lookup_expiration(self, key_labels: List[str]):
        name = ".".join(reversed(key_labels[1:]))
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            self.looked_up.append(key_labels)
            self.lookup_events.append(("start", name))
        try:
            if self.lookup_barrier is not None:
                self.lookup_barrier.wait()
            answer = self.lookups.get(name)
            if isinstance(answer, Exception):
                raise answer
            return answer
        finally:
            with self._lock:
                self.in_flight -= 1
                self.lookup_events.append(("end", name))

    def close(self):
        pass
