"""
Invocation lease - a short-lived exclusivity token kept in the key-value store so
overlapping invocations cannot race on cursor or snapshot writes.
"""

import json
import time
import uuid
from dataclasses import dataclass
from typing import Optional

from . import config as config_module
from .kv_store import IKeyValueStore
from .snapshot import LEASE_KEY
from ..util.logging import logger


@dataclass
class Lease:
    owner: str
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_json(self) -> bytes:
        return json.dumps({"owner": self.owner, "expiresAt": self.expires_at},
                          separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_json(cls, raw: bytes) -> 'Lease':
        data = json.loads(raw.decode("utf-8"))
        return cls(owner=str(data["owner"]), expires_at=float(data["expiresAt"]))


class InvocationLease:
    """Acquire/release a single named lease with compare-and-swap semantics."""

    def __init__(self, store: IKeyValueStore, owner: str = None, ttl_seconds: int = None,
                 key: str = LEASE_KEY, clock=time.time):
        self.store = store
        self.owner = owner or uuid.uuid4().hex
        self.ttl_seconds = ttl_seconds or config_module.LEASE_TTL_SEC
        self.key = key
        self._clock = clock
        self._held: Optional[bytes] = None

    @property
    def held(self) -> bool:
        return self._held is not None

    def acquire(self) -> bool:
        """Take the lease unless another owner holds a live one."""
        now = self._clock()
        observed = self.store.get(self.key)

        if observed is not None:
            try:
                current = Lease.from_json(observed)
            except (ValueError, KeyError, TypeError):
                current = None
                logger.warning("Replacing unreadable lease record")
            if current is not None and not current.expired(now):
                logger.log_lease_event("refused", self.owner, "refused", {
                    "holder": current.owner,
                    "expires_in_sec": round(current.expires_at - now, 1),
                })
                return False

        token = Lease(owner=self.owner, expires_at=now + self.ttl_seconds).to_json()
        if not self.store.compare_and_swap(self.key, observed, token, ttl_seconds=self.ttl_seconds):
            logger.log_lease_event("lost_race", self.owner, "refused")
            return False

        self._held = token
        logger.log_lease_event("acquired", self.owner, details={"ttl_sec": self.ttl_seconds})
        return True

    def release(self) -> bool:
        """Drop the lease if this owner still holds it."""
        if self._held is None:
            return False
        released = self.store.compare_and_swap(self.key, self._held, None)
        self._held = None
        logger.log_lease_event("released" if released else "release_skipped", self.owner)
        return released

    def __enter__(self) -> bool:
        return self.acquire()

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
