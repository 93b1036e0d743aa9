"""Process-local soft state: the response cache and the delivery dedup ledger.

Both are rebuildable from the store at any time. Every public method runs to
completion without awaiting, so a lookup-then-insert on one key is a single
step for any coroutine on the event loop.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from frontdesk.core.types import Clock, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedResponse:
    answer: str
    request_id: str
    question: str
    resolved_at: datetime | None
    cached_at: datetime


class ResponseCache:
    """requester_id -> most recently located answer, valid for ``ttl``.

    An entry whose age has reached the TTL is already expired.
    """

    def __init__(self, ttl: timedelta = timedelta(minutes=5), clock: Clock = utcnow) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, CachedResponse] = {}

    def _fresh(self, entry: CachedResponse, now: datetime) -> bool:
        return now - entry.cached_at < self._ttl

    def get(self, requester_id: str) -> CachedResponse | None:
        entry = self._entries.get(requester_id)
        if entry is None or not self._fresh(entry, self._clock()):
            return None
        return entry

    def put(
        self,
        requester_id: str,
        *,
        answer: str,
        request_id: str,
        question: str = "",
        resolved_at: datetime | None = None,
    ) -> CachedResponse:
        entry = CachedResponse(
            answer=answer,
            request_id=request_id,
            question=question,
            resolved_at=resolved_at,
            cached_at=self._clock(),
        )
        self._entries[requester_id] = entry
        return entry

    def sweep(self) -> int:
        now = self._clock()
        stale = [k for k, v in self._entries.items() if not self._fresh(v, now)]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("Response cache sweep removed %d entries", len(stale))
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)


class DedupLedger:
    """requester_id -> {notification_id: delivered_at}, entries live for ``ttl``.

    The notification id is the help request id, stable across channels.
    """

    def __init__(self, ttl: timedelta = timedelta(minutes=30), clock: Clock = utcnow) -> None:
        self._ttl = ttl
        self._clock = clock
        self._delivered: dict[str, dict[str, datetime]] = {}

    def has_delivered(self, requester_id: str, notification_id: str) -> bool:
        stamp = self._delivered.get(requester_id, {}).get(notification_id)
        return stamp is not None and self._clock() - stamp < self._ttl

    def mark_delivered(self, requester_id: str, notification_id: str) -> bool:
        """Record a delivery. Returns False when it was already recorded.

        This is the check-and-mark every delivery path goes through; only the
        caller that gets True may surface the answer.
        """
        if self.has_delivered(requester_id, notification_id):
            return False
        self._delivered.setdefault(requester_id, {})[notification_id] = self._clock()
        return True

    def release(self, requester_id: str, notification_id: str) -> None:
        """Drop a mark whose delivery did not happen, reopening it to other paths."""
        deliveries = self._delivered.get(requester_id)
        if deliveries is None:
            return
        deliveries.pop(notification_id, None)
        if not deliveries:
            del self._delivered[requester_id]

    def sweep(self) -> int:
        now = self._clock()
        removed = 0
        for requester_id in list(self._delivered):
            deliveries = self._delivered[requester_id]
            for notification_id in [n for n, ts in deliveries.items() if now - ts >= self._ttl]:
                del deliveries[notification_id]
                removed += 1
            if not deliveries:
                del self._delivered[requester_id]
        if removed:
            logger.debug("Dedup ledger sweep removed %d entries", removed)
        return removed
