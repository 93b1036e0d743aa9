"""Shared test doubles: memory backends plus a controllable clock."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from frontdesk.core.exceptions import StoreUnavailableError
from frontdesk.persistence.memory_backend import MemoryHelpRequestStore, MemoryKnowledgeStore
from frontdesk.realtime.channel import MemoryRealtimeChannel


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 5, 11, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingPublisher:
    """IEventPublisher that keeps every event."""

    def __init__(self) -> None:
        self.events: list = []

    def publish(self, event) -> None:
        self.events.append(event)


class UnavailableHelpRequestStore(MemoryHelpRequestStore):
    """Memory store whose reads and creates fail like an unreachable database."""

    async def list_resolved_since(self, requester_id, since):
        raise StoreUnavailableError("database unreachable")

    async def create_pending(self, request):
        raise StoreUnavailableError("database unreachable")


__all__ = [
    "FakeClock",
    "MemoryHelpRequestStore",
    "MemoryKnowledgeStore",
    "MemoryRealtimeChannel",
    "RecordingPublisher",
    "UnavailableHelpRequestStore",
]
